"""
Tests for the SQLAlchemy repositories against in-memory SQLite.
"""

import json

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from helpdesk.config import (
    AuditAction, MembershipRole, NotificationType, PauseReason, Priority, TicketStatus
)
from helpdesk.core import NotificationException, RepositoryException
from helpdesk.infrastructure.database import Base, enable_sqlite_savepoints
from helpdesk.sla.infrastructure import (
    AuditLogModel,
    MembershipModel,
    NotificationModel,
    OrganizationModel,
    SQLAlchemyAuditLog,
    SQLAlchemyNotificationService,
    SQLAlchemyOrganizationRepository,
    SQLAlchemyTicketRepository,
    TicketModel,
)
from tests.support import utc


@pytest_asyncio.fixture
async def session():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        session.add_all([
            OrganizationModel(
                id="org-1",
                name="Acme",
                business_hours={
                    "timezone": "Europe/Berlin",
                    "workingDays": [1, 2, 3, 4, 5],
                    "workingHours": {"start": "08:00", "end": "16:00"},
                    "holidays": ["2024-12-25"],
                },
                sla_response_hours_p2=2.0,
            ),
            OrganizationModel(id="org-247", name="Always On"),
            MembershipModel(org_id="org-1", user_id="admin-1", role=MembershipRole.ADMIN.value),
            MembershipModel(org_id="org-1", user_id="admin-old", role=MembershipRole.ADMIN.value, is_active=False),
            MembershipModel(org_id="org-1", user_id="agent-1", role=MembershipRole.AGENT.value),
            TicketModel(
                id="t-1", org_id="org-1", key="ACME-1", priority="P3", status="OPEN",
                created_at=utc(2024, 1, 15, 9, 0), assignee_id="agent-1",
                sla_response_target_hours=24.0, sla_resolution_target_hours=72.0,
            ),
            TicketModel(
                id="t-2", org_id="org-1", priority="P2", status="WAITING_ON_CUSTOMER",
                created_at=utc(2024, 1, 15, 8, 0),
                sla_paused_at=utc(2024, 1, 15, 10, 0), sla_pause_reason="WAITING_ON_CUSTOMER",
            ),
            TicketModel(
                id="t-3", org_id="org-1", priority="P4", status="CLOSED",
                created_at=utc(2024, 1, 14, 9, 0), resolved_at=utc(2024, 1, 14, 12, 0),
            ),
            TicketModel(id="t-4", org_id="org-247", priority="P1", status="NEW", created_at=utc(2024, 1, 15, 7, 0)),
        ])
        await session.commit()
        yield session

    await engine.dispose()


class TestSQLAlchemyTicketRepository:

    @pytest.mark.asyncio
    async def test_get_by_id_maps_entity(self, session):
        ticket = await SQLAlchemyTicketRepository(session).get_by_id("t-1")

        assert ticket.priority == Priority.P3
        assert ticket.status == TicketStatus.OPEN
        assert ticket.created_at == utc(2024, 1, 15, 9, 0)
        assert ticket.created_at.tzinfo is not None
        assert ticket.response_target_hours == 24.0
        assert ticket.display_key == "ACME-1"
        assert not ticket.is_paused

    @pytest.mark.asyncio
    async def test_get_by_id_restores_pause(self, session):
        ticket = await SQLAlchemyTicketRepository(session).get_by_id("t-2")

        assert ticket.paused_since == utc(2024, 1, 15, 10, 0)
        assert ticket.pause_reason == PauseReason.WAITING_ON_CUSTOMER

    @pytest.mark.asyncio
    async def test_get_by_id_missing(self, session):
        assert await SQLAlchemyTicketRepository(session).get_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_list_open_unpaused(self, session):
        tickets = await SQLAlchemyTicketRepository(session).list_open_unpaused()

        assert [t.id for t in tickets] == ["t-4", "t-1"]

    @pytest.mark.asyncio
    async def test_list_for_recalculation(self, session):
        repo = SQLAlchemyTicketRepository(session)

        assert {t.id for t in await repo.list_for_recalculation(org_id="org-1")} == {"t-1", "t-2", "t-3"}
        assert [t.id for t in await repo.list_for_recalculation(ticket_ids=["t-4"])] == ["t-4"]

    @pytest.mark.asyncio
    async def test_updates(self, session):
        repo = SQLAlchemyTicketRepository(session)

        await repo.update_priority("t-1", Priority.P2)
        await repo.update_pause("t-1", utc(2024, 1, 15, 11, 0), PauseReason.WAITING_ON_CUSTOMER)
        await repo.update_targets("t-1", 4.0, 24.0)
        await session.commit()
        session.expunge_all()

        ticket = await repo.get_by_id("t-1")
        assert ticket.priority == Priority.P2
        assert ticket.paused_since == utc(2024, 1, 15, 11, 0)
        assert (ticket.response_target_hours, ticket.resolution_target_hours) == (4.0, 24.0)

        await repo.update_pause("t-1", None, None)
        await session.commit()
        session.expunge_all()
        assert not (await repo.get_by_id("t-1")).is_paused

    @pytest.mark.asyncio
    async def test_update_rejects_half_pause(self, session):
        with pytest.raises(RepositoryException):
            await SQLAlchemyTicketRepository(session).update_pause("t-1", utc(2024, 1, 15), None)

    @pytest.mark.asyncio
    async def test_update_missing_ticket(self, session):
        with pytest.raises(RepositoryException):
            await SQLAlchemyTicketRepository(session).update_priority("nope", Priority.P1)


class TestSQLAlchemyOrganizationRepository:

    @pytest.mark.asyncio
    async def test_business_hours(self, session):
        config = await SQLAlchemyOrganizationRepository(session).get_business_hours("org-1")

        assert config.timezone == "Europe/Berlin"
        assert config.start.hour == 8

    @pytest.mark.asyncio
    async def test_null_business_hours_is_around_the_clock(self, session):
        assert await SQLAlchemyOrganizationRepository(session).get_business_hours("org-247") is None

    @pytest.mark.asyncio
    async def test_missing_organization(self, session):
        with pytest.raises(RepositoryException):
            await SQLAlchemyOrganizationRepository(session).get_business_hours("nope")

    @pytest.mark.asyncio
    async def test_sla_policy(self, session):
        policy = await SQLAlchemyOrganizationRepository(session).get_sla_policy("org-1")

        assert policy.response_hours[Priority.P2] == 2.0
        assert policy.response_hours[Priority.P1] is None

    @pytest.mark.asyncio
    async def test_list_admin_ids_only_active_admins(self, session):
        assert await SQLAlchemyOrganizationRepository(session).list_admin_ids("org-1") == ["admin-1"]


class TestNotificationAndAudit:

    @pytest.mark.asyncio
    async def test_notification_row(self, session):
        await SQLAlchemyNotificationService(session).notify_user(
            "agent-1", NotificationType.TICKET_SLA_WARNING, "title", "message",
            link="/app/tickets/t-1", data={"ticketId": "t-1"},
        )

        row = (await session.execute(select(NotificationModel))).scalar_one()
        assert row.type == "TICKET_SLA_WARNING"
        assert row.data == {"ticketId": "t-1"}
        assert row.is_read is False

    @pytest.mark.asyncio
    async def test_audit_row(self, session):
        await SQLAlchemyAuditLog(session).record(
            "org-1", "t-1", AuditAction.TICKET_PRIORITY_CHANGED,
            {"oldPriority": "P3", "newPriority": "P2"},
        )

        row = (await session.execute(select(AuditLogModel))).scalar_one()
        assert row.action == "TICKET_PRIORITY_CHANGED"
        assert json.loads(row.details) == {"oldPriority": "P3", "newPriority": "P2"}

    @pytest.mark.asyncio
    async def test_has_entry_matches_details(self, session):
        audit_log = SQLAlchemyAuditLog(session)
        await audit_log.record(
            "org-1", "t-1", AuditAction.TICKET_PRIORITY_CHANGED,
            {"oldPriority": "P3", "newPriority": "P2", "reason": "SLA breach escalation"},
        )

        assert await audit_log.has_entry(
            "t-1", AuditAction.TICKET_PRIORITY_CHANGED, reason="SLA breach escalation"
        )
        assert not await audit_log.has_entry(
            "t-1", AuditAction.TICKET_PRIORITY_CHANGED, reason="manual"
        )
        assert not await audit_log.has_entry("t-2", AuditAction.TICKET_PRIORITY_CHANGED)

    @pytest.mark.asyncio
    async def test_failed_write_leaves_session_usable(self, session):
        with pytest.raises(NotificationException):
            await SQLAlchemyNotificationService(session).notify_user(
                "agent-1", NotificationType.TICKET_SLA_WARNING, "title", None,
            )

        await SQLAlchemyNotificationService(session).notify_user(
            "agent-1", NotificationType.TICKET_SLA_WARNING, "title", "message",
        )
        await session.commit()

        rows = (await session.execute(select(NotificationModel))).scalars().all()
        assert [row.message for row in rows] == ["message"]


class TestUnreadableRows:

    @pytest.mark.asyncio
    async def test_corrupt_row_is_reported_and_skipped(self, session):
        session.add(TicketModel(
            id="t-skewed", org_id="org-1", priority="P3", status="OPEN",
            created_at=utc(2024, 1, 15, 9, 0), first_response_at=utc(2024, 1, 15, 8, 59, 59),
        ))
        session.add(TicketModel(
            id="t-bogus", org_id="org-1", priority="P9", status="OPEN",
            created_at=utc(2024, 1, 15, 9, 0),
        ))
        await session.commit()
        unreadable = []

        tickets = await SQLAlchemyTicketRepository(session).list_open_unpaused(
            on_unreadable=lambda ticket_id, error: unreadable.append(ticket_id)
        )

        assert [t.id for t in tickets] == ["t-4", "t-1"]
        assert sorted(unreadable) == ["t-bogus", "t-skewed"]
