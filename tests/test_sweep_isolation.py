"""
Per-ticket isolation of the SLA sweep on a real (in-memory SQLite) session.

One ticket's failed database write must not undo or block the work done for
other tickets in the same sweep.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from helpdesk.config import MembershipRole
from helpdesk.infrastructure.database import Base, enable_sqlite_savepoints
from helpdesk.sla.application import (
    EscalationEngine, SLAMetricsCalculator, SLANotifier, WarningScanner
)
from helpdesk.sla.infrastructure import (
    AuditLogModel,
    MembershipModel,
    NotificationModel,
    OrganizationModel,
    SQLAlchemyAuditLog,
    SQLAlchemyNotificationService,
    SQLAlchemyOrganizationRepository,
    SQLAlchemyTicketRepository,
    SQLAlchemyTransactionScope,
    TicketModel,
)
from tests.support import StaticPolicyProvider


class BlankMessageNotificationService(SQLAlchemyNotificationService):
    """Stores a NULL message for one user, which the schema rejects."""

    def __init__(self, session, broken_user_id):
        super().__init__(session)
        self.broken_user_id = broken_user_id

    async def notify_user(self, user_id, kind, title, message, link=None, data=None):
        if user_id == self.broken_user_id:
            message = None
        await super().notify_user(user_id, kind, title, message, link, data)


@pytest_asyncio.fixture
async def session_maker():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    # 3h into a 2h response target: breached
    created_at = datetime.now(timezone.utc) - timedelta(hours=3)
    async with maker() as session:
        session.add_all([
            OrganizationModel(id="org-a", name="Alpha"),
            OrganizationModel(id="org-b", name="Beta"),
            MembershipModel(org_id="org-a", user_id="admin-a", role=MembershipRole.ADMIN.value),
            MembershipModel(org_id="org-b", user_id="admin-b", role=MembershipRole.ADMIN.value),
            TicketModel(
                id="t-bad", org_id="org-b", priority="P4", status="OPEN", created_at=created_at,
                sla_response_target_hours=2.0, sla_resolution_target_hours=100.0,
            ),
            TicketModel(
                id="t-good", org_id="org-a", priority="P4", status="OPEN",
                created_at=created_at + timedelta(seconds=1),
                sla_response_target_hours=2.0, sla_resolution_target_hours=100.0,
            ),
        ])
        await session.commit()

    yield maker
    await engine.dispose()


def build_scanner(session, broken_user_id):
    ticket_repo = SQLAlchemyTicketRepository(session)
    org_repo = SQLAlchemyOrganizationRepository(session)
    audit_log = SQLAlchemyAuditLog(session)
    transactions = SQLAlchemyTransactionScope(session)
    calculator = SLAMetricsCalculator(ticket_repo, org_repo, StaticPolicyProvider())
    notifier = SLANotifier(
        BlankMessageNotificationService(session, broken_user_id), org_repo,
        base_url="https://desk.example.com",
    )
    escalation = EscalationEngine(
        ticket_repo, calculator, notifier, audit_log, transaction_scope=transactions
    )
    return WarningScanner(
        ticket_repo, calculator, notifier, audit_log,
        escalation_engine=escalation, transaction_scope=transactions,
    )


class TestSweepIsolation:

    @pytest.mark.asyncio
    async def test_failed_write_keeps_other_tickets_changes(self, session_maker):
        async with session_maker() as session:
            result = await build_scanner(session, broken_user_id="admin-b").scan()
            await session.commit()

        assert result.checked == 2
        assert result.failed == 0
        assert result.notifications_sent == 1

        async with session_maker() as session:
            good = await session.get(TicketModel, "t-good")
            bad = await session.get(TicketModel, "t-bad")
            assert good.priority == "P3"
            assert bad.priority == "P3"

            recipients = (await session.execute(select(NotificationModel.user_id))).scalars().all()
            # warning plus breach escalation for admin-a; nothing stored for admin-b
            assert sorted(recipients) == ["admin-a", "admin-a"]

            audit_rows = await session.scalar(select(func.count()).select_from(AuditLogModel))
            assert audit_rows == 4

    @pytest.mark.asyncio
    async def test_second_sweep_does_not_raise_priority_again(self, session_maker):
        for _ in range(2):
            async with session_maker() as session:
                await build_scanner(session, broken_user_id="nobody").scan()
                await session.commit()

        async with session_maker() as session:
            good = await session.get(TicketModel, "t-good")
            assert good.priority == "P3"
