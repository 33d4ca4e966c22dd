"""
SLA Infrastructure Repositories
=================================

Concrete implementations of the application interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.

Every write runs inside a SAVEPOINT: a failed statement is rolled back on
its own and the surrounding session stays usable for the next ticket.
"""

import json
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import (
    AuditAction, MembershipRole, NotificationType, OPEN_STATUSES,
    PauseReason, Priority, TicketStatus
)
from helpdesk.core import (
    AuditException, ConfigurationException, NotificationException, RepositoryException
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.interfaces import (
    IAuditLog, INotificationService, IOrganizationRepository,
    ITicketRepository, ITransactionScope, UnreadableTicketCallback
)
from helpdesk.sla.domain import (
    BusinessHoursConfig, OrganizationSLAPolicy, Ticket
)
from helpdesk.sla.infrastructure.models import (
    AuditLogModel, MembershipModel, NotificationModel, OrganizationModel, TicketModel
)

logger = get_logger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """Some backends (SQLite) return naive datetimes; they are stored as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLAlchemyTransactionScope(ITransactionScope):
    """Per-ticket SAVEPOINT on the shared session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    def isolated(self) -> AsyncContextManager[Any]:
        return self._session.begin_nested()


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of the ticket repository.

    Maps ``TicketModel`` rows to ``Ticket`` entities and performs the narrow
    column updates the SLA engine is allowed to make.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: TicketModel) -> Ticket:
        return Ticket.restore(
            id=model.id,
            org_id=model.org_id,
            priority=Priority(model.priority),
            status=TicketStatus(model.status),
            created_at=_aware(model.created_at),
            first_response_at=_aware(model.first_response_at),
            resolved_at=_aware(model.resolved_at),
            response_target_hours=model.sla_response_target_hours,
            resolution_target_hours=model.sla_resolution_target_hours,
            assignee_id=model.assignee_id,
            key=model.key,
            subject=model.subject,
            paused_since=_aware(model.sla_paused_at),
            pause_reason=model.sla_pause_reason,
        )

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""
        model = await self._session.get(TicketModel, ticket_id)
        return self._to_entity(model) if model else None

    def _to_entities(
        self,
        models: Sequence[TicketModel],
        on_unreadable: Optional[UnreadableTicketCallback]
    ) -> List[Ticket]:
        tickets = []
        for model in models:
            try:
                tickets.append(self._to_entity(model))
            except (ValueError, TypeError) as e:
                if on_unreadable is None:
                    logger.error(
                        "Skipping unreadable ticket row",
                        extra={"ticket_id": model.id, "error": str(e)}
                    )
                else:
                    on_unreadable(model.id, e)
        return tickets

    async def list_open_unpaused(
        self,
        on_unreadable: Optional[UnreadableTicketCallback] = None
    ) -> List[Ticket]:
        """Open tickets without an active pause, oldest first."""
        stmt = (
            select(TicketModel)
            .where(
                TicketModel.status.in_([s.value for s in OPEN_STATUSES]),
                TicketModel.sla_paused_at.is_(None),
            )
            .order_by(TicketModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return self._to_entities(result.scalars().all(), on_unreadable)

    async def list_for_recalculation(
        self,
        org_id: Optional[str] = None,
        ticket_ids: Optional[Sequence[str]] = None,
        on_unreadable: Optional[UnreadableTicketCallback] = None
    ) -> List[Ticket]:
        stmt = select(TicketModel)
        if org_id:
            stmt = stmt.where(TicketModel.org_id == org_id)
        if ticket_ids:
            stmt = stmt.where(TicketModel.id.in_(list(ticket_ids)))

        result = await self._session.execute(stmt)
        return self._to_entities(result.scalars().all(), on_unreadable)

    async def _update(self, ticket_id: str, **values: Any) -> None:
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket_id)
            .values(updated_at=_now(), **values)
        )
        try:
            async with self._session.begin_nested():
                result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(
                f"Failed to update ticket {ticket_id}", {"columns": sorted(values)}
            ) from e
        if result.rowcount == 0:
            raise RepositoryException(f"Ticket {ticket_id} not found")

    async def update_priority(self, ticket_id: str, priority: Priority) -> None:
        await self._update(ticket_id, priority=priority.value)

    async def update_pause(
        self,
        ticket_id: str,
        paused_since: Optional[datetime],
        reason: Optional[PauseReason]
    ) -> None:
        if (paused_since is None) != (reason is None):
            raise RepositoryException("paused_since and reason must both be set or both be null")
        await self._update(
            ticket_id,
            sla_paused_at=paused_since,
            sla_pause_reason=reason.value if reason else None,
        )

    async def update_targets(
        self,
        ticket_id: str,
        response_hours: float,
        resolution_hours: float
    ) -> None:
        await self._update(
            ticket_id,
            sla_response_target_hours=response_hours,
            sla_resolution_target_hours=resolution_hours,
        )


class SQLAlchemyOrganizationRepository(IOrganizationRepository):
    """Reads business hours, SLA policy and admins from organization tables."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_business_hours(self, org_id: str) -> Optional[BusinessHoursConfig]:
        org = await self._session.get(OrganizationModel, org_id)
        if org is None:
            raise RepositoryException(f"Organization {org_id} not found")
        if not org.business_hours:
            return None
        try:
            return BusinessHoursConfig.from_mapping(org.business_hours)
        except ValueError as e:
            raise ConfigurationException(
                f"Invalid business hours for organization {org_id}",
                {"org_id": org_id, "error": str(e)}
            ) from e

    async def get_sla_policy(self, org_id: str) -> Optional[OrganizationSLAPolicy]:
        org = await self._session.get(OrganizationModel, org_id)
        if org is None:
            return None
        return OrganizationSLAPolicy(
            response_hours={
                p: getattr(org, f"sla_response_hours_{p.value.lower()}") for p in Priority
            },
            resolution_hours={
                p: getattr(org, f"sla_resolution_hours_{p.value.lower()}") for p in Priority
            },
        )

    async def list_admin_ids(self, org_id: str) -> List[str]:
        stmt = select(MembershipModel.user_id).where(
            MembershipModel.org_id == org_id,
            MembershipModel.role == MembershipRole.ADMIN.value,
            MembershipModel.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class SQLAlchemyNotificationService(INotificationService):
    """Stores in-app notification rows for the notifications UI."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def notify_user(
        self,
        user_id: str,
        kind: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
        data: Optional[dict[str, Any]] = None
    ) -> None:
        try:
            async with self._session.begin_nested():
                self._session.add(NotificationModel(
                    user_id=user_id,
                    type=kind.value,
                    title=title,
                    message=message,
                    link=link,
                    data=data,
                ))
                await self._session.flush()
        except SQLAlchemyError as e:
            raise NotificationException(
                f"Failed to store notification for user {user_id}", {"kind": kind.value}
            ) from e


class SQLAlchemyAuditLog(IAuditLog):
    """Appends audit rows; details are stored as a JSON document."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def record(
        self,
        org_id: str,
        ticket_id: str,
        action: AuditAction,
        details: dict[str, Any]
    ) -> None:
        try:
            async with self._session.begin_nested():
                self._session.add(AuditLogModel(
                    org_id=org_id,
                    ticket_id=ticket_id,
                    action=action.value,
                    details=json.dumps(details, default=str),
                ))
                await self._session.flush()
        except SQLAlchemyError as e:
            raise AuditException(
                f"Failed to write audit entry {action.value}", {"ticket_id": ticket_id}
            ) from e

    async def has_entry(
        self,
        ticket_id: str,
        action: AuditAction,
        **details: Any
    ) -> bool:
        stmt = select(AuditLogModel.details).where(
            AuditLogModel.ticket_id == ticket_id,
            AuditLogModel.action == action.value,
        )
        result = await self._session.execute(stmt)
        for raw in result.scalars():
            stored = json.loads(raw) if raw else {}
            if all(stored.get(k) == v for k, v in details.items()):
                return True
        return False
