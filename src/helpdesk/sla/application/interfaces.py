"""
SLA Application Interfaces
===========================

Abstractions the SLA services depend on (Dependency Inversion).

Ticket storage, organization configuration, notification fan-out and the
audit log are owned by other parts of the platform; the engine reaches them
only through these narrow interfaces.
"""

from abc import ABC, abstractmethod
from contextlib import nullcontext
from datetime import datetime
from typing import Any, AsyncContextManager, Callable, List, Optional, Sequence

from helpdesk.config import AuditAction, NotificationType, PauseReason, Priority
from helpdesk.sla.domain import (
    BusinessHoursConfig, OrganizationSLAPolicy, SLAPolicyConfig, Ticket
)

# Called with the row id and the error for a ticket row that cannot be mapped
UnreadableTicketCallback = Callable[[str, Exception], None]


class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""

    @abstractmethod
    async def list_open_unpaused(
        self,
        on_unreadable: Optional[UnreadableTicketCallback] = None
    ) -> List[Ticket]:
        """
        Tickets whose status is in the open set and that are not paused.

        Rows that fail to map to a ``Ticket`` are left out and reported
        through ``on_unreadable``.
        """

    @abstractmethod
    async def list_for_recalculation(
        self,
        org_id: Optional[str] = None,
        ticket_ids: Optional[Sequence[str]] = None,
        on_unreadable: Optional[UnreadableTicketCallback] = None
    ) -> List[Ticket]:
        """Tickets selected for SLA target recalculation; unreadable rows as above."""

    @abstractmethod
    async def update_priority(self, ticket_id: str, priority: Priority) -> None:
        """Persist a new priority."""

    @abstractmethod
    async def update_pause(
        self,
        ticket_id: str,
        paused_since: Optional[datetime],
        reason: Optional[PauseReason]
    ) -> None:
        """Persist the pause columns (both set or both null)."""

    @abstractmethod
    async def update_targets(
        self,
        ticket_id: str,
        response_hours: float,
        resolution_hours: float
    ) -> None:
        """Persist response/resolution targets."""


class IOrganizationRepository(ABC):
    """Interface for organization configuration access (read-only)."""

    @abstractmethod
    async def get_business_hours(self, org_id: str) -> Optional[BusinessHoursConfig]:
        """Business hours, or None for 24/7 tracking."""

    @abstractmethod
    async def get_sla_policy(self, org_id: str) -> Optional[OrganizationSLAPolicy]:
        """Per-priority target overrides, if the organization has any."""

    @abstractmethod
    async def list_admin_ids(self, org_id: str) -> List[str]:
        """User IDs of the organization's active admins."""


class INotificationService(ABC):
    """Interface for notification dispatch."""

    @abstractmethod
    async def notify_user(
        self,
        user_id: str,
        kind: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
        data: Optional[dict[str, Any]] = None
    ) -> None:
        """Deliver one notification to one user."""


class IAuditLog(ABC):
    """Interface for audit log writes."""

    @abstractmethod
    async def record(
        self,
        org_id: str,
        ticket_id: str,
        action: AuditAction,
        details: dict[str, Any]
    ) -> None:
        """Append one audit entry."""

    @abstractmethod
    async def has_entry(
        self,
        ticket_id: str,
        action: AuditAction,
        **details: Any
    ) -> bool:
        """Whether the ticket has an entry for ``action`` whose details contain ``details``."""


class ITransactionScope(ABC):
    """Transaction boundary around one ticket inside a batch."""

    @abstractmethod
    def isolated(self) -> AsyncContextManager[Any]:
        """
        Scope whose writes are undone together if it exits with an error.

        Writes made in earlier scopes are unaffected.
        """


class NullTransactionScope(ITransactionScope):
    """No isolation; used when the collaborators are not transactional."""

    def isolated(self) -> AsyncContextManager[Any]:
        return nullcontext()


class ISLAPolicyProvider(ABC):
    """Interface for SLA policy configuration access."""

    @abstractmethod
    def get_config(self) -> SLAPolicyConfig:
        """Get current SLA policy configuration."""
