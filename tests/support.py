"""
In-memory fakes for the SLA engine tests.

They stand in for the database-backed repositories, the notification
service and the audit log so application services can be exercised
without infrastructure.
"""

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from helpdesk.config import AuditAction, NotificationType, OPEN_STATUSES, PauseReason, Priority
from helpdesk.sla.application import (
    IAuditLog,
    INotificationService,
    IOrganizationRepository,
    ISLAPolicyProvider,
    ITicketRepository,
)
from helpdesk.sla.domain import (
    BusinessHoursConfig, OrganizationSLAPolicy, SLAPolicyConfig, Ticket
)


def utc(year, month, day, hour=0, minute=0, second=0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


class FakeTicketRepository(ITicketRepository):
    """Stores tickets by id; reads return copies like a real database would."""

    def __init__(self, tickets: Sequence[Ticket] = ()):
        self.tickets: Dict[str, Ticket] = {t.id: copy.deepcopy(t) for t in tickets}
        self.priority_updates: List[tuple] = []
        self.pause_updates: List[tuple] = []
        self.target_updates: List[tuple] = []
        self.fail_on_get: set = set()
        self.unreadable: set = set()

    def add(self, ticket: Ticket) -> None:
        self.tickets[ticket.id] = copy.deepcopy(ticket)

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        if ticket_id in self.fail_on_get:
            raise RuntimeError(f"storage error for {ticket_id}")
        ticket = self.tickets.get(ticket_id)
        return copy.deepcopy(ticket) if ticket else None

    def _readable(self, tickets, on_unreadable) -> List[Ticket]:
        readable = []
        for ticket in tickets:
            if ticket.id in self.unreadable:
                if on_unreadable is not None:
                    on_unreadable(ticket.id, ValueError(f"corrupt row {ticket.id}"))
                continue
            readable.append(copy.deepcopy(ticket))
        return readable

    async def list_open_unpaused(self, on_unreadable=None) -> List[Ticket]:
        return self._readable(
            [
                t for t in sorted(self.tickets.values(), key=lambda t: t.created_at)
                if t.status in OPEN_STATUSES and not t.is_paused
            ],
            on_unreadable,
        )

    async def list_for_recalculation(
        self,
        org_id: Optional[str] = None,
        ticket_ids: Optional[Sequence[str]] = None,
        on_unreadable=None
    ) -> List[Ticket]:
        return self._readable(
            [
                t for t in self.tickets.values()
                if (org_id is None or t.org_id == org_id)
                and (not ticket_ids or t.id in ticket_ids)
            ],
            on_unreadable,
        )

    async def update_priority(self, ticket_id: str, priority: Priority) -> None:
        self.priority_updates.append((ticket_id, priority))
        self.tickets[ticket_id].priority = priority

    async def update_pause(
        self,
        ticket_id: str,
        paused_since: Optional[datetime],
        reason: Optional[PauseReason]
    ) -> None:
        self.pause_updates.append((ticket_id, paused_since, reason))
        stored = self.tickets[ticket_id]
        if paused_since is None:
            stored.resume()
        else:
            stored.pause(reason, paused_since)

    async def update_targets(self, ticket_id: str, response_hours: float, resolution_hours: float) -> None:
        self.target_updates.append((ticket_id, response_hours, resolution_hours))
        self.tickets[ticket_id].response_target_hours = response_hours
        self.tickets[ticket_id].resolution_target_hours = resolution_hours


class FakeOrganizationRepository(IOrganizationRepository):
    def __init__(
        self,
        business_hours: Optional[Dict[str, Optional[BusinessHoursConfig]]] = None,
        policies: Optional[Dict[str, OrganizationSLAPolicy]] = None,
        admins: Optional[Dict[str, List[str]]] = None
    ):
        self.business_hours = business_hours or {}
        self.policies = policies or {}
        self.admins = admins or {}

    async def get_business_hours(self, org_id: str) -> Optional[BusinessHoursConfig]:
        return self.business_hours.get(org_id)

    async def get_sla_policy(self, org_id: str) -> Optional[OrganizationSLAPolicy]:
        return self.policies.get(org_id)

    async def list_admin_ids(self, org_id: str) -> List[str]:
        return list(self.admins.get(org_id, []))


class RecordingNotificationService(INotificationService):
    def __init__(self, fail_for: Sequence[str] = ()):
        self.sent: List[Dict[str, Any]] = []
        self.fail_for = set(fail_for)

    async def notify_user(
        self,
        user_id: str,
        kind: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
        data: Optional[dict] = None
    ) -> None:
        if user_id in self.fail_for:
            raise RuntimeError(f"notification to {user_id} failed")
        self.sent.append({
            "user_id": user_id, "kind": kind, "title": title,
            "message": message, "link": link, "data": data,
        })

    def recipients(self) -> List[str]:
        return [n["user_id"] for n in self.sent]


class RecordingAuditLog(IAuditLog):
    def __init__(self, fail: bool = False):
        self.entries: List[Dict[str, Any]] = []
        self.fail = fail

    async def record(self, org_id: str, ticket_id: str, action: AuditAction, details: dict) -> None:
        if self.fail:
            raise RuntimeError("audit store unavailable")
        self.entries.append({
            "org_id": org_id, "ticket_id": ticket_id, "action": action, "details": details,
        })

    async def has_entry(self, ticket_id: str, action: AuditAction, **details) -> bool:
        return any(
            e["ticket_id"] == ticket_id and e["action"] == action
            and all(e["details"].get(k) == v for k, v in details.items())
            for e in self.entries
        )


class StaticPolicyProvider(ISLAPolicyProvider):
    def __init__(self, config: Optional[SLAPolicyConfig] = None):
        self.config = config or SLAPolicyConfig()

    def get_config(self) -> SLAPolicyConfig:
        return self.config


class FixedClock:
    """Callable clock that tests move explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


