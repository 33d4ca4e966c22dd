"""
Shared fixtures for the SLA engine tests.
"""

from datetime import datetime, time

import pytest

from helpdesk.config import Priority, TicketStatus
from helpdesk.sla.application import (
    EscalationEngine,
    PauseController,
    SLAMetricsCalculator,
    SLANotifier,
    WarningScanner,
)
from helpdesk.sla.domain import BusinessHoursConfig, Ticket
from tests.support import (
    FakeOrganizationRepository,
    FakeTicketRepository,
    FixedClock,
    RecordingAuditLog,
    RecordingNotificationService,
    utc,
)


@pytest.fixture
def weekday_hours() -> BusinessHoursConfig:
    """Mon-Fri 09:00-17:00 UTC."""
    return BusinessHoursConfig(
        timezone="UTC",
        working_days=frozenset({1, 2, 3, 4, 5}),
        start=time(9, 0),
        end=time(17, 0),
    )


@pytest.fixture
def make_ticket():
    def _make(
        ticket_id: str = "t-1",
        org_id: str = "org-1",
        priority: Priority = Priority.P3,
        status: TicketStatus = TicketStatus.OPEN,
        created_at: datetime = utc(2024, 1, 15, 9, 0),
        **fields
    ) -> Ticket:
        paused_since = fields.pop("paused_since", None)
        pause_reason = fields.pop("pause_reason", None)
        return Ticket.restore(
            id=ticket_id,
            org_id=org_id,
            priority=priority,
            status=status,
            created_at=created_at,
            paused_since=paused_since,
            pause_reason=pause_reason,
            **fields
        )
    return _make


@pytest.fixture
def ticket_repo() -> FakeTicketRepository:
    return FakeTicketRepository()


@pytest.fixture
def org_repo() -> FakeOrganizationRepository:
    return FakeOrganizationRepository(admins={"org-1": ["admin-1", "admin-2"]})


@pytest.fixture
def notifications() -> RecordingNotificationService:
    return RecordingNotificationService()


@pytest.fixture
def audit_log() -> RecordingAuditLog:
    return RecordingAuditLog()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(utc(2024, 1, 15, 12, 0))


@pytest.fixture
def calculator(ticket_repo, org_repo, clock) -> SLAMetricsCalculator:
    return SLAMetricsCalculator(ticket_repo, org_repo, clock=clock)


@pytest.fixture
def notifier(notifications, org_repo) -> SLANotifier:
    return SLANotifier(notifications, org_repo, base_url="https://desk.example.com")


@pytest.fixture
def escalation_engine(ticket_repo, calculator, notifier, audit_log, clock) -> EscalationEngine:
    return EscalationEngine(ticket_repo, calculator, notifier, audit_log, clock=clock)


@pytest.fixture
def scanner(ticket_repo, calculator, notifier, audit_log) -> WarningScanner:
    return WarningScanner(ticket_repo, calculator, notifier, audit_log)


@pytest.fixture
def pause_controller(ticket_repo, org_repo, clock) -> PauseController:
    return PauseController(ticket_repo, org_repo, clock=clock)
