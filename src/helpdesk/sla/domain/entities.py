"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from helpdesk.config import (
    EscalationActionType, PauseReason, Priority,
    SLAStatus, SLATrack, TicketStatus, WarningTier
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PauseState:
    """An SLA pause: when the clocks froze and why."""
    paused_since: datetime
    reason: PauseReason


@dataclass
class Ticket:
    """
    Ticket entity as seen by the SLA engine.

    Ticket lifecycle code owns status and milestone fields. The SLA engine
    writes only the pause state (through ``pause``/``resume``) and the
    priority (through ``escalate_priority``).
    """

    # Core attributes
    id: str
    org_id: str
    priority: Priority
    status: TicketStatus
    created_at: datetime

    # Milestones
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    # Targets in hours
    response_target_hours: Optional[float] = None
    resolution_target_hours: Optional[float] = None

    assignee_id: Optional[str] = None
    key: Optional[str] = None
    subject: Optional[str] = None

    _pause: Optional[PauseState] = field(default=None, repr=False)

    def __post_init__(self):
        """Validate ticket on initialization."""
        if self.first_response_at and self.first_response_at < self.created_at:
            raise ValueError("first_response_at cannot be before created_at")

        if self.resolved_at and self.resolved_at < self.created_at:
            raise ValueError("resolved_at cannot be before created_at")

    @classmethod
    def restore(
        cls,
        paused_since: Optional[datetime] = None,
        pause_reason: Optional[PauseReason] = None,
        **fields
    ) -> "Ticket":
        """
        Rebuild a ticket from storage, including its pause columns.

        The pause columns are set together or not at all.
        """
        if (paused_since is None) != (pause_reason is None):
            raise ValueError("paused_since and pause_reason must both be set or both be null")
        pause = PauseState(paused_since, PauseReason(pause_reason)) if paused_since else None
        return cls(_pause=pause, **fields)

    @property
    def pause_state(self) -> Optional[PauseState]:
        return self._pause

    @property
    def paused_since(self) -> Optional[datetime]:
        return self._pause.paused_since if self._pause else None

    @property
    def pause_reason(self) -> Optional[PauseReason]:
        return self._pause.reason if self._pause else None

    @property
    def is_paused(self) -> bool:
        return self._pause is not None

    @property
    def display_key(self) -> str:
        return self.key or self.id

    def pause(self, reason: PauseReason, at: datetime) -> bool:
        """
        Freeze the SLA clocks.

        Returns False, leaving the original pause start untouched, when the
        ticket is already paused.
        """
        if self._pause is not None:
            return False
        self._pause = PauseState(paused_since=at, reason=reason)
        return True

    def resume(self) -> bool:
        """Clear the pause. Returns False when the ticket was not paused."""
        if self._pause is None:
            return False
        self._pause = None
        return True

    def escalate_priority(self, to: Priority) -> Priority:
        """Set a new priority and return the previous one."""
        previous = self.priority
        self.priority = to
        return previous


@dataclass(frozen=True)
class TrackMetrics:
    """SLA state of one clock (response or resolution)."""
    track: SLATrack
    status: SLAStatus
    elapsed_hours: Optional[float] = None
    target_hours: Optional[float] = None
    met_at: Optional[datetime] = None

    @property
    def percentage_consumed(self) -> Optional[float]:
        if self.elapsed_hours is None or not self.target_hours:
            return None
        return self.elapsed_hours / self.target_hours * 100

    @property
    def is_running(self) -> bool:
        """Has a target and its milestone has not been reached yet."""
        return self.target_hours is not None and self.met_at is None


@dataclass(frozen=True)
class SLAMetrics:
    """
    SLA snapshot for a ticket.

    Computed fresh on every evaluation and never persisted; valid only at
    ``computed_at``.
    """

    ticket_id: str
    response: TrackMetrics
    resolution: TrackMetrics
    computed_at: datetime
    paused_since: Optional[datetime] = None

    @property
    def is_any_breached(self) -> bool:
        return SLAStatus.BREACHED in (self.response.status, self.resolution.status)

    def track(self, track: SLATrack) -> TrackMetrics:
        return self.response if track == SLATrack.RESPONSE else self.resolution


@dataclass(frozen=True)
class SLAWarning:
    """A track that crossed a warning tier during a sweep."""
    ticket_id: str
    track: SLATrack
    tier: WarningTier
    hours_elapsed: float
    hours_target: float
    percentage: float
    assignee_id: Optional[str] = None

    @property
    def hours_remaining(self) -> float:
        return max(0.0, self.hours_target - self.hours_elapsed)


@dataclass(frozen=True)
class EscalationAction:
    """An action taken by one escalation pass; side effects already applied."""
    type: EscalationActionType
    executed: bool
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class ScanResult:
    """Outcome of one warning sweep."""
    checked: int = 0
    warnings: List[SLAWarning] = field(default_factory=list)
    notifications_sent: int = 0
    failed: int = 0
    deferred: int = 0

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "warnings_found": len(self.warnings),
            "notifications_sent": self.notifications_sent,
            "failed": self.failed,
            "deferred": self.deferred,
        }
