"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from helpdesk.config import (
    EscalationActionType, PauseReason, SLAStatus, SLATrack, TicketStatus, WarningTier
)
from helpdesk.sla.domain import EscalationAction, ScanResult, SLAMetrics, SLAWarning, TrackMetrics


# ========== Request DTOs ==========

class StatusChangeRequest(BaseModel):
    """Sent by the ticket lifecycle when a ticket changes status."""
    status: TicketStatus = Field(..., description="The ticket's new status")


class EscalateBatchRequest(BaseModel):
    ticket_ids: List[str] = Field(..., min_length=1, description="Tickets to escalate")


class RecalculateTargetsRequest(BaseModel):
    org_id: Optional[str] = Field(None, description="Restrict to one organization")
    ticket_ids: Optional[List[str]] = Field(None, description="Restrict to these tickets")


# ========== Response DTOs ==========

class TrackMetricsResponse(BaseModel):
    """SLA status of a single clock."""
    status: SLAStatus
    elapsed_hours: Optional[float] = None
    target_hours: Optional[float] = None
    percentage_consumed: Optional[float] = None
    met_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, metrics: TrackMetrics) -> "TrackMetricsResponse":
        return cls(
            status=metrics.status,
            elapsed_hours=metrics.elapsed_hours,
            target_hours=metrics.target_hours,
            percentage_consumed=metrics.percentage_consumed,
            met_at=metrics.met_at,
        )


class TicketMetricsResponse(BaseModel):
    """SLA snapshot for one ticket."""
    ticket_id: str
    computed_at: datetime
    paused_since: Optional[datetime] = None
    response: TrackMetricsResponse
    resolution: TrackMetricsResponse
    is_any_breached: bool

    @classmethod
    def from_domain(cls, metrics: SLAMetrics) -> "TicketMetricsResponse":
        return cls(
            ticket_id=metrics.ticket_id,
            computed_at=metrics.computed_at,
            paused_since=metrics.paused_since,
            response=TrackMetricsResponse.from_domain(metrics.response),
            resolution=TrackMetricsResponse.from_domain(metrics.resolution),
            is_any_breached=metrics.is_any_breached,
        )


class PauseStateResponse(BaseModel):
    ticket_id: str
    paused_since: Optional[datetime] = None
    pause_reason: Optional[PauseReason] = None


class EscalationActionResponse(BaseModel):
    type: EscalationActionType
    executed: bool
    timestamp: datetime

    @classmethod
    def from_domain(cls, action: EscalationAction) -> "EscalationActionResponse":
        return cls(type=action.type, executed=action.executed, timestamp=action.timestamp)


class EscalationResponse(BaseModel):
    ticket_id: str
    actions: List[EscalationActionResponse] = Field(default_factory=list)


class EscalateBatchResponse(BaseModel):
    results: Dict[str, List[EscalationActionResponse]] = Field(default_factory=dict)


class SLAWarningResponse(BaseModel):
    ticket_id: str
    track: SLATrack
    tier: WarningTier
    hours_elapsed: float
    hours_target: float
    percentage: float
    assignee_id: Optional[str] = None

    @classmethod
    def from_domain(cls, warning: SLAWarning) -> "SLAWarningResponse":
        return cls(
            ticket_id=warning.ticket_id,
            track=warning.track,
            tier=warning.tier,
            hours_elapsed=warning.hours_elapsed,
            hours_target=warning.hours_target,
            percentage=warning.percentage,
            assignee_id=warning.assignee_id,
        )


class ScanResponse(BaseModel):
    checked: int
    warnings: List[SLAWarningResponse] = Field(default_factory=list)
    notifications_sent: int
    failed: int = 0
    deferred: int = 0

    @classmethod
    def from_domain(cls, result: ScanResult) -> "ScanResponse":
        return cls(
            checked=result.checked,
            warnings=[SLAWarningResponse.from_domain(w) for w in result.warnings],
            notifications_sent=result.notifications_sent,
            failed=result.failed,
            deferred=result.deferred,
        )


class RecalculateTargetsResponse(BaseModel):
    updated: int
    skipped: int
    failed: int = 0
