"""
SLA Controllers (API Routes)
=============================

Internal FastAPI routes for the SLA engine, called by the ticket lifecycle
and by operators.

Controllers are thin - they delegate to application services. Application
exceptions are turned into HTTP errors by the shared exception handlers.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import settings
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.dto import (
    EscalateBatchRequest,
    EscalateBatchResponse,
    EscalationActionResponse,
    EscalationResponse,
    PauseStateResponse,
    RecalculateTargetsRequest,
    RecalculateTargetsResponse,
    ScanResponse,
    StatusChangeRequest,
    TicketMetricsResponse,
)
from helpdesk.sla.infrastructure.factory import SLAServices, build_sla_services

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA"])


TICKET_METRICS_EXAMPLE = {
    "ticket_id": "t-1001",
    "computed_at": "2024-01-15T14:00:00Z",
    "paused_since": None,
    "response": {
        "status": "met",
        "elapsed_hours": 0.5,
        "target_hours": 4.0,
        "percentage_consumed": 12.5,
        "met_at": "2024-01-15T09:30:00Z"
    },
    "resolution": {
        "status": "pending",
        "elapsed_hours": 5.0,
        "target_hours": 24.0,
        "percentage_consumed": 20.83,
        "met_at": None
    },
    "is_any_breached": False
}


# ========== Dependencies ==========

async def get_sla_services(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> SLAServices:
    """Build SLA services on the request's session."""
    return build_sla_services(
        session,
        request.app.state.sla_config_manager,
        slack_client=getattr(request.app.state, "slack_client", None),
        scan_budget_seconds=settings.sla_scan_budget_seconds,
        escalate_on_scan=settings.sla_escalate_on_scan,
    )


# ========== Route Handlers ==========

@router.get(
    "/tickets/{ticket_id}/metrics",
    response_model=TicketMetricsResponse,
    summary="Get ticket SLA metrics",
    responses={
        200: {"content": {"application/json": {"example": TICKET_METRICS_EXAMPLE}}},
        404: {"description": "Ticket not found"}
    }
)
async def get_ticket_metrics(
    ticket_id: str,
    services: SLAServices = Depends(get_sla_services)
):
    """Business-hours elapsed time, target and status for both SLA clocks."""
    metrics = await services.metrics.calculate(ticket_id)
    return TicketMetricsResponse.from_domain(metrics)


@router.post(
    "/tickets/{ticket_id}/status",
    response_model=PauseStateResponse,
    summary="Sync SLA pause state after a status change",
    responses={404: {"description": "Ticket not found"}}
)
async def ticket_status_changed(
    ticket_id: str,
    request: StatusChangeRequest,
    services: SLAServices = Depends(get_sla_services)
):
    """
    Called by the ticket lifecycle whenever a ticket's status changes.

    `WAITING_ON_CUSTOMER` pauses both clocks; any other status resumes them.
    """
    ticket = await services.pause.sync_pause_state_by_id(ticket_id, request.status)
    return PauseStateResponse(
        ticket_id=ticket.id,
        paused_since=ticket.paused_since,
        pause_reason=ticket.pause_reason,
    )


@router.post(
    "/tickets/{ticket_id}/escalate",
    response_model=EscalationResponse,
    summary="Escalate one ticket",
    responses={404: {"description": "Ticket not found"}}
)
async def escalate_ticket(
    ticket_id: str,
    services: SLAServices = Depends(get_sla_services)
):
    actions = await services.escalation.escalate(ticket_id)
    return EscalationResponse(
        ticket_id=ticket_id,
        actions=[EscalationActionResponse.from_domain(a) for a in actions],
    )


@router.post(
    "/tickets/escalate",
    response_model=EscalateBatchResponse,
    summary="Escalate a batch of tickets"
)
async def escalate_tickets(
    request: EscalateBatchRequest,
    services: SLAServices = Depends(get_sla_services)
):
    """A ticket that fails to escalate maps to an empty action list."""
    results = await services.escalation.escalate_batch(request.ticket_ids)
    return EscalateBatchResponse(results={
        ticket_id: [EscalationActionResponse.from_domain(a) for a in actions]
        for ticket_id, actions in results.items()
    })


@router.post(
    "/scan",
    response_model=ScanResponse,
    summary="Run one SLA warning sweep now"
)
async def run_scan(services: SLAServices = Depends(get_sla_services)):
    result = await services.scanner.scan()
    return ScanResponse.from_domain(result)


@router.post(
    "/targets/recalculate",
    response_model=RecalculateTargetsResponse,
    summary="Recalculate stored SLA targets"
)
async def recalculate_targets(
    request: RecalculateTargetsRequest,
    services: SLAServices = Depends(get_sla_services)
):
    """Re-resolve targets after an organization policy or the default table changed."""
    counts = await services.targets.recalculate(request.org_id, request.ticket_ids)
    return RecalculateTargetsResponse(**counts)
