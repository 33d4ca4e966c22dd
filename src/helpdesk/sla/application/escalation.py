"""
SLA Escalation Engine
=====================

Turns a ticket's SLA state into escalation actions and executes them.

Side effects (notifications, priority change, audit rows) have happened by
the time ``escalate`` returns. The pass is best-effort and at-least-once:
a failed notification or audit write is logged and reported through the
action's ``executed`` flag, and already-applied changes are not rolled back.

The priority bump happens once per ticket: a prior "SLA breach escalation"
priority change in the audit log marks the ticket as already escalated, so
re-running a pass (manually or from the sweep) only re-sends notices.

Priority writes are last-write-wins against concurrent human edits; no lock
is taken.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from helpdesk.config import (
    AuditAction, EscalationActionType, PRIORITY_LADDER, Priority, SLAStatus
)
from helpdesk.core import ResourceNotFoundException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.interfaces import (
    IAuditLog, ITicketRepository, ITransactionScope, NullTransactionScope
)
from helpdesk.sla.application.metrics import SLAMetricsCalculator
from helpdesk.sla.application.notifications import SLANotifier
from helpdesk.sla.domain import EscalationAction, Ticket, TrackMetrics, utc_now

logger = get_logger(__name__)

ESCALATION_REASON = "SLA breach escalation"


def next_priority(priority: Priority) -> Optional[Priority]:
    """One step up the ladder P4 -> P3 -> P2 -> P1; None at P1."""
    index = PRIORITY_LADDER.index(priority)
    if index == len(PRIORITY_LADDER) - 1:
        return None
    return PRIORITY_LADDER[index + 1]


class EscalationEngine:
    """
    Executes escalation for one ticket at a time.

    - Response track at warning with an assignee: notify the assignee.
    - Response track breached: notify managers and raise priority one step,
      once per ticket.
    - Resolution track breached: notify managers.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        metrics_calculator: SLAMetricsCalculator,
        notifier: SLANotifier,
        audit_log: IAuditLog,
        clock: Callable[[], datetime] = utc_now,
        transaction_scope: Optional[ITransactionScope] = None
    ):
        self._ticket_repo = ticket_repository
        self._calculator = metrics_calculator
        self._notifier = notifier
        self._audit_log = audit_log
        self._clock = clock
        self._transactions = transaction_scope or NullTransactionScope()

    async def escalate(self, ticket_id: str) -> List[EscalationAction]:
        """
        Check a ticket's SLA and perform the escalation actions it calls for.

        Raises:
            ResourceNotFoundException: if the ticket does not exist
        """
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        metrics = await self._calculator.metrics_for(ticket)
        actions: List[EscalationAction] = []

        if metrics.response.status == SLAStatus.WARNING and ticket.assignee_id:
            executed = await self._notify_assignee(ticket, metrics.response)
            actions.append(self._action(EscalationActionType.NOTIFY_ASSIGNEE, executed))

        if metrics.response.status == SLAStatus.BREACHED:
            executed = await self._notify_managers(ticket, metrics.response)
            actions.append(self._action(EscalationActionType.NOTIFY_MANAGER, executed))

            new_priority = next_priority(ticket.priority)
            if new_priority is not None and not await self._already_escalated(ticket):
                await self._raise_priority(ticket, new_priority)
                actions.append(self._action(EscalationActionType.INCREASE_PRIORITY, True))

        if metrics.resolution.status == SLAStatus.BREACHED:
            executed = await self._notify_managers(ticket, metrics.resolution)
            actions.append(self._action(EscalationActionType.NOTIFY_MANAGER, executed))

        if actions:
            logger.info(
                "SLA escalation executed",
                extra={
                    "ticket_id": ticket.id,
                    "org_id": ticket.org_id,
                    "actions": [a.type.value for a in actions],
                }
            )
        return actions

    async def escalate_batch(
        self,
        ticket_ids: Sequence[str]
    ) -> Dict[str, List[EscalationAction]]:
        """
        Escalate many tickets; a failing ticket maps to an empty list.

        Each ticket runs in its own transaction scope, so a failure leaves
        the other tickets' changes in place.
        """
        results: Dict[str, List[EscalationAction]] = {}

        for ticket_id in ticket_ids:
            try:
                async with self._transactions.isolated():
                    results[ticket_id] = await self.escalate(ticket_id)
            except Exception as e:
                logger.error(
                    "Failed to escalate SLA for ticket",
                    extra={"ticket_id": ticket_id, "error": str(e)},
                    exc_info=True
                )
                results[ticket_id] = []

        return results

    def _action(self, kind: EscalationActionType, executed: bool) -> EscalationAction:
        return EscalationAction(type=kind, executed=executed, timestamp=self._clock())

    async def _already_escalated(self, ticket: Ticket) -> bool:
        return await self._audit_log.has_entry(
            ticket.id, AuditAction.TICKET_PRIORITY_CHANGED, reason=ESCALATION_REASON
        )

    async def _raise_priority(self, ticket: Ticket, new_priority: Priority) -> None:
        # Priority is persisted before its audit entry is written.
        await self._ticket_repo.update_priority(ticket.id, new_priority)
        old_priority = ticket.escalate_priority(new_priority)

        try:
            await self._audit_log.record(
                ticket.org_id,
                ticket.id,
                AuditAction.TICKET_PRIORITY_CHANGED,
                {
                    "oldPriority": old_priority.value,
                    "newPriority": new_priority.value,
                    "reason": ESCALATION_REASON,
                },
            )
        except Exception as e:
            logger.error(
                "Priority change applied but audit write failed",
                extra={
                    "ticket_id": ticket.id,
                    "old_priority": old_priority.value,
                    "new_priority": new_priority.value,
                    "error": str(e),
                }
            )

    async def _notify_assignee(self, ticket: Ticket, metrics: TrackMetrics) -> bool:
        try:
            result = await self._notifier.notify_assignee_at_risk(ticket, metrics)
        except Exception as e:
            logger.error(
                "Assignee escalation notification failed",
                extra={"ticket_id": ticket.id, "error": str(e)}
            )
            return False
        return result.delivered

    async def _notify_managers(self, ticket: Ticket, metrics: TrackMetrics) -> bool:
        try:
            result = await self._notifier.notify_managers_breach(ticket, metrics)
        except Exception as e:
            logger.error(
                "Manager escalation notification failed",
                extra={"ticket_id": ticket.id, "track": metrics.track.value, "error": str(e)}
            )
            return False
        return result.delivered
