"""
SLA Warning Scanner
===================

Periodic sweep over open, unpaused tickets that emits tiered SLA warnings.

Intended to run every 5-10 minutes. Tickets are evaluated sequentially and
independently: each runs in its own transaction scope, and a failure on one
ticket (including a row that cannot be read) is logged and counted while the
sweep moves on.
"""

import time
from typing import Callable, List, Optional

from helpdesk.config import AuditAction, SLATrack
from helpdesk.shared.infrastructure.logging import get_context_logger, log_latency
from helpdesk.sla.application.escalation import EscalationEngine
from helpdesk.sla.application.interfaces import (
    IAuditLog, ITicketRepository, ITransactionScope, NullTransactionScope
)
from helpdesk.sla.application.metrics import SLAMetricsCalculator, percentage_consumed
from helpdesk.sla.application.notifications import SLANotifier
from helpdesk.sla.domain import (
    ScanResult, SLAMetrics, SLAWarning, ThresholdClassifier, Ticket
)


class WarningNotificationPolicy:
    """
    Decides whether a warning is handed to the notification path.

    Hook for suppressing repeat notifications of an unchanged tier. The
    base policy notifies on every sweep.
    """

    def should_notify(self, ticket: Ticket, warning: SLAWarning) -> bool:
        return True

    def record_notified(self, ticket: Ticket, warning: SLAWarning) -> None:
        """Called after a warning's notifications were dispatched."""


class WarningScanner:
    """Sweeps open tickets, classifies consumption and emits warnings."""

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        metrics_calculator: SLAMetricsCalculator,
        notifier: SLANotifier,
        audit_log: IAuditLog,
        escalation_engine: Optional[EscalationEngine] = None,
        notification_policy: Optional[WarningNotificationPolicy] = None,
        budget_seconds: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
        transaction_scope: Optional[ITransactionScope] = None
    ):
        self._ticket_repo = ticket_repository
        self._calculator = metrics_calculator
        self._notifier = notifier
        self._audit_log = audit_log
        self._escalation = escalation_engine
        self._policy = notification_policy or WarningNotificationPolicy()
        self._budget_seconds = budget_seconds
        self._monotonic = monotonic
        self._transactions = transaction_scope or NullTransactionScope()

    @staticmethod
    def evaluate_metrics(ticket: Ticket, metrics: SLAMetrics) -> List[SLAWarning]:
        """Warnings for every running track whose consumption reached a tier."""
        warnings = []
        for track in (SLATrack.RESPONSE, SLATrack.RESOLUTION):
            track_metrics = metrics.track(track)
            if not track_metrics.is_running or track_metrics.elapsed_hours is None:
                continue

            percentage = percentage_consumed(track_metrics.elapsed_hours, track_metrics.target_hours)
            tier = ThresholdClassifier.classify(percentage)
            if tier is None:
                continue

            warnings.append(SLAWarning(
                ticket_id=ticket.id,
                track=track,
                tier=tier,
                hours_elapsed=track_metrics.elapsed_hours,
                hours_target=track_metrics.target_hours,
                percentage=percentage,
                assignee_id=ticket.assignee_id,
            ))
        return warnings

    async def scan(self) -> ScanResult:
        """
        Run one sweep.

        Returns:
            ScanResult with tickets checked, warnings emitted, notifications
            sent, tickets that failed and tickets deferred by the budget
        """
        logger = get_context_logger(__name__)
        result = ScanResult()

        def unreadable(ticket_id: str, error: Exception) -> None:
            result.failed += 1
            logger.error(
                "Skipping unreadable ticket row",
                extra={"ticket_id": ticket_id, "error": str(error)}
            )

        tickets = await self._ticket_repo.list_open_unpaused(on_unreadable=unreadable)
        deadline = (
            self._monotonic() + self._budget_seconds
            if self._budget_seconds is not None else None
        )

        with log_latency(logger, "sla_warning_scan", candidates=len(tickets)):
            for index, ticket in enumerate(tickets):
                if deadline is not None and self._monotonic() >= deadline:
                    result.deferred = len(tickets) - index
                    logger.warning(
                        "SLA scan budget exhausted, deferring remaining tickets",
                        extra={"deferred": result.deferred, "budget_seconds": self._budget_seconds}
                    )
                    break

                if ticket.is_paused:
                    continue

                result.checked += 1
                try:
                    async with self._transactions.isolated():
                        await self._process(ticket, result, logger)
                except Exception as e:
                    result.failed += 1
                    logger.error(
                        "Failed to check SLA for ticket",
                        extra={"ticket_id": ticket.id, "error": str(e)},
                        exc_info=True
                    )

        logger.info("SLA warning scan finished", extra=result.to_dict())
        return result

    async def _process(self, ticket: Ticket, result: ScanResult, logger) -> None:
        metrics = await self._calculator.metrics_for(ticket)
        warnings = self.evaluate_metrics(ticket, metrics)

        for warning in warnings:
            result.warnings.append(warning)
            result.notifications_sent += await self._notify(ticket, warning, logger)
            await self._audit(ticket, warning, logger)

        if warnings and self._escalation is not None:
            await self._escalate(ticket, logger)

    async def _notify(self, ticket: Ticket, warning: SLAWarning, logger) -> int:
        if not self._policy.should_notify(ticket, warning):
            return 0
        try:
            delivery = await self._notifier.notify_warning(ticket, warning)
        except Exception as e:
            logger.error(
                "SLA warning notification failed",
                extra={"ticket_id": ticket.id, "track": warning.track.value, "error": str(e)}
            )
            return 0
        if delivery.sent:
            self._policy.record_notified(ticket, warning)
        return delivery.sent

    async def _audit(self, ticket: Ticket, warning: SLAWarning, logger) -> None:
        try:
            await self._audit_log.record(
                ticket.org_id,
                ticket.id,
                AuditAction.TICKET_SLA_WARNING,
                {
                    "type": warning.track.value,
                    "threshold": warning.tier.value,
                    "percentage": round(warning.percentage),
                },
            )
        except Exception as e:
            logger.error(
                "SLA warning audit write failed",
                extra={"ticket_id": ticket.id, "track": warning.track.value, "error": str(e)}
            )

    async def _escalate(self, ticket: Ticket, logger) -> None:
        try:
            await self._escalation.escalate(ticket.id)
        except Exception as e:
            logger.error(
                "SLA escalation failed during scan",
                extra={"ticket_id": ticket.id, "error": str(e)},
                exc_info=True
            )
