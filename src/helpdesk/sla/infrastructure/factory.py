"""
SLA Service Wiring
==================

Builds the SLA application services on top of one database session.

Used by the HTTP dependencies and by the scheduled sweep, so both run the
same object graph.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.sla.application import (
    EscalationEngine,
    INotificationService,
    ISLAPolicyProvider,
    PauseController,
    SLAMetricsCalculator,
    SLANotifier,
    SLATargetService,
    WarningScanner,
)
from helpdesk.sla.infrastructure.external import SlackClient, SlackMirroredNotificationService
from helpdesk.sla.infrastructure.repositories import (
    SQLAlchemyAuditLog,
    SQLAlchemyNotificationService,
    SQLAlchemyOrganizationRepository,
    SQLAlchemyTicketRepository,
    SQLAlchemyTransactionScope,
)


@dataclass
class SLAServices:
    pause: PauseController
    metrics: SLAMetricsCalculator
    escalation: EscalationEngine
    scanner: WarningScanner
    targets: SLATargetService


def build_sla_services(
    session: AsyncSession,
    policy_provider: ISLAPolicyProvider,
    slack_client: Optional[SlackClient] = None,
    scan_budget_seconds: Optional[float] = None,
    escalate_on_scan: bool = False
) -> SLAServices:
    """Wire repositories, notifier and services for one session."""
    ticket_repo = SQLAlchemyTicketRepository(session)
    org_repo = SQLAlchemyOrganizationRepository(session)
    audit_log = SQLAlchemyAuditLog(session)
    transactions = SQLAlchemyTransactionScope(session)

    notification_service: INotificationService = SQLAlchemyNotificationService(session)
    if slack_client is not None and slack_client.enabled:
        notification_service = SlackMirroredNotificationService(notification_service, slack_client)

    calculator = SLAMetricsCalculator(ticket_repo, org_repo, policy_provider)
    notifier = SLANotifier(notification_service, org_repo)
    escalation = EscalationEngine(
        ticket_repo, calculator, notifier, audit_log, transaction_scope=transactions
    )
    scanner = WarningScanner(
        ticket_repo,
        calculator,
        notifier,
        audit_log,
        escalation_engine=escalation if escalate_on_scan else None,
        budget_seconds=scan_budget_seconds,
        transaction_scope=transactions,
    )

    return SLAServices(
        pause=PauseController(ticket_repo, org_repo),
        metrics=calculator,
        escalation=escalation,
        scanner=scanner,
        targets=SLATargetService(
            ticket_repo, org_repo, policy_provider, transaction_scope=transactions
        ),
    )
