"""
SLA Application Layer
======================

Application layer for SLA tracking and escalation.

Contains:
- Interfaces: repository and collaborator abstractions
- Services: pause control, metrics, warning sweep, escalation, targets
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and the interfaces,
but not on concrete infrastructure implementations.
"""

from helpdesk.sla.application.interfaces import (
    ITicketRepository,
    IOrganizationRepository,
    INotificationService,
    IAuditLog,
    ISLAPolicyProvider,
    ITransactionScope,
    NullTransactionScope,
    UnreadableTicketCallback,
)
from helpdesk.sla.application.pause import PauseController
from helpdesk.sla.application.metrics import SLAMetricsCalculator, percentage_consumed
from helpdesk.sla.application.notifications import DeliveryResult, SLANotifier
from helpdesk.sla.application.escalation import EscalationEngine, next_priority
from helpdesk.sla.application.scanner import WarningScanner, WarningNotificationPolicy
from helpdesk.sla.application.targets import SLATargetService

__all__ = [
    # Interfaces
    "ITicketRepository",
    "IOrganizationRepository",
    "INotificationService",
    "IAuditLog",
    "ISLAPolicyProvider",
    "ITransactionScope",
    "NullTransactionScope",
    "UnreadableTicketCallback",
    # Services
    "PauseController",
    "SLAMetricsCalculator",
    "percentage_consumed",
    "SLANotifier",
    "DeliveryResult",
    "EscalationEngine",
    "next_priority",
    "WarningScanner",
    "WarningNotificationPolicy",
    "SLATargetService",
]
