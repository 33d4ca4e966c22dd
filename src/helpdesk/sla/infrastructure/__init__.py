"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA tracking:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: Policy file watcher, Slack client, scheduler
- Factory: Per-session wiring of the application services
"""

from helpdesk.sla.infrastructure.models import (
    OrganizationModel,
    MembershipModel,
    TicketModel,
    NotificationModel,
    AuditLogModel,
)
from helpdesk.sla.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyTransactionScope,
    SQLAlchemyOrganizationRepository,
    SQLAlchemyNotificationService,
    SQLAlchemyAuditLog,
)
from helpdesk.sla.infrastructure.external import (
    SLAConfigManager,
    CircuitBreaker,
    SlackClient,
    SlackMirroredNotificationService,
    SLAScheduler,
)
from helpdesk.sla.infrastructure.factory import SLAServices, build_sla_services

__all__ = [
    "OrganizationModel",
    "MembershipModel",
    "TicketModel",
    "NotificationModel",
    "AuditLogModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyTransactionScope",
    "SQLAlchemyOrganizationRepository",
    "SQLAlchemyNotificationService",
    "SQLAlchemyAuditLog",
    "SLAConfigManager",
    "CircuitBreaker",
    "SlackClient",
    "SlackMirroredNotificationService",
    "SLAScheduler",
    "SLAServices",
    "build_sla_services",
]
