"""
SLA Domain Layer
================

Domain layer for SLA tracking and escalation.

Contains:
- Entities: Ticket (with its embedded pause state), SLAMetrics, SLAWarning,
  EscalationAction
- Value Objects: BusinessHoursConfig, SLA target policies
- Domain Services: BusinessHoursClock, ThresholdClassifier

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.sla.domain.entities import (
    Ticket,
    PauseState,
    TrackMetrics,
    SLAMetrics,
    SLAWarning,
    EscalationAction,
    ScanResult,
    utc_now,
)
from helpdesk.sla.domain.value_objects import (
    BusinessHoursConfig,
    SLATargets,
    SLAPolicyConfig,
    OrganizationSLAPolicy,
    PriorityTargetOverride,
    DEFAULT_SLA_TARGETS,
    resolve_sla_targets,
    ThresholdClassifier,
)
from helpdesk.sla.domain.business_hours import BusinessHoursClock

__all__ = [
    # Entities
    "Ticket",
    "PauseState",
    "TrackMetrics",
    "SLAMetrics",
    "SLAWarning",
    "EscalationAction",
    "ScanResult",
    "utc_now",
    # Value Objects & Services
    "BusinessHoursConfig",
    "SLATargets",
    "SLAPolicyConfig",
    "OrganizationSLAPolicy",
    "PriorityTargetOverride",
    "DEFAULT_SLA_TARGETS",
    "resolve_sla_targets",
    "ThresholdClassifier",
    "BusinessHoursClock",
]
