"""
SLA Value Objects
==================

Immutable value objects for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import date, time
from typing import Any, Dict, FrozenSet, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from helpdesk.config import Priority, WarningTier


class BusinessHoursConfig(BaseModel):
    """
    Organization business hours.

    Working days use ISO numbering (1=Monday ... 7=Sunday). The working
    window is [start, end) in the organization's local time, and holidays
    are local calendar dates. An organization without a config is tracked
    24/7, which callers express as ``None``.
    """

    model_config = ConfigDict(frozen=True)

    timezone: str = Field(default="UTC", description="IANA timezone name")
    working_days: FrozenSet[int] = Field(
        default=frozenset({1, 2, 3, 4, 5}),
        description="ISO weekdays counted as working days"
    )
    start: time = Field(default=time(9, 0), description="Start of working hours (inclusive)")
    end: time = Field(default=time(17, 0), description="End of working hours (exclusive)")
    holidays: FrozenSet[date] = Field(default_factory=frozenset, description="Local holiday dates")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone '{v}'") from e
        return v

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, v: FrozenSet[int]) -> FrozenSet[int]:
        invalid = sorted(day for day in v if day < 1 or day > 7)
        if invalid:
            raise ValueError(f"working days must be within 1-7, got {invalid}")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "BusinessHoursConfig":
        if self.start >= self.end:
            raise ValueError("working hours start must be before end")
        return self

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def is_working_date(self, local_date: date) -> bool:
        """Whether a local calendar date is a working day and not a holiday."""
        return local_date.isoweekday() in self.working_days and local_date not in self.holidays

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BusinessHoursConfig":
        """
        Build a config from the JSON shape stored on organizations.

        Example:
            {
                "timezone": "Europe/Berlin",
                "workingDays": [1, 2, 3, 4, 5],
                "workingHours": {"start": "09:00", "end": "17:00"},
                "holidays": ["2026-12-25"]
            }
        """
        hours = data.get("workingHours") or {}
        return cls(
            timezone=data.get("timezone", "UTC"),
            working_days=frozenset(data.get("workingDays", [1, 2, 3, 4, 5])),
            start=hours.get("start", "09:00"),
            end=hours.get("end", "17:00"),
            holidays=frozenset(data.get("holidays") or []),
        )

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "timezone": self.timezone,
            "workingDays": sorted(self.working_days),
            "workingHours": {
                "start": self.start.strftime("%H:%M"),
                "end": self.end.strftime("%H:%M"),
            },
            "holidays": sorted(d.isoformat() for d in self.holidays),
        }


@dataclass(frozen=True)
class SLATargets:
    """Response and resolution targets in hours."""
    response_hours: float
    resolution_hours: float


DEFAULT_SLA_TARGETS: Dict[Priority, SLATargets] = {
    Priority.P1: SLATargets(response_hours=1, resolution_hours=4),
    Priority.P2: SLATargets(response_hours=4, resolution_hours=24),
    Priority.P3: SLATargets(response_hours=24, resolution_hours=72),
    Priority.P4: SLATargets(response_hours=48, resolution_hours=168),
}

FALLBACK_SLA_TARGETS = DEFAULT_SLA_TARGETS[Priority.P3]


class PriorityTargetOverride(BaseModel):
    """Per-priority override; unset fields fall through to the defaults."""
    response_hours: Optional[float] = Field(default=None, gt=0)
    resolution_hours: Optional[float] = Field(default=None, gt=0)


class SLAPolicyConfig(BaseModel):
    """
    SLA target policy loaded from YAML.

    Holds the default target table per priority. Organizations may override
    individual cells with an ``OrganizationSLAPolicy``.
    """
    default_targets: Dict[Priority, PriorityTargetOverride] = Field(
        default_factory=dict,
        validate_default=True,
        description="Default targets in hours by priority"
    )

    @field_validator("default_targets")
    @classmethod
    def fill_missing_priorities(
        cls, v: Dict[Priority, PriorityTargetOverride]
    ) -> Dict[Priority, PriorityTargetOverride]:
        filled = dict(v)
        for priority, targets in DEFAULT_SLA_TARGETS.items():
            current = filled.get(priority) or PriorityTargetOverride()
            filled[priority] = PriorityTargetOverride(
                response_hours=current.response_hours or targets.response_hours,
                resolution_hours=current.resolution_hours or targets.resolution_hours,
            )
        return filled

    def targets_for(self, priority: Priority) -> SLATargets:
        entry = self.default_targets.get(priority)
        if entry is None:
            return FALLBACK_SLA_TARGETS
        return SLATargets(
            response_hours=entry.response_hours,
            resolution_hours=entry.resolution_hours,
        )


class OrganizationSLAPolicy(BaseModel):
    """Organization overrides of the default target table."""
    response_hours: Dict[Priority, Optional[float]] = Field(default_factory=dict)
    resolution_hours: Dict[Priority, Optional[float]] = Field(default_factory=dict)


def resolve_sla_targets(
    priority: Priority,
    policy: Optional[OrganizationSLAPolicy] = None,
    defaults: Optional[SLAPolicyConfig] = None,
) -> SLATargets:
    """
    Resolve the targets for a priority.

    Organization overrides win cell by cell; anything unset falls back to the
    configured default table.
    """
    base = (defaults or SLAPolicyConfig()).targets_for(priority)
    if policy is None:
        return base

    response = policy.response_hours.get(priority)
    resolution = policy.resolution_hours.get(priority)
    return SLATargets(
        response_hours=response if response is not None else base.response_hours,
        resolution_hours=resolution if resolution is not None else base.resolution_hours,
    )


class ThresholdClassifier:
    """
    Maps consumed percentage of a target to a warning tier.

    Lower edges are inclusive: exactly 90.0 is CRITICAL, exactly 50.0 is
    NOTICE, anything below 50 has no tier.
    """

    CRITICAL_PERCENT = 90.0
    WARNING_PERCENT = 75.0
    NOTICE_PERCENT = 50.0

    @classmethod
    def classify(cls, percentage_consumed: float) -> Optional[WarningTier]:
        if percentage_consumed >= cls.CRITICAL_PERCENT:
            return WarningTier.CRITICAL
        if percentage_consumed >= cls.WARNING_PERCENT:
            return WarningTier.WARNING
        if percentage_consumed >= cls.NOTICE_PERCENT:
            return WarningTier.NOTICE
        return None
