"""
Business Hours Clock
====================

Timezone-aware business-hours arithmetic for SLA clocks.

All instants are timezone-aware; naive datetimes are read as UTC. Elapsed
time is defined at minute granularity: a minute sample ``start + k min``
(k >= 0, sample < end) counts when it falls inside business hours.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from helpdesk.core import InvalidIntervalException
from helpdesk.sla.domain.value_objects import BusinessHoursConfig

_MINUTE = timedelta(minutes=1)
_SEARCH_WINDOW_MINUTES = 7 * 24 * 60


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _ceil_minutes(delta: timedelta) -> int:
    return -((-delta) // _MINUTE)


def _local_instant(day, at: time, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=zone).astimezone(timezone.utc)


class BusinessHoursClock:
    """
    Pure functions over business hours.

    Stateless utility class; a ``None`` config means 24/7 tracking.
    """

    @staticmethod
    def is_business_moment(
        instant: datetime,
        config: Optional[BusinessHoursConfig]
    ) -> bool:
        """Whether ``instant`` falls inside the organization's business hours."""
        if config is None:
            return True

        local = _as_utc(instant).astimezone(config.zone)
        if not config.is_working_date(local.date()):
            return False

        time_of_day = local.time().replace(second=0, microsecond=0)
        return config.start <= time_of_day < config.end

    @classmethod
    def next_business_moment(
        cls,
        from_instant: datetime,
        config: Optional[BusinessHoursConfig]
    ) -> Optional[datetime]:
        """
        First whole-minute instant strictly after ``from_instant`` in business hours.

        Returns None for 24/7 organizations and when nothing is found within
        seven days (a config that yields no business minute in a week is
        treated as broken rather than searched indefinitely).
        """
        if config is None:
            return None

        candidate = _as_utc(from_instant).replace(second=0, microsecond=0)
        for _ in range(_SEARCH_WINDOW_MINUTES):
            candidate += _MINUTE
            if cls.is_business_moment(candidate, config):
                return candidate
        return None

    @classmethod
    def elapsed_business_hours(
        cls,
        start: datetime,
        end: datetime,
        config: Optional[BusinessHoursConfig]
    ) -> float:
        """
        Business hours elapsed between two instants.

        Works a local day at a time: on days without a UTC offset change the
        minute samples inside the working window are counted arithmetically,
        and days containing a DST transition fall back to checking each
        sample. The result always equals
        ``elapsed_business_hours_bruteforce``.

        Raises:
            InvalidIntervalException: if ``end`` is before ``start``
        """
        start, end = _as_utc(start), _as_utc(end)
        if end < start:
            raise InvalidIntervalException(start, end)

        if config is None:
            return (end - start).total_seconds() / 3600

        zone = config.zone
        minutes = 0
        cursor = start
        local_day = start.astimezone(zone).date()

        while cursor < end:
            day_open = _local_instant(local_day, time(0), zone)
            next_day = local_day + timedelta(days=1)
            day_close = _local_instant(next_day, time(0), zone)
            segment_end = min(end, day_close)

            if segment_end > cursor:
                if day_open.astimezone(zone).utcoffset() != day_close.astimezone(zone).utcoffset():
                    minutes += cls._scan_minutes(start, cursor, segment_end, config)
                elif config.is_working_date(local_day):
                    window_open = max(cursor, _local_instant(local_day, config.start, zone))
                    window_close = min(segment_end, _local_instant(local_day, config.end, zone))
                    minutes += cls._count_samples(start, window_open, window_close)

            cursor = max(cursor, segment_end)
            local_day = next_day

        return minutes / 60

    @classmethod
    def elapsed_business_hours_bruteforce(
        cls,
        start: datetime,
        end: datetime,
        config: Optional[BusinessHoursConfig]
    ) -> float:
        """Reference definition: check every minute sample from start to end."""
        start, end = _as_utc(start), _as_utc(end)
        if end < start:
            raise InvalidIntervalException(start, end)
        if config is None:
            return (end - start).total_seconds() / 3600
        return cls._scan_minutes(start, start, end, config) / 60

    @staticmethod
    def _count_samples(origin: datetime, lower: datetime, upper: datetime) -> int:
        """Number of samples ``origin + k min`` (k >= 0) inside [lower, upper)."""
        if upper <= lower:
            return 0
        first = max(0, _ceil_minutes(lower - origin))
        stop = _ceil_minutes(upper - origin)
        return max(0, stop - first)

    @classmethod
    def _scan_minutes(
        cls,
        origin: datetime,
        lower: datetime,
        upper: datetime,
        config: BusinessHoursConfig
    ) -> int:
        counted = 0
        sample = origin + max(0, _ceil_minutes(lower - origin)) * _MINUTE
        while sample < upper:
            if cls.is_business_moment(sample, config):
                counted += 1
            sample += _MINUTE
        return counted
