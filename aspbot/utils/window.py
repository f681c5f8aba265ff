from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from aspbot.utils.dt import as_utc

# Two weekdays can leave a gap of up to six days; 9 local dates always
# contain at least one future window start.
SCAN_DAYS = 9


@dataclass(frozen=True, slots=True)
class WindowCalendar:
    """
    Fixed weekly schedule: the same [start, end) clock interval on each of
    `weekdays` (Monday = 0), evaluated in `timezone`.
    """

    weekdays: tuple[int, ...]
    start_minute: int
    end_minute: int
    timezone: str

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def local(self, instant: datetime) -> datetime:
        return as_utc(instant).astimezone(self.tz)

    def local_date(self, instant: datetime) -> date:
        return self.local(instant).date()

    def minute_of_day(self, instant: datetime) -> int:
        lt = self.local(instant)
        return lt.hour * 60 + lt.minute

    def is_open(self, instant: datetime) -> bool:
        lt = self.local(instant)
        if lt.weekday() not in self.weekdays:
            return False
        minutes = lt.hour * 60 + lt.minute
        return self.start_minute <= minutes < self.end_minute

    def _at_minute(self, day: date, minute: int) -> datetime:
        # wall-clock arithmetic in the local zone, then convert
        midnight = datetime.combine(day, time.min, tzinfo=self.tz)
        return (midnight + timedelta(minutes=minute)).astimezone(timezone.utc)

    def window_bounds(self, day: date) -> tuple[datetime, datetime] | None:
        """UTC (start, end) of the window on local date `day`, or None if closed that day."""
        if day.weekday() not in self.weekdays:
            return None
        return self._at_minute(day, self.start_minute), self._at_minute(day, self.end_minute)

    def next_open(self, instant: datetime) -> datetime:
        """Earliest window start strictly after `instant`."""
        instant = as_utc(instant)
        first_day = self.local_date(instant)

        candidates: list[datetime] = []
        for add in range(SCAN_DAYS):
            day = first_day + timedelta(days=add)
            if day.weekday() in self.weekdays:
                candidates.append(self._at_minute(day, self.start_minute))

        for c in candidates:
            if c > instant:
                return c
        # clock anomaly
        return candidates[0]
