from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from aspbot.services.records import SessionRecord
from aspbot.utils.dt import as_utc, floor_minutes
from aspbot.utils.window import WindowCalendar

# Pure functions only: no I/O, no clock reads. Every result is whole minutes,
# floored, never negative.


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def overlap_minutes(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> int:
    lo = max(as_utc(a_start), as_utc(b_start))
    hi = min(as_utc(a_end), as_utc(b_end))
    return floor_minutes((hi - lo).total_seconds())


def window_overlap(
    session: SessionRecord,
    calendar: WindowCalendar,
    end: datetime,
) -> int:
    """Minutes of [sign_in, end] inside the window of the session's own local date."""
    bounds = calendar.window_bounds(calendar.local_date(session.sign_in))
    if bounds is None:
        return 0
    return overlap_minutes(session.sign_in, end, bounds[0], bounds[1])


def elapsed_current_seconds(session: SessionRecord, now: datetime, cap_minutes: int = 120) -> int:
    start = as_utc(session.sign_in)
    limit = start + timedelta(minutes=cap_minutes)
    end = as_utc(session.sign_out) if session.sign_out is not None else as_utc(now)
    seconds = int((min(end, limit) - start).total_seconds())
    return _clamp(seconds, 0, cap_minutes * 60)


def elapsed_current(session: SessionRecord, now: datetime, cap_minutes: int = 120) -> int:
    return elapsed_current_seconds(session, now, cap_minutes) // 60


def accrued_tonight(
    sessions: Iterable[SessionRecord],
    now: datetime,
    calendar: WindowCalendar,
    cap_minutes: int = 120,
) -> int:
    """
    Window-overlap minutes for sessions that started on now's local date,
    clamped to [0, cap_minutes]. Open sessions run until `now`.
    """
    today = calendar.local_date(now)
    bounds = calendar.window_bounds(today)
    if bounds is None:
        return 0

    total = 0
    for s in sessions:
        if s.voided or calendar.local_date(s.sign_in) != today:
            continue
        end = s.sign_out if s.sign_out is not None else now
        total += overlap_minutes(s.sign_in, end, bounds[0], bounds[1])

    return _clamp(total, 0, cap_minutes)


def all_time_total(
    sessions: Iterable[SessionRecord],
    calendar: WindowCalendar,
    now: datetime | None = None,
) -> int:
    """
    Sum of each non-void session's overlap with its own date's window.
    No nightly cap. Open sessions count up to `now`, or not at all without it.
    """
    total = 0
    for s in sessions:
        if s.voided:
            continue
        if s.sign_out is not None:
            end = s.sign_out
        elif now is not None:
            end = now
        else:
            continue
        total += window_overlap(s, calendar, end)
    return total


def reward_days(total_minutes: int, divisor_minutes: int = 240) -> int:
    return max(0, int(total_minutes)) // divisor_minutes
