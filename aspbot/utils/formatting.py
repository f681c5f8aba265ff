from __future__ import annotations

from datetime import datetime

from aspbot.utils.window import WindowCalendar

_DAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def pad2(n: int) -> str:
    return f"{n:02d}"


def format_hms(total_seconds: int) -> str:
    total_seconds = max(0, int(total_seconds))
    h, rem = divmod(total_seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{pad2(h)}:{pad2(m)}:{pad2(s)}"


def format_hm(total_minutes: int) -> str:
    total_minutes = max(0, int(total_minutes))
    h, m = divmod(total_minutes, 60)
    return f"{h}h {m}m"


def format_clock(minute_of_day: int) -> str:
    h, m = divmod(minute_of_day, 60)
    return f"{pad2(h)}:{pad2(m)}"


def format_schedule(calendar: WindowCalendar) -> str:
    """e.g. "Mon/Wed 19:30–21:30 (America/New_York)"."""
    days = "/".join(_DAY_ABBR[d] for d in sorted(calendar.weekdays))
    return (
        f"{days} {format_clock(calendar.start_minute)}–{format_clock(calendar.end_minute)}"
        f" ({calendar.timezone})"
    )


def format_local(calendar: WindowCalendar, instant: datetime) -> str:
    lt = calendar.local(instant)
    return f"{lt:%A, %b} {lt.day}, {lt:%H:%M %Z}"
