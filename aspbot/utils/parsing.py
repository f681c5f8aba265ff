from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from aspbot.utils.names import normalize_name
from aspbot.utils.window import WindowCalendar

OPEN_WORDS = {"open", "-", "none", "null"}


@dataclass(frozen=True, slots=True)
class SignInArgs:
    name: str
    cohort: str | None
    group: str | None


def parse_signin_args(raw: str | None) -> SignInArgs | None:
    """
    "<name> | <cohort> [| <group>]" -> SignInArgs.
    Returns None for empty input (meaning: use the remembered identity).
    """
    if raw is None or not raw.strip():
        return None

    parts = [p.strip() for p in raw.split("|")]
    name = normalize_name(parts[0])
    cohort = parts[1].upper() if len(parts) > 1 and parts[1] else None
    group = parts[2] if len(parts) > 2 and parts[2] else None
    return SignInArgs(name=name, cohort=cohort, group=group)


def parse_local_datetime(raw: str, calendar: WindowCalendar) -> datetime:
    """
    "YYYY-MM-DDTHH:MM" (or with a space) in the program timezone -> aware UTC.
    Raises ValueError on bad input.
    """
    value = raw.strip().replace(" ", "T")
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=calendar.tz)
    return dt.astimezone(timezone.utc)


def parse_optional_end(raw: str, calendar: WindowCalendar) -> datetime | None:
    if raw.strip().lower() in OPEN_WORDS:
        return None
    return parse_local_datetime(raw, calendar)
