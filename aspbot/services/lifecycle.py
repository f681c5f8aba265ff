from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Iterable

from aspbot.config.settings import ProgramConfig
from aspbot.services.accounting import accrued_tonight
from aspbot.services.errors import (
    CapExceededError,
    ClosedWindowError,
    NoOpenSessionError,
    ValidationError,
)
from aspbot.services.records import Participant, SessionRecord
from aspbot.utils.dt import as_utc
from aspbot.utils.formatting import format_local, format_schedule
from aspbot.utils.names import normalize_name

MAX_GROUP_LEN = 16


class SessionState(str, enum.Enum):
    NO_SESSION = "no_session"
    OPEN = "open"
    CLOSED = "closed"
    VOID = "void"


@dataclass(frozen=True, slots=True)
class SignInDecision:
    session: SessionRecord
    resumed: bool


def _cap_label(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


def session_state(session: SessionRecord | None) -> SessionState:
    if session is None:
        return SessionState.NO_SESSION
    if session.voided:
        return SessionState.VOID
    if session.sign_out is None:
        return SessionState.OPEN
    return SessionState.CLOSED


def find_open_session(sessions: Iterable[SessionRecord]) -> SessionRecord | None:
    for s in sessions:
        if s.is_open:
            return s
    return None


def validate_participant(participant: Participant, program: ProgramConfig) -> None:
    if not normalize_name(participant.name):
        raise ValidationError("Enter your name and class year.")
    if not participant.cohort:
        raise ValidationError("Enter your name and class year.")
    if participant.cohort not in program.cohorts:
        raise ValidationError(
            f"Unknown class year {participant.cohort!r}. Use one of: {', '.join(program.cohorts)}."
        )
    if len(participant.group or "") > MAX_GROUP_LEN:
        raise ValidationError(f"Company must be at most {MAX_GROUP_LEN} characters.")


def ensure_window_open(now: datetime, program: ProgramConfig) -> None:
    calendar = program.calendar
    if calendar.is_open(now):
        return
    nxt = calendar.next_open(now)
    raise ClosedWindowError(
        f"ASP is closed right now ({format_schedule(calendar)}). "
        f"Next window: {format_local(calendar, nxt)}.",
        next_open=nxt,
    )


def sign_in(
    participant: Participant,
    sessions: Iterable[SessionRecord],
    now: datetime,
    program: ProgramConfig,
    *,
    bypass_window: bool = False,
    new_id: Callable[[], str] = lambda: str(uuid.uuid4()),
) -> SignInDecision:
    """
    Decide what a sign-in does. Order matters:
    validate -> window -> resume open session -> nightly cap -> create.
    """
    validate_participant(participant, program)

    now = as_utc(now)
    calendar = program.calendar

    if not bypass_window:
        ensure_window_open(now, program)

    own = [s for s in sessions if s.cadet_id == participant.id and not s.voided]

    existing = find_open_session(own)
    if existing is not None:
        return SignInDecision(session=existing, resumed=True)

    if program.nightly_cap_enabled:
        accrued = accrued_tonight(own, now, calendar, program.nightly_cap_minutes)
        if accrued >= program.nightly_cap_minutes:
            raise CapExceededError(
                f"You've already logged {_cap_label(program.nightly_cap_minutes)} tonight. "
                "See you next time!",
                accrued=accrued,
                cap=program.nightly_cap_minutes,
            )

    return SignInDecision(
        session=SessionRecord(id=new_id(), cadet_id=participant.id, sign_in=now),
        resumed=False,
    )


def sign_out(session: SessionRecord | None, now: datetime) -> SessionRecord:
    if session is None or not session.is_open:
        raise NoOpenSessionError("You don't have an active session.")
    return replace(session, sign_out=as_utc(now))


def expires_at(session: SessionRecord, cap_minutes: int = 120) -> datetime:
    return as_utc(session.sign_in) + timedelta(minutes=cap_minutes)


def expire(session: SessionRecord, cap_minutes: int = 120) -> SessionRecord | None:
    """Close at exactly sign_in + cap, however late this runs. None if not open."""
    if not session.is_open:
        return None
    return replace(session, sign_out=expires_at(session, cap_minutes))
