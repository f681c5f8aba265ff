from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import ProgramConfig
from aspbot.database.models import Cadet
from aspbot.database.repo.cadets_repo import get_cadet, upsert_cadet
from aspbot.database.repo.identity_repo import IdentityRepository, SqlIdentityRepository
from aspbot.database.repo.sessions_repo import (
    add_session,
    close_if_open,
    get_open_session,
    list_sessions,
)
from aspbot.database.tx import persistence_errors, transactional
from aspbot.services import lifecycle
from aspbot.services.accounting import (
    accrued_tonight,
    all_time_total,
    elapsed_current_seconds,
    reward_days,
)
from aspbot.services.errors import NoOpenSessionError, ValidationError
from aspbot.services.expiry import SessionExpiry
from aspbot.services.records import Participant, SessionRecord
from aspbot.utils.dt import as_utc, utcnow
from aspbot.utils.names import normalize_name

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SignInResult:
    cadet: Participant
    session: SessionRecord
    resumed: bool


@dataclass(frozen=True, slots=True)
class StatusView:
    cadet: Participant
    open_session: SessionRecord | None
    elapsed_seconds: int
    tonight_minutes: int
    total_minutes: int
    reward_days: int
    window_open: bool
    next_open: datetime


class AttendanceService:
    """
    Cadet-facing flows on top of the pure lifecycle: resolve the cadet,
    decide, persist, keep the expiry timer in step, remember who signed in.
    """

    def __init__(
        self,
        program: ProgramConfig,
        *,
        expiry: SessionExpiry | None = None,
        identities: IdentityRepository | None = None,
    ) -> None:
        self.program = program
        self.expiry = expiry
        self.identities: IdentityRepository = identities or SqlIdentityRepository()

    # ------------------------
    # Identity
    # ------------------------

    async def remembered_cadet(self, session: AsyncSession, telegram_id: int) -> Cadet | None:
        with persistence_errors("Loading your profile"):
            cadet_id = await self.identities.get(session, telegram_id)
            if not cadet_id:
                return None
            return await get_cadet(session, cadet_id)

    async def forget(self, session: AsyncSession, telegram_id: int) -> None:
        with persistence_errors("Forgetting your profile"):
            await self.identities.clear(session, telegram_id)

    # ------------------------
    # Sign in / out
    # ------------------------

    async def sign_in(
        self,
        session: AsyncSession,
        *,
        telegram_id: int,
        name: str | None,
        cohort: str | None,
        group: str | None = None,
        now: datetime | None = None,
        bypass_window: bool = False,
    ) -> SignInResult:
        now = as_utc(now) if now is not None else utcnow()

        canonical = normalize_name(name)
        klass = (cohort or "").strip().upper() or None
        company = (group or "").strip() or self.program.default_group

        # Validate before touching the store so a bad request never creates a cadet.
        lifecycle.validate_participant(
            Participant(id="", name=canonical, cohort=klass, group=company),
            self.program,
        )
        if not bypass_window:
            lifecycle.ensure_window_open(now, self.program)

        with persistence_errors("Sign-in"):
            async with transactional(session):
                cadet_row = await upsert_cadet(session, name=canonical, klass=klass or "", company=company)
                cadet = cadet_row.to_participant()

                sessions = await list_sessions(session, cadet.id)
                decision = lifecycle.sign_in(
                    cadet,
                    sessions,
                    now,
                    self.program,
                    bypass_window=bypass_window,
                )

                if not decision.resumed:
                    try:
                        async with session.begin_nested():
                            await add_session(session, decision.session)
                    except IntegrityError:
                        # a concurrent sign-in for this cadet won; resume its session
                        existing = await get_open_session(session, cadet.id)
                        if existing is None:
                            raise
                        decision = lifecycle.SignInDecision(session=existing, resumed=True)

                await self.identities.set(session, telegram_id, cadet.id)

        if self.expiry is not None:
            self.expiry.arm_on_commit(session, decision.session)

        log.info(
            "Sign-in %s cadet=%s session=%s bypass=%s",
            "resumed" if decision.resumed else "created",
            cadet.id,
            decision.session.id,
            bypass_window,
        )
        return SignInResult(cadet=cadet, session=decision.session, resumed=decision.resumed)

    async def sign_in_remembered(
        self,
        session: AsyncSession,
        *,
        telegram_id: int,
        now: datetime | None = None,
        bypass_window: bool = False,
    ) -> SignInResult:
        cadet = await self.remembered_cadet(session, telegram_id)
        if cadet is None:
            raise ValidationError("Enter your name and class year.")
        return await self.sign_in(
            session,
            telegram_id=telegram_id,
            name=cadet.name,
            cohort=cadet.klass,
            group=cadet.company,
            now=now,
            bypass_window=bypass_window,
        )

    async def sign_out(
        self,
        session: AsyncSession,
        *,
        telegram_id: int,
        now: datetime | None = None,
    ) -> SessionRecord:
        now = as_utc(now) if now is not None else utcnow()

        cadet = await self.remembered_cadet(session, telegram_id)
        if cadet is None:
            raise NoOpenSessionError("You don't have an active session.")

        with persistence_errors("Sign-out"):
            open_session = await get_open_session(session, cadet.id)
            closed = lifecycle.sign_out(open_session, now)

            # the expiry job may have won the race
            if not await close_if_open(session, closed.id, closed.sign_out):  # type: ignore[arg-type]
                raise NoOpenSessionError("You don't have an active session.")

        if self.expiry is not None:
            self.expiry.cancel_on_commit(session, closed.id)

        log.info("Sign-out cadet=%s session=%s", cadet.id, closed.id)
        return closed

    # ------------------------
    # Status
    # ------------------------

    async def status(
        self,
        session: AsyncSession,
        *,
        telegram_id: int,
        now: datetime | None = None,
    ) -> StatusView | None:
        now = as_utc(now) if now is not None else utcnow()

        cadet = await self.remembered_cadet(session, telegram_id)
        if cadet is None:
            return None

        with persistence_errors("Loading your status"):
            sessions = await list_sessions(session, cadet.id)

        calendar = self.program.calendar
        open_session = lifecycle.find_open_session(sessions)
        total = all_time_total(sessions, calendar, now)

        return StatusView(
            cadet=cadet.to_participant(),
            open_session=open_session,
            elapsed_seconds=(
                elapsed_current_seconds(open_session, now, self.program.session_cap_minutes)
                if open_session
                else 0
            ),
            tonight_minutes=accrued_tonight(sessions, now, calendar, self.program.nightly_cap_minutes),
            total_minutes=total,
            reward_days=reward_days(total, self.program.reward_day_minutes),
            window_open=calendar.is_open(now),
            next_open=calendar.next_open(now),
        )
