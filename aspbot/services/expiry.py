from __future__ import annotations

import contextlib
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.database.repo.sessions_repo import close_if_open, get_session_row, list_open_sessions
from aspbot.database.tx import after_commit
from aspbot.services.lifecycle import expire, expires_at
from aspbot.services.records import SessionRecord
from aspbot.utils.dt import as_utc, utcnow

log = logging.getLogger(__name__)

ExpiredCallback = Callable[[SessionRecord], Awaitable[None]]


async def expire_session(session: AsyncSession, session_id: str, cap_minutes: int) -> SessionRecord | None:
    """
    Close a still-open session at exactly sign_in + cap.
    Returns None if it was already closed or voided by another path.
    """
    row = await get_session_row(session, session_id)
    if row is None:
        return None

    closed = expire(row.to_record(), cap_minutes)
    if closed is None or closed.sign_out is None:
        return None

    if not await close_if_open(session, session_id, closed.sign_out):
        return None
    return closed


class SessionExpiry:
    """
    One DateTrigger job per open session, keyed by session id.

    - arm() on every transition into Open (replace_existing keeps it single)
    - cancel() on sign-out, admin edit and admin void
    - services go through arm_on_commit()/cancel_on_commit(): the job must
      not see the database before the caller's transaction is committed
    - the job itself only writes through a conditional UPDATE
    """

    JOB_PREFIX = "expire_session:"
    RETRY_SECONDS = 30

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        db,
        cap_minutes: int = 120,
        *,
        on_expired: ExpiredCallback | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.db = db
        self.cap_minutes = cap_minutes
        self.on_expired = on_expired

    @classmethod
    def job_id(cls, session_id: str) -> str:
        return f"{cls.JOB_PREFIX}{session_id}"

    def is_armed(self, session_id: str) -> bool:
        return self.scheduler.get_job(self.job_id(session_id)) is not None

    def arm(self, record: SessionRecord) -> None:
        if not record.is_open:
            return
        run_at = expires_at(record, self.cap_minutes)
        self._schedule(record.id, run_at)
        log.debug("Expiry armed for session=%s at %s", record.id, run_at.isoformat())

    def cancel(self, session_id: str) -> bool:
        with contextlib.suppress(JobLookupError):
            self.scheduler.remove_job(self.job_id(session_id))
            log.debug("Expiry cancelled for session=%s", session_id)
            return True
        return False

    def arm_on_commit(self, session: AsyncSession, record: SessionRecord) -> None:
        after_commit(session, lambda: self.arm(record))

    def cancel_on_commit(self, session: AsyncSession, session_id: str) -> None:
        after_commit(session, lambda: self.cancel(session_id))

    def _schedule(self, session_id: str, run_at: datetime) -> None:
        self.scheduler.add_job(
            self.fire,
            trigger=DateTrigger(run_date=run_at),
            args=[session_id],
            id=self.job_id(session_id),
            replace_existing=True,
            coalesce=True,
            misfire_grace_time=None,  # late is fine: the end time is fixed
        )

    async def fire(self, session_id: str) -> SessionRecord | None:
        try:
            async with self.db.transaction() as session:
                closed = await expire_session(session, session_id, self.cap_minutes)
        except OperationalError as e:
            # one-shot job: if it dies here the session never closes
            retry_at = utcnow() + timedelta(seconds=self.RETRY_SECONDS)
            log.warning(
                "Expiry for session=%s failed (%s); retrying at %s",
                session_id,
                e.orig,
                retry_at.isoformat(),
            )
            self._schedule(session_id, retry_at)
            return None

        if closed is None:
            log.info("Expiry skipped for session=%s (already closed)", session_id)
            return None

        log.info("Session %s auto signed out at %s", session_id, closed.sign_out)
        if self.on_expired is not None:
            try:
                await self.on_expired(closed)
            except Exception:
                log.exception("Expiry notification failed for session=%s", session_id)
        return closed

    async def rearm_open_sessions(self, now: datetime) -> tuple[int, int]:
        """
        Start-up pass: expire sessions already past their cap, arm the rest.
        Returns (expired, armed).
        """
        now = as_utc(now)
        to_arm: list[SessionRecord] = []
        expired = 0

        async with self.db.transaction() as session:
            for record in await list_open_sessions(session):
                if expires_at(record, self.cap_minutes) <= now:
                    if await expire_session(session, record.id, self.cap_minutes):
                        expired += 1
                else:
                    to_arm.append(record)

        for record in to_arm:
            self.arm(record)

        log.info("Expiry re-armed: expired=%s armed=%s", expired, len(to_arm))
        return expired, len(to_arm)
