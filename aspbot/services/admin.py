from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import ProgramConfig
from aspbot.database.models import Cadet
from aspbot.database.repo.cadets_repo import get_cadet
from aspbot.database.repo.logs_repo import log_admin_action
from aspbot.database.repo.overrides_repo import clear_override, get_override, set_override
from aspbot.database.repo.sessions_repo import (
    get_session_row,
    recent_sessions,
    set_times,
    void_cadet_sessions,
)
from aspbot.database.tx import persistence_errors, transactional
from aspbot.services.errors import NotFoundError, ValidationError
from aspbot.services.expiry import SessionExpiry
from aspbot.services.records import SessionRecord

log = logging.getLogger(__name__)


class AdminService:
    """
    Record corrections. No lifecycle gating here: admins may write
    overlapping or odd intervals on purpose.
    """

    def __init__(self, program: ProgramConfig, *, expiry: SessionExpiry | None = None) -> None:
        self.program = program
        self.expiry = expiry

    async def _require_cadet(self, session: AsyncSession, cadet_id: str) -> Cadet:
        cadet = await get_cadet(session, cadet_id)
        if cadet is None:
            raise NotFoundError(f"Cadet {cadet_id} not found.")
        return cadet

    async def cadet_sessions(
        self,
        session: AsyncSession,
        cadet_id: str,
        limit: int = 50,
    ) -> tuple[Cadet, list[SessionRecord], int | None]:
        with persistence_errors("Loading sessions"):
            cadet = await self._require_cadet(session, cadet_id)
            sessions = await recent_sessions(session, cadet_id, limit=limit)
            override = await get_override(session, cadet_id)
        return cadet, sessions, override

    async def edit_session(
        self,
        session: AsyncSession,
        session_id: str,
        *,
        new_start: datetime,
        new_end: datetime | None,
        actor_telegram_id: int | None = None,
    ) -> SessionRecord:
        with persistence_errors("Saving session edit"):
            async with transactional(session):
                before = await get_session_row(session, session_id)
                if before is None:
                    raise NotFoundError(f"Session {session_id} not found.")
                old = before.to_record()

                updated = await set_times(session, session_id, sign_in=new_start, sign_out=new_end)
                if updated is None:
                    raise NotFoundError(f"Session {session_id} not found.")

                await log_admin_action(
                    session,
                    actor_telegram_id=actor_telegram_id,
                    action="session_edit",
                    target_type="session",
                    target_id=session_id,
                    payload={
                        "old": {"sign_in": old.sign_in, "sign_out": old.sign_out},
                        "new": {"sign_in": updated.sign_in, "sign_out": updated.sign_out},
                    },
                )

        if self.expiry is not None:
            if updated.is_open:
                # start may have moved; re-arm against the new start
                self.expiry.arm_on_commit(session, updated)
            else:
                self.expiry.cancel_on_commit(session, session_id)

        log.info("Admin %s edited session=%s", actor_telegram_id, session_id)
        return updated

    async def void_participant(
        self,
        session: AsyncSession,
        cadet_id: str,
        *,
        actor_telegram_id: int | None = None,
    ) -> int:
        """Remove a cadet from the leaderboard by voiding all their sessions."""
        with persistence_errors("Removing cadet"):
            async with transactional(session):
                await self._require_cadet(session, cadet_id)
                ids = await void_cadet_sessions(session, cadet_id)
                await log_admin_action(
                    session,
                    actor_telegram_id=actor_telegram_id,
                    action="cadet_void",
                    target_type="cadet",
                    target_id=cadet_id,
                    payload={"sessions": ids},
                )

        if self.expiry is not None:
            for sid in ids:
                self.expiry.cancel_on_commit(session, sid)

        log.info("Admin %s voided %s sessions of cadet=%s", actor_telegram_id, len(ids), cadet_id)
        return len(ids)

    async def set_override(
        self,
        session: AsyncSession,
        cadet_id: str,
        minutes: int,
        *,
        actor_telegram_id: int | None = None,
    ) -> int:
        if not self.program.overrides_enabled:
            raise ValidationError("Leaderboard overrides are disabled.")
        minutes = max(0, int(minutes))

        with persistence_errors("Saving override"):
            async with transactional(session):
                await self._require_cadet(session, cadet_id)
                await set_override(session, cadet_id, minutes)
                await log_admin_action(
                    session,
                    actor_telegram_id=actor_telegram_id,
                    action="override_set",
                    target_type="cadet",
                    target_id=cadet_id,
                    payload={"minutes": minutes},
                )

        log.info("Admin %s set override cadet=%s minutes=%s", actor_telegram_id, cadet_id, minutes)
        return minutes

    async def clear_override(
        self,
        session: AsyncSession,
        cadet_id: str,
        *,
        actor_telegram_id: int | None = None,
    ) -> bool:
        with persistence_errors("Clearing override"):
            async with transactional(session):
                removed = await clear_override(session, cadet_id)
                if removed:
                    await log_admin_action(
                        session,
                        actor_telegram_id=actor_telegram_id,
                        action="override_clear",
                        target_type="cadet",
                        target_id=cadet_id,
                    )

        log.info("Admin %s cleared override cadet=%s removed=%s", actor_telegram_id, cadet_id, removed)
        return removed
