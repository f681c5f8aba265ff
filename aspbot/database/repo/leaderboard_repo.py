from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import ProgramConfig
from aspbot.database.repo.cadets_repo import get_cadets
from aspbot.database.repo.overrides_repo import get_overrides
from aspbot.database.repo.sessions_repo import list_active_sessions
from aspbot.services.leaderboard import LeaderboardRow, build_leaderboard


async def load_leaderboard(
    session: AsyncSession,
    program: ProgramConfig,
    *,
    now: datetime | None = None,
) -> list[LeaderboardRow]:
    """
    All-time leaderboard computed from stored sessions.
    Fine for a single program with a few hundred cadets.
    """
    sessions = await list_active_sessions(session)
    cadet_ids = sorted({s.cadet_id for s in sessions})
    cadets = await get_cadets(session, cadet_ids)
    overrides = await get_overrides(session) if program.overrides_enabled else {}

    return build_leaderboard(
        {cid: c.to_participant() for cid, c in cadets.items()},
        sessions,
        overrides,
        program,
        now=now,
    )
