from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.database.models import LeaderboardOverride


async def get_overrides(session: AsyncSession) -> dict[str, int]:
    res = await session.execute(select(LeaderboardOverride.cadet_id, LeaderboardOverride.minutes_override))
    return {cadet_id: int(minutes) for cadet_id, minutes in res.all()}


async def get_override(session: AsyncSession, cadet_id: str) -> int | None:
    row = await session.get(LeaderboardOverride, cadet_id)
    return int(row.minutes_override) if row else None


async def set_override(session: AsyncSession, cadet_id: str, minutes: int) -> None:
    row = await session.get(LeaderboardOverride, cadet_id)
    if row is None:
        session.add(LeaderboardOverride(cadet_id=cadet_id, minutes_override=minutes))
    else:
        row.minutes_override = minutes
    await session.flush()


async def clear_override(session: AsyncSession, cadet_id: str) -> bool:
    res = await session.execute(
        delete(LeaderboardOverride).where(LeaderboardOverride.cadet_id == cadet_id)
    )
    return (res.rowcount or 0) > 0
