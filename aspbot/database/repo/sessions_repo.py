from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.database.models import StudySession
from aspbot.services.records import SessionRecord
from aspbot.utils.dt import to_naive_utc

_OPEN = (StudySession.sign_out.is_(None), StudySession.voided.is_(False))


async def get_session_row(session: AsyncSession, session_id: str) -> StudySession | None:
    return await session.get(StudySession, session_id)


async def list_sessions(session: AsyncSession, cadet_id: str) -> list[SessionRecord]:
    """Non-void sessions of one cadet, oldest first."""
    res = await session.execute(
        select(StudySession)
        .where(StudySession.cadet_id == cadet_id, StudySession.voided.is_(False))
        .order_by(StudySession.sign_in.asc(), StudySession.id.asc())
    )
    return [row.to_record() for row in res.scalars().all()]


async def recent_sessions(session: AsyncSession, cadet_id: str, limit: int = 50) -> list[SessionRecord]:
    res = await session.execute(
        select(StudySession)
        .where(StudySession.cadet_id == cadet_id)
        .order_by(StudySession.sign_in.desc())
        .limit(limit)
    )
    return [row.to_record() for row in res.scalars().all()]


async def get_open_session(session: AsyncSession, cadet_id: str) -> SessionRecord | None:
    res = await session.execute(
        select(StudySession).where(StudySession.cadet_id == cadet_id, *_OPEN).limit(1)
    )
    row = res.scalar_one_or_none()
    return row.to_record() if row else None


async def list_open_sessions(session: AsyncSession) -> list[SessionRecord]:
    res = await session.execute(select(StudySession).where(*_OPEN))
    return [row.to_record() for row in res.scalars().all()]


async def list_active_sessions(session: AsyncSession) -> list[SessionRecord]:
    """All non-void sessions, oldest first (leaderboard encounter order)."""
    res = await session.execute(
        select(StudySession)
        .where(StudySession.voided.is_(False))
        .order_by(StudySession.sign_in.asc(), StudySession.id.asc())
    )
    return [row.to_record() for row in res.scalars().all()]


async def add_session(session: AsyncSession, record: SessionRecord) -> None:
    session.add(
        StudySession(
            id=record.id,
            cadet_id=record.cadet_id,
            sign_in=to_naive_utc(record.sign_in),
            sign_out=to_naive_utc(record.sign_out) if record.sign_out else None,
            voided=record.voided,
        )
    )
    await session.flush()


async def close_if_open(session: AsyncSession, session_id: str, sign_out: datetime) -> bool:
    """
    Set sign_out only if the session is still open.
    Returns False when some other path closed or voided it first.
    """
    res = await session.execute(
        update(StudySession)
        .where(StudySession.id == session_id, *_OPEN)
        .values(sign_out=to_naive_utc(sign_out))
    )
    return (res.rowcount or 0) == 1


async def set_times(
    session: AsyncSession,
    session_id: str,
    *,
    sign_in: datetime,
    sign_out: datetime | None,
) -> SessionRecord | None:
    row = await session.get(StudySession, session_id)
    if row is None:
        return None
    row.sign_in = to_naive_utc(sign_in)
    row.sign_out = to_naive_utc(sign_out) if sign_out is not None else None
    await session.flush()
    return row.to_record()


async def void_cadet_sessions(session: AsyncSession, cadet_id: str) -> list[str]:
    """Void every non-void session of a cadet. Returns the ids touched."""
    res = await session.execute(
        select(StudySession.id).where(
            StudySession.cadet_id == cadet_id,
            StudySession.voided.is_(False),
        )
    )
    ids = [r for (r,) in res.all()]
    if not ids:
        return []

    await session.execute(
        update(StudySession)
        .where(StudySession.id.in_(ids))
        .values(voided=True)
    )
    return ids
