from __future__ import annotations

from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.database.models import Identity


class IdentityRepository(Protocol):
    """Remembers the cadet a Telegram account signs in as (get/set/clear)."""

    async def get(self, session: AsyncSession, telegram_id: int) -> str | None: ...

    async def set(self, session: AsyncSession, telegram_id: int, cadet_id: str) -> None: ...

    async def clear(self, session: AsyncSession, telegram_id: int) -> None: ...


class SqlIdentityRepository:
    async def get(self, session: AsyncSession, telegram_id: int) -> str | None:
        row = await session.get(Identity, telegram_id)
        return row.cadet_id if row else None

    async def set(self, session: AsyncSession, telegram_id: int, cadet_id: str) -> None:
        row = await session.get(Identity, telegram_id)
        if row is None:
            session.add(Identity(telegram_id=telegram_id, cadet_id=cadet_id))
        else:
            row.cadet_id = cadet_id
        await session.flush()

    async def clear(self, session: AsyncSession, telegram_id: int) -> None:
        await session.execute(delete(Identity).where(Identity.telegram_id == telegram_id))


class MemoryIdentityRepository:
    """Process-local store; handy for tests and single-process demos."""

    def __init__(self) -> None:
        self._by_tg: dict[int, str] = {}

    async def get(self, session: AsyncSession, telegram_id: int) -> str | None:
        return self._by_tg.get(telegram_id)

    async def set(self, session: AsyncSession, telegram_id: int, cadet_id: str) -> None:
        self._by_tg[telegram_id] = cadet_id

    async def clear(self, session: AsyncSession, telegram_id: int) -> None:
        self._by_tg.pop(telegram_id, None)


async def telegram_ids_for_cadet(session: AsyncSession, cadet_id: str) -> list[int]:
    res = await session.execute(select(Identity.telegram_id).where(Identity.cadet_id == cadet_id))
    return [int(tg) for (tg,) in res.all()]
