from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.database.models import Cadet


async def get_cadet(session: AsyncSession, cadet_id: str) -> Cadet | None:
    return await session.get(Cadet, cadet_id)


async def find_cadet(session: AsyncSession, *, name: str, klass: str, company: str) -> Cadet | None:
    """
    Exact normalized match first, then case-insensitive on name.
    `name` must already be normalized.
    """
    exact = await session.execute(
        select(Cadet)
        .where(Cadet.name == name, Cadet.klass == klass, Cadet.company == company)
        .order_by(Cadet.created_at.asc(), Cadet.id.asc())
        .limit(1)
    )
    row = exact.scalar_one_or_none()
    if row is not None:
        return row

    ci = await session.execute(
        select(Cadet)
        .where(
            func.lower(Cadet.name) == name.lower(),
            Cadet.klass == klass,
            Cadet.company == company,
        )
        .order_by(Cadet.created_at.asc(), Cadet.id.asc())
        .limit(1)
    )
    return ci.scalar_one_or_none()


async def upsert_cadet(session: AsyncSession, *, name: str, klass: str, company: str) -> Cadet:
    """Resolve an existing identity (and fix its stored name) or create one."""
    cadet = await find_cadet(session, name=name, klass=klass, company=company)

    if cadet is None:
        cadet = Cadet(id=str(uuid.uuid4()), name=name, klass=klass, company=company)
        session.add(cadet)
        await session.flush()
        return cadet

    # keep stored name canonical
    if cadet.name != name:
        cadet.name = name
        await session.flush()
    return cadet


async def get_cadets(session: AsyncSession, cadet_ids: list[str] | None = None) -> dict[str, Cadet]:
    q = select(Cadet)
    if cadet_ids is not None:
        if not cadet_ids:
            return {}
        q = q.where(Cadet.id.in_(cadet_ids))
    res = await session.execute(q)
    return {c.id: c for c in res.scalars().all()}
