from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.database.models import Admin, AdminRole


async def get_admin(session: AsyncSession, telegram_id: int) -> Admin | None:
    res = await session.execute(select(Admin).where(Admin.telegram_id == telegram_id))
    return res.scalar_one_or_none()


async def add_admin(
    session: AsyncSession,
    telegram_id: int,
    *,
    role: AdminRole = AdminRole.ADMIN,
    display_name: str | None = None,
) -> Admin:
    admin = await get_admin(session, telegram_id)
    if admin is not None:
        return admin
    admin = Admin(telegram_id=telegram_id, role=role, display_name=display_name)
    session.add(admin)
    await session.flush()
    return admin


async def remove_admin(session: AsyncSession, telegram_id: int) -> bool:
    res = await session.execute(delete(Admin).where(Admin.telegram_id == telegram_id))
    return (res.rowcount or 0) > 0
