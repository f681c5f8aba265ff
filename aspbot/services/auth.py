# aspbot/services/auth.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import Settings
from aspbot.database.repo.admins_repo import add_admin, get_admin, remove_admin

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthResult:
    is_root: bool
    is_admin: bool
    role: str  # "root" | "admin" | "user"


class AuthService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def resolve(self, session: AsyncSession, telegram_id: int) -> AuthResult:
        # Root admins come from env, always takes precedence.
        if telegram_id in self.settings.root_admin_ids:
            return AuthResult(is_root=True, is_admin=True, role="root")

        admin = await get_admin(session, telegram_id)
        if admin is None:
            return AuthResult(is_root=False, is_admin=False, role="user")

        return AuthResult(is_root=False, is_admin=True, role=admin.role.value)

    def key_matches(self, entered: str | None) -> bool:
        expected = self.settings.admin_key
        # no key configured -> unlock disabled
        return bool(expected) and (entered or "").strip() == expected

    async def unlock(
        self,
        session: AsyncSession,
        telegram_id: int,
        entered_key: str | None,
        display_name: str | None = None,
    ) -> bool:
        if not self.key_matches(entered_key):
            log.info("Admin unlock rejected for telegram_id=%s", telegram_id)
            return False
        await add_admin(session, telegram_id, display_name=display_name)
        log.info("Admin unlocked for telegram_id=%s", telegram_id)
        return True

    async def lock(self, session: AsyncSession, telegram_id: int) -> bool:
        return await remove_admin(session, telegram_id)
