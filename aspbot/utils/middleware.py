# aspbot/utils/middleware.py
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from aspbot.database.session import Database


class DbSessionMiddleware(BaseMiddleware):
    """
    Creates a DB session per update and injects it into handler data as `session`.
    Auto-commits on success and rolls back on error.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        async with self.db.SessionLocal() as session:
            data["session"] = session

            try:
                result = await handler(event, data)
                await session.commit()
                return result
            except Exception:
                await session.rollback()
                raise
