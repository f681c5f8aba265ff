# aspbot/handlers/admin/post.py
from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import Settings
from aspbot.handlers.admin.panel import require_admin_or_reply
from aspbot.scheduler.jobs import post_nightly_leaderboard

router = Router()


@router.message(Command("post_leaderboard"))
async def post_leaderboard_cmd(
    message: Message,
    settings: Settings,
    session: AsyncSession,
    bot,
    db,
) -> None:
    if not await require_admin_or_reply(message, settings, session):
        return

    await message.answer("⏳ Posting the leaderboard to the group...")
    posted = await post_nightly_leaderboard(bot=bot, db=db, settings=settings)
    await message.answer("✅ Done." if posted else "⚠️ GROUP_ID is not configured.")
