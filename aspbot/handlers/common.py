# aspbot/handlers/common.py
from __future__ import annotations

from aiogram import Router
from aiogram.types import Message

from aspbot.utils.reply import reply_safe

router = Router(name="common")


@router.message()
async def fallback(message: Message) -> None:
    if message.chat.type != "private":
        return
    await reply_safe(message, "🤔 I didn't get that. Use /help to see commands.")
