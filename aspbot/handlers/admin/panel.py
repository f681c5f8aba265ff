# aspbot/handlers/admin/panel.py
from __future__ import annotations

import contextlib

from aiogram import Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import Settings
from aspbot.services.auth import AuthService
from aspbot.utils.reply import reply_safe

router = Router()

ADMIN_HELP = (
    "🛡 <b>Admin</b>\n"
    "/sessions &lt;cadet_id&gt; — recent sessions + override\n"
    "/edit_session &lt;session_id&gt; &lt;start&gt; &lt;end|open&gt;\n"
    "    times as YYYY-MM-DDTHH:MM in program time\n"
    "/void_cadet &lt;cadet_id&gt; — remove from leaderboard (voids sessions)\n"
    "/override &lt;cadet_id&gt; &lt;minutes|clear&gt; — display total\n"
    "/post_leaderboard — post the leaderboard card now\n"
    "/admin_off — disable admin\n\n"
    "Cadet ids are shown on /leaderboard while admin is on.\n"
    "Admins may sign in outside ASP hours."
)


async def require_admin_or_reply(message: Message, settings: Settings, session: AsyncSession) -> bool:
    tg = message.from_user
    if not tg:
        await message.answer("⛔ You are not allowed to use admin commands.")
        return False

    authz = await AuthService(settings).resolve(session, tg.id)
    if not authz.is_admin:
        await message.answer("⛔ You are not allowed to use admin commands.")
        return False
    return True


@router.message(Command("admin"))
async def admin_cmd(
    message: Message,
    command: CommandObject,
    settings: Settings,
    session: AsyncSession,
) -> None:
    tg = message.from_user
    if not tg:
        return

    auth = AuthService(settings)
    authz = await auth.resolve(session, tg.id)
    if authz.is_admin:
        await reply_safe(message, ADMIN_HELP)
        return

    if message.chat.type != "private":
        await message.answer("⛔ Unlock admin in a private chat.")
        return

    unlocked = await auth.unlock(session, tg.id, command.args, display_name=tg.full_name)
    if not unlocked:
        await message.answer("⛔ Wrong admin key.")
        return

    # don't leave the key sitting in the chat
    with contextlib.suppress(TelegramBadRequest):
        await message.delete()

    await reply_safe(message, "🔓 Admin enabled.\n\n" + ADMIN_HELP)


@router.message(Command("admin_off"))
async def admin_off_cmd(message: Message, settings: Settings, session: AsyncSession) -> None:
    tg = message.from_user
    if not tg:
        return

    auth = AuthService(settings)
    authz = await auth.resolve(session, tg.id)
    if authz.is_root:
        await reply_safe(message, "ℹ️ Root admins are configured in ROOT_ADMIN_IDS.")
        return

    await auth.lock(session, tg.id)
    await reply_safe(message, "🔒 Admin disabled.")
