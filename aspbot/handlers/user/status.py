# aspbot/handlers/user/status.py
from __future__ import annotations

import html

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import Settings
from aspbot.keyboards.main import BTN_STATUS
from aspbot.services.attendance import AttendanceService
from aspbot.services.errors import ASPError
from aspbot.utils.formatting import format_hm, format_hms, format_local
from aspbot.utils.reply import reply_safe

router = Router()


@router.message(Command("status"))
@router.message(F.text == BTN_STATUS)
async def status_cmd(
    message: Message,
    settings: Settings,
    session: AsyncSession,
    attendance: AttendanceService,
) -> None:
    tg = message.from_user
    if not tg:
        return

    try:
        view = await attendance.status(session, telegram_id=tg.id)
    except ASPError as e:
        await reply_safe(message, f"⚠️ {html.escape(e.message)}")
        return

    if view is None:
        await reply_safe(message, "ℹ️ No saved cadet yet. Sign in first with /signin.")
        return

    program = settings.program
    calendar = program.calendar

    if view.open_session:
        session_line = f"🟢 <b>Signed in</b> — {format_hms(view.elapsed_seconds)}"
    else:
        session_line = "⚪️ Not signed in"

    window_line = (
        "🟢 ASP is open now."
        if view.window_open
        else f"🔴 ASP is closed. Next: {format_local(calendar, view.next_open)}"
    )

    text = (
        f"👤 <b>{html.escape(view.cadet.name)}</b> ({view.cadet.cohort}, {html.escape(view.cadet.group)})\n"
        f"{session_line}\n"
        f"🌙 Tonight: <b>{format_hm(view.tonight_minutes)}</b> / {format_hm(program.nightly_cap_minutes)}\n"
        f"📚 All-time: <b>{format_hm(view.total_minutes)}</b>\n"
        f"🎖 Reward days: <b>{view.reward_days}</b>\n\n"
        f"{window_line}"
    )
    await reply_safe(message, text)
