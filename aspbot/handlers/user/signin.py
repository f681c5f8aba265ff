# aspbot/handlers/user/signin.py
from __future__ import annotations

import html
import logging

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import ProgramConfig, Settings
from aspbot.keyboards.main import BTN_SIGN_IN, BTN_SIGN_OUT
from aspbot.services.accounting import elapsed_current
from aspbot.services.attendance import AttendanceService
from aspbot.services.auth import AuthService
from aspbot.services.errors import ASPError
from aspbot.services.records import SessionRecord
from aspbot.utils.formatting import format_hm
from aspbot.utils.parsing import parse_signin_args
from aspbot.utils.reply import reply_safe

log = logging.getLogger(__name__)
router = Router()


def signed_out_text(closed: SessionRecord, program: ProgramConfig) -> str:
    # clamped to the session cap
    minutes = elapsed_current(closed, closed.sign_out or closed.sign_in, program.session_cap_minutes)
    return "👋 <b>Signed out. Nice work!</b>\n" f"⏱ This session: <b>{format_hm(minutes)}</b>"


async def _sign_in(
    message: Message,
    settings: Settings,
    session: AsyncSession,
    attendance: AttendanceService,
    raw_args: str | None,
) -> None:
    tg = message.from_user
    if not tg:
        return

    if message.chat.type != "private":
        await reply_safe(message, "ℹ️ Please sign in from a private chat with the bot.")
        return

    authz = await AuthService(settings).resolve(session, tg.id)
    args = parse_signin_args(raw_args)

    try:
        if args is None:
            res = await attendance.sign_in_remembered(
                session,
                telegram_id=tg.id,
                bypass_window=authz.is_admin,
            )
        else:
            res = await attendance.sign_in(
                session,
                telegram_id=tg.id,
                name=args.name,
                cohort=args.cohort,
                group=args.group,
                bypass_window=authz.is_admin,
            )
    except ASPError as e:
        log.info("Sign-in rejected for telegram_id=%s: %s", tg.id, e.__class__.__name__)
        text = f"⚠️ {html.escape(e.message)}"
        if args is None and e.message.startswith("Enter your name"):
            cohorts = "/".join(settings.program.cohorts)
            text += f"\n\n<code>/signin Full Name | {cohorts} | {settings.program.default_group}</code>"
        await reply_safe(message, text)
        return

    who = f"{html.escape(res.cadet.name)} ({res.cadet.cohort}, {html.escape(res.cadet.group)})"
    if res.resumed:
        text = f"🔁 <b>Resumed your active session.</b>\n👤 {who}"
    else:
        text = (
            "✅ <b>Signed in. Have a great study session!</b>\n"
            f"👤 {who}\n"
            f"⏰ Auto sign-out after {format_hm(settings.program.session_cap_minutes)}."
        )
    await reply_safe(message, text)


@router.message(Command("signin"))
async def signin_cmd(
    message: Message,
    command: CommandObject,
    settings: Settings,
    session: AsyncSession,
    attendance: AttendanceService,
) -> None:
    await _sign_in(message, settings, session, attendance, command.args)


@router.message(F.text == BTN_SIGN_IN)
async def signin_button(
    message: Message,
    settings: Settings,
    session: AsyncSession,
    attendance: AttendanceService,
) -> None:
    await _sign_in(message, settings, session, attendance, None)


@router.message(Command("signout"))
@router.message(F.text == BTN_SIGN_OUT)
async def signout_cmd(message: Message, session: AsyncSession, attendance: AttendanceService) -> None:
    tg = message.from_user
    if not tg:
        return

    try:
        closed = await attendance.sign_out(session, telegram_id=tg.id)
    except ASPError as e:
        await reply_safe(message, f"⚠️ {html.escape(e.message)}")
        return

    await reply_safe(message, signed_out_text(closed, attendance.program))


@router.message(Command("forget"))
async def forget_cmd(message: Message, session: AsyncSession, attendance: AttendanceService) -> None:
    tg = message.from_user
    if not tg:
        return
    try:
        await attendance.forget(session, tg.id)
    except ASPError as e:
        await reply_safe(message, f"⚠️ {html.escape(e.message)}")
        return
    await reply_safe(message, "🧹 Saved cadet cleared. Use /signin with your name next time.")
