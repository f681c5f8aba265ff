# aspbot/handlers/admin/records.py
from __future__ import annotations

import html

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import Settings
from aspbot.handlers.admin.panel import require_admin_or_reply
from aspbot.services.accounting import all_time_total, window_overlap
from aspbot.services.admin import AdminService
from aspbot.services.errors import ASPError
from aspbot.utils.dt import utcnow
from aspbot.utils.formatting import format_hm
from aspbot.utils.parsing import parse_local_datetime, parse_optional_end
from aspbot.utils.reply import reply_safe

router = Router()


def _args(command: CommandObject) -> list[str]:
    return (command.args or "").split()


def _fmt_local(settings: Settings, dt) -> str:
    return f"{settings.program.calendar.local(dt):%Y-%m-%dT%H:%M}"


@router.message(Command("sessions"))
async def sessions_cmd(
    message: Message,
    command: CommandObject,
    settings: Settings,
    session: AsyncSession,
    admin_service: AdminService,
) -> None:
    if not await require_admin_or_reply(message, settings, session):
        return

    args = _args(command)
    if len(args) != 1:
        await reply_safe(message, "Usage: <code>/sessions &lt;cadet_id&gt;</code>")
        return

    try:
        cadet, sessions, override = await admin_service.cadet_sessions(session, args[0])
    except ASPError as e:
        await reply_safe(message, f"⚠️ {html.escape(e.message)}")
        return

    calendar = settings.program.calendar
    now = utcnow()
    computed = all_time_total(sessions, calendar, now)

    lines = [
        f"👤 <b>{html.escape(cadet.name)}</b> ({cadet.klass}, {html.escape(cadet.company)})",
        f"<code>{cadet.id}</code>",
        f"📚 Computed: <b>{format_hm(computed)}</b>"
        + (f" · Override: <b>{format_hm(override)}</b>" if override is not None else ""),
        f"🕒 Times in {calendar.timezone}",
        "",
    ]
    if not sessions:
        lines.append("No sessions.")

    for s in sessions:
        end = _fmt_local(settings, s.sign_out) if s.sign_out else "open"
        counted = window_overlap(s, calendar, s.sign_out or now) if not s.voided else 0
        flag = " 🚫void" if s.voided else ""
        lines.append(
            f"• <code>{s.id}</code>\n"
            f"  {_fmt_local(settings, s.sign_in)} → {end} · counts {counted}m{flag}"
        )

    await reply_safe(message, "\n".join(lines))


@router.message(Command("edit_session"))
async def edit_session_cmd(
    message: Message,
    command: CommandObject,
    settings: Settings,
    session: AsyncSession,
    admin_service: AdminService,
) -> None:
    if not await require_admin_or_reply(message, settings, session):
        return

    args = _args(command)
    if len(args) != 3:
        await reply_safe(
            message,
            "Usage: <code>/edit_session &lt;session_id&gt; YYYY-MM-DDTHH:MM YYYY-MM-DDTHH:MM|open</code>",
        )
        return

    calendar = settings.program.calendar
    try:
        new_start = parse_local_datetime(args[1], calendar)
        new_end = parse_optional_end(args[2], calendar)
    except ValueError:
        await reply_safe(message, "⚠️ Times must look like 2025-09-15T19:30.")
        return

    try:
        updated = await admin_service.edit_session(
            session,
            args[0],
            new_start=new_start,
            new_end=new_end,
            actor_telegram_id=message.from_user.id if message.from_user else None,
        )
    except ASPError as e:
        await reply_safe(message, f"⚠️ {html.escape(e.message)}")
        return

    end = _fmt_local(settings, updated.sign_out) if updated.sign_out else "open"
    await reply_safe(
        message,
        f"✅ Saved edits.\n<code>{updated.id}</code>\n{_fmt_local(settings, updated.sign_in)} → {end}",
    )


@router.message(Command("void_cadet"))
async def void_cadet_cmd(
    message: Message,
    command: CommandObject,
    settings: Settings,
    session: AsyncSession,
    admin_service: AdminService,
) -> None:
    if not await require_admin_or_reply(message, settings, session):
        return

    args = _args(command)
    if len(args) != 1:
        await reply_safe(message, "Usage: <code>/void_cadet &lt;cadet_id&gt;</code>")
        return

    try:
        n = await admin_service.void_participant(
            session,
            args[0],
            actor_telegram_id=message.from_user.id if message.from_user else None,
        )
    except ASPError as e:
        await reply_safe(message, f"⚠️ {html.escape(e.message)}")
        return

    await reply_safe(message, f"🗑 Removed cadet sessions ({n} voided). Overrides are kept.")


@router.message(Command("override"))
async def override_cmd(
    message: Message,
    command: CommandObject,
    settings: Settings,
    session: AsyncSession,
    admin_service: AdminService,
) -> None:
    if not await require_admin_or_reply(message, settings, session):
        return

    args = _args(command)
    if len(args) != 2:
        await reply_safe(message, "Usage: <code>/override &lt;cadet_id&gt; &lt;minutes|clear&gt;</code>")
        return

    cadet_id, value = args
    actor = message.from_user.id if message.from_user else None

    try:
        if value.lower() == "clear":
            removed = await admin_service.clear_override(session, cadet_id, actor_telegram_id=actor)
            text = "✅ Override cleared." if removed else "ℹ️ No override was set."
        else:
            try:
                minutes = int(float(value))
            except ValueError:
                await reply_safe(message, "⚠️ Minutes must be a number, e.g. 240.")
                return
            saved = await admin_service.set_override(session, cadet_id, minutes, actor_telegram_id=actor)
            text = f"✅ Override set: <b>{format_hm(saved)}</b> ({saved} min)."
    except ASPError as e:
        await reply_safe(message, f"⚠️ {html.escape(e.message)}")
        return

    await reply_safe(message, text)
