# aspbot/handlers/user/start.py
from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from aspbot.config.settings import Settings
from aspbot.keyboards.main import BTN_HOURS
from aspbot.utils.dt import utcnow
from aspbot.utils.formatting import format_hm, format_local, format_schedule
from aspbot.utils.reply import reply_safe

router = Router()


def hours_text(settings: Settings) -> str:
    program = settings.program
    calendar = program.calendar
    now = utcnow()

    if calendar.is_open(now):
        state = "🟢 <b>ASP is open now.</b>"
    else:
        state = "🔴 <b>ASP is closed.</b>"

    return (
        f"{state}\n"
        f"🕖 Hours: {format_schedule(calendar)}\n"
        f"📅 Next window: {format_local(calendar, calendar.next_open(now))}"
    )


def rules_text(settings: Settings) -> str:
    program = settings.program
    lines = [
        "📏 <b>Rules</b>",
        "• One active session per cadet.",
        f"• Auto sign-out at {format_hm(program.session_cap_minutes)}.",
    ]
    if program.nightly_cap_enabled:
        lines.append(
            f"• New sign-ins are blocked after {format_hm(program.nightly_cap_minutes)} total for the night."
        )
    lines.append(f"• 1 reward day per {format_hm(program.reward_day_minutes)} inside ASP windows.")
    return "\n".join(lines)


@router.message(CommandStart())
async def start_cmd(message: Message, settings: Settings) -> None:
    await reply_safe(
        message,
        "👋 <b>Welcome to ASP Online!</b>\n\n"
        f"{hours_text(settings)}\n\n"
        "Sign in with:\n"
        f"<code>/signin Full Name | {settings.program.cohorts[0]} | {settings.program.default_group}</code>\n"
        "Next time just tap ▶️ Sign in.\n\n"
        f"{rules_text(settings)}",
    )


@router.message(Command("help"))
async def help_cmd(message: Message, settings: Settings) -> None:
    cohorts = "/".join(settings.program.cohorts)
    await reply_safe(
        message,
        "📌 <b>Commands</b>\n"
        f"/signin &lt;name&gt; | &lt;{cohorts}&gt; [| &lt;company&gt;] — sign in\n"
        "/signin — sign in as your saved cadet\n"
        "/signout — sign out\n"
        "/status — timer, tonight and all-time minutes\n"
        "/leaderboard [class] — all-time leaderboard\n"
        "/hours — ASP hours\n"
        "/forget — forget your saved cadet\n\n"
        f"{rules_text(settings)}",
    )


@router.message(Command("hours"))
@router.message(F.text == BTN_HOURS)
async def hours_cmd(message: Message, settings: Settings) -> None:
    await reply_safe(message, hours_text(settings))
