# aspbot/handlers/user/leaderboard.py
from __future__ import annotations

import html

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.config.settings import Settings
from aspbot.database.repo.leaderboard_repo import load_leaderboard
from aspbot.database.tx import persistence_errors
from aspbot.keyboards.cohorts import cohort_tabs_kb
from aspbot.keyboards.main import BTN_LEADERBOARD
from aspbot.services.attendance import AttendanceService
from aspbot.services.auth import AuthService
from aspbot.services.errors import ASPError
from aspbot.services.leaderboard import LeaderboardRow, filter_by_cohort, rank_of
from aspbot.utils.dt import utcnow
from aspbot.utils.formatting import format_hm
from aspbot.utils.reply import reply_safe

router = Router()

TOP_N = 15
MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


def render_leaderboard(
    rows: list[LeaderboardRow],
    *,
    cohort: str | None,
    me_cadet_id: str | None,
    show_ids: bool = False,
    limit: int = TOP_N,
) -> str:
    title = "🏆 <b>All-time Leaderboard</b>"
    if cohort and cohort != "all":
        title += f" — {html.escape(cohort)}"

    lines = [title, ""]
    if not rows:
        lines.append("ℹ️ No minutes logged yet.")
        return "\n".join(lines)

    for i, r in enumerate(rows[:limit], start=1):
        medal = MEDALS.get(i, f"{i}.")
        you = " <b>(you)</b>" if r.cadet_id == me_cadet_id else ""
        star = "*" if r.overridden and show_ids else ""
        line = (
            f"{medal} {html.escape(r.name)} · {r.cohort} · {html.escape(r.group)} — "
            f"<b>{format_hm(r.total_minutes)}</b>{star} · {r.reward_days}d{you}"
        )
        if show_ids:
            line += f"\n    <code>{r.cadet_id}</code>"
        lines.append(line)

    if me_cadet_id:
        lines.append("")
        rank = rank_of(rows, me_cadet_id)
        if rank is None:
            lines.append("📍 <b>Your rank:</b> unranked")
        else:
            me = rows[rank - 1]
            lines.append(f"📍 <b>Your rank:</b> {rank} / <b>{format_hm(me.total_minutes)}</b>")

    if show_ids:
        lines.append("")
        lines.append("* admin override")
    return "\n".join(lines)


def _cohort_arg(raw: str | None, settings: Settings) -> str | None:
    if not raw or not raw.strip():
        return None
    value = raw.strip().upper()
    if value == "ALL":
        return None
    return value if value in settings.program.cohorts else None


async def _build_text(
    session: AsyncSession,
    settings: Settings,
    attendance: AttendanceService,
    telegram_id: int,
    cohort: str | None,
) -> str:
    with persistence_errors("Loading leaderboard"):
        rows = await load_leaderboard(session, settings.program, now=utcnow())
    me = await attendance.remembered_cadet(session, telegram_id)
    authz = await AuthService(settings).resolve(session, telegram_id)

    return render_leaderboard(
        filter_by_cohort(rows, cohort),
        cohort=cohort,
        me_cadet_id=me.id if me else None,
        show_ids=authz.is_admin,
    )


@router.message(Command("leaderboard"))
@router.message(F.text == BTN_LEADERBOARD)
async def leaderboard_cmd(
    message: Message,
    settings: Settings,
    session: AsyncSession,
    attendance: AttendanceService,
    command: CommandObject | None = None,
) -> None:
    tg = message.from_user
    if not tg:
        return

    cohort = _cohort_arg(command.args if command else None, settings)
    try:
        text = await _build_text(session, settings, attendance, tg.id, cohort)
    except ASPError as e:
        await reply_safe(message, f"⚠️ {html.escape(e.message)}")
        return

    await reply_safe(
        message,
        text,
        reply_markup=cohort_tabs_kb(settings.program.cohorts, cohort),
    )


@router.callback_query(F.data.startswith("lb:"))
async def leaderboard_tab(
    cb: CallbackQuery,
    settings: Settings,
    session: AsyncSession,
    attendance: AttendanceService,
) -> None:
    cohort = _cohort_arg((cb.data or "").split(":", 1)[1], settings)
    try:
        text = await _build_text(session, settings, attendance, cb.from_user.id, cohort)
    except ASPError as e:
        await cb.answer(e.message, show_alert=True)
        return

    if cb.message is not None:
        await cb.message.edit_text(
            text,
            parse_mode="HTML",
            reply_markup=cohort_tabs_kb(settings.program.cohorts, cohort),
        )
    await cb.answer()
