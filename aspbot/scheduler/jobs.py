from __future__ import annotations

import logging
from datetime import datetime

from aiogram import Bot
from aiogram.types import BufferedInputFile
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from aspbot.config.settings import ProgramConfig, Settings
from aspbot.database.repo.identity_repo import telegram_ids_for_cadet
from aspbot.database.repo.leaderboard_repo import load_leaderboard
from aspbot.services.expiry import ExpiredCallback
from aspbot.services.records import SessionRecord
from aspbot.utils.cards.leaderboard_card import CardRow, render_leaderboard_card
from aspbot.utils.dt import utcnow
from aspbot.utils.formatting import format_hm, format_schedule

log = logging.getLogger(__name__)

_CRON_DAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

POST_DELAY_MINUTES = 5
TOP_N = 10


# -------------------------------------------------
# Nightly leaderboard post
# -------------------------------------------------

def nightly_post_trigger(program: ProgramConfig) -> CronTrigger:
    """Fires a few minutes after each window closes, in the program timezone."""
    minute_total = program.window_end_minute + POST_DELAY_MINUTES
    day_shift, minute_of_day = divmod(minute_total, 24 * 60)
    days = ",".join(_CRON_DAYS[(d + day_shift) % 7] for d in sorted(program.weekdays))
    hour, minute = divmod(minute_of_day, 60)
    return CronTrigger(day_of_week=days, hour=hour, minute=minute, timezone=program.timezone)


async def post_nightly_leaderboard(
    bot: Bot,
    db,
    settings: Settings,
    *,
    now: datetime | None = None,
) -> bool:
    """
    Posts the all-time leaderboard card into settings.group_id.
    Returns False when there is nowhere to post.
    """
    if not settings.group_id:
        log.warning("Skipping leaderboard post: GROUP_ID is not set")
        return False

    now = now or utcnow()
    program = settings.program

    async with db.session() as session:
        rows = await load_leaderboard(session, program, now=now)

    top = rows[:TOP_N]
    local_day = program.calendar.local_date(now)
    title = "ASP Leaderboard"
    subtitle = f"All-time | {local_day.isoformat()} | {format_schedule(program.calendar)}"

    png_bytes = render_leaderboard_card(
        title=title,
        subtitle=subtitle,
        rows=[
            CardRow(
                rank=i,
                name=r.name,
                cohort=r.cohort or "-",
                minutes=r.total_minutes,
                reward_days=r.reward_days,
            )
            for i, r in enumerate(top, start=1)
        ],
        max_rows=TOP_N,
    )

    lines = [f"🏆 <b>{title}</b>", f"📅 {subtitle}", ""]
    if top:
        leader = top[0]
        lines.append(f"🥇 {leader.name} — <b>{format_hm(leader.total_minutes)}</b>")
    else:
        lines.append("ℹ️ No minutes logged yet.")
    lines.append("📚 See you next window!")

    await bot.send_photo(
        chat_id=settings.group_id,
        photo=BufferedInputFile(png_bytes, filename=f"asp_leaderboard_{local_day.isoformat()}.png"),
        caption="\n".join(lines),
        parse_mode="HTML",
    )
    log.info("Leaderboard posted to group=%s rows=%s", settings.group_id, len(top))
    return True


# -------------------------------------------------
# Expiry notifications
# -------------------------------------------------

def make_expiry_notifier(bot: Bot, db, program: ProgramConfig) -> ExpiredCallback:
    async def _notify(record: SessionRecord) -> None:
        async with db.session() as session:
            telegram_ids = await telegram_ids_for_cadet(session, record.cadet_id)

        for tg_id in telegram_ids:
            await bot.send_message(
                chat_id=tg_id,
                text=(
                    f"⏰ <b>Auto signed out at {format_hm(program.session_cap_minutes)}.</b>\n"
                    "Your time has been saved."
                ),
                parse_mode="HTML",
            )

    return _notify


# -------------------------------------------------
# Scheduler setup
# -------------------------------------------------

def build_scheduler(bot: Bot, db, settings: Settings) -> AsyncIOScheduler:
    """
    Creates an AsyncIOScheduler with the recurring jobs registered.
    Per-session expiry jobs are added later by SessionExpiry.
    """
    scheduler = AsyncIOScheduler(timezone=settings.program.timezone)

    scheduler.add_job(
        post_nightly_leaderboard,
        trigger=nightly_post_trigger(settings.program),
        kwargs={"bot": bot, "db": db, "settings": settings},
        id="post_nightly_leaderboard",
        replace_existing=True,
        coalesce=True,
        misfire_grace_time=300,
    )

    return scheduler
