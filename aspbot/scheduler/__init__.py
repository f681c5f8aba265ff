from __future__ import annotations

from aiogram import Bot
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from aspbot.config.settings import Settings
from aspbot.scheduler.jobs import build_scheduler


def setup_scheduler(bot: Bot, db, settings: Settings) -> AsyncIOScheduler:
    scheduler = build_scheduler(bot=bot, db=db, settings=settings)
    scheduler.start()
    return scheduler
