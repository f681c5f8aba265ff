# aspbot/main.py
import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from aspbot.config import Settings
from aspbot.database import Database
from aspbot.handlers.router import router as handlers_router
from aspbot.scheduler import setup_scheduler
from aspbot.scheduler.jobs import make_expiry_notifier
from aspbot.services.admin import AdminService
from aspbot.services.attendance import AttendanceService
from aspbot.services.expiry import SessionExpiry
from aspbot.utils.dt import utcnow
from aspbot.utils.formatting import format_schedule
from aspbot.utils.middleware import DbSessionMiddleware


def setup_logging(is_dev: bool) -> None:
    """
    Clean production logging:
    - app logs: INFO (or DEBUG in dev)
    - SQLAlchemy / scheduler logs: WARNING+
    """
    app_level = logging.DEBUG if is_dev else logging.INFO

    logging.basicConfig(
        level=app_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    for name in (
        "sqlalchemy",
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        "sqlalchemy.orm",
        "aiosqlite",
        "asyncpg",
        "apscheduler",
    ):
        logging.getLogger(name).setLevel(logging.WARNING)


async def main() -> None:
    settings = Settings.load()
    setup_logging(settings.is_dev)
    log = logging.getLogger("aspbot")

    program = settings.program
    log.info("ASP hours: %s", format_schedule(program.calendar))

    db = Database(settings.database_url)
    await db.init_models()
    log.info("DB initialized")

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )

    scheduler = setup_scheduler(bot=bot, db=db, settings=settings)
    log.info("Scheduler started")

    expiry = SessionExpiry(
        scheduler,
        db,
        program.session_cap_minutes,
        on_expired=make_expiry_notifier(bot, db, program),
    )
    await expiry.rearm_open_sessions(utcnow())

    dp = Dispatcher()

    # Inject workflow data
    dp.workflow_data["settings"] = settings
    dp.workflow_data["db"] = db
    dp.workflow_data["expiry"] = expiry
    dp.workflow_data["attendance"] = AttendanceService(program, expiry=expiry)
    dp.workflow_data["admin_service"] = AdminService(program, expiry=expiry)

    # DB session per update
    dp.update.middleware(DbSessionMiddleware(db))

    dp.include_router(handlers_router)

    try:
        await dp.start_polling(bot)
    except (asyncio.CancelledError, KeyboardInterrupt):
        pass
    except Exception:
        log.exception("Bot crashed")
        raise
    finally:
        try:
            scheduler.shutdown(wait=False)
        except Exception:
            log.exception("Failed to shutdown scheduler")

        try:
            await db.close()
        except Exception:
            log.exception("Failed to close DB")

        try:
            await bot.session.close()
        except Exception:
            log.exception("Failed to close bot session")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
