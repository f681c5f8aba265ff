# aspbot/handlers/user/router.py
from aiogram import Router

from aspbot.handlers.user.start import router as start_router
from aspbot.handlers.user.signin import router as signin_router
from aspbot.handlers.user.status import router as status_router
from aspbot.handlers.user.leaderboard import router as leaderboard_router

router = Router(name="user")

router.include_router(start_router)
router.include_router(signin_router)
router.include_router(status_router)
router.include_router(leaderboard_router)
