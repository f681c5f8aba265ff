from aiogram import Router

from aspbot.handlers.admin.panel import router as panel_router
from aspbot.handlers.admin.records import router as records_router
from aspbot.handlers.admin.post import router as post_router

router = Router()

router.include_router(panel_router)
router.include_router(records_router)
router.include_router(post_router)
