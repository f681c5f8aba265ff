from __future__ import annotations

import json
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from aspbot.database.models import AdminActionLog


async def log_admin_action(
    session: AsyncSession,
    *,
    actor_telegram_id: int | None,
    action: str,
    target_type: str | None = None,
    target_id: str | None = None,
    payload: dict[str, Any] | None = None,
) -> None:
    payload_json = json.dumps(payload, default=str)[:2000] if payload else None
    session.add(
        AdminActionLog(
            actor_telegram_id=actor_telegram_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            payload_json=payload_json,
        )
    )
    await session.flush()
