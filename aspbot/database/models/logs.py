# aspbot/database/models/logs.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from aspbot.database.base import Base


class AdminActionLog(Base):
    """
    Audit trail for admin writes (session edits, voids, overrides).
    Payload is a JSON string.
    """
    __tablename__ = "admin_action_logs"
    __table_args__ = (
        Index("ix_admin_action_logs_actor_time", "actor_telegram_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    actor_telegram_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(64), index=True)  # e.g. "session_edit", "cadet_void"
    target_type: Mapped[str | None] = mapped_column(String(32), nullable=True)  # "session", "cadet"
    target_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    payload_json: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())
