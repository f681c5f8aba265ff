# aspbot/database/models/override.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from aspbot.database.base import Base


class LeaderboardOverride(Base):
    """
    Admin-set absolute total minutes. Display only: replaces the computed
    leaderboard total, never touches sessions.
    """
    __tablename__ = "leaderboard_overrides"
    __table_args__ = (
        CheckConstraint("minutes_override >= 0", name="ck_leaderboard_overrides_nonneg"),
    )

    cadet_id: Mapped[str] = mapped_column(ForeignKey("cadets.id", ondelete="CASCADE"), primary_key=True)
    minutes_override: Mapped[int] = mapped_column(Integer)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        onupdate=func.now(),
    )
