# aspbot/database/models/identity.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from aspbot.database.base import Base


class Identity(Base):
    """Which cadet a Telegram account last signed in as."""
    __tablename__ = "identities"

    telegram_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    cadet_id: Mapped[str] = mapped_column(ForeignKey("cadets.id", ondelete="CASCADE"), index=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        onupdate=func.now(),
    )
