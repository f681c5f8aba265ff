# aspbot/database/models/admin.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column

from aspbot.database.base import Base


class AdminRole(str, enum.Enum):
    ROOT = "root"
    ADMIN = "admin"


class Admin(Base):
    """Telegram accounts that unlocked admin mode with the admin key."""
    __tablename__ = "admins"

    id: Mapped[int] = mapped_column(primary_key=True)
    telegram_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)

    role: Mapped[AdminRole] = mapped_column(
        Enum(AdminRole, native_enum=False),
        default=AdminRole.ADMIN,
        index=True,
    )

    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())
