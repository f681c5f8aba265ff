# aspbot/database/models/study_session.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from aspbot.database.base import Base
from aspbot.services.records import SessionRecord
from aspbot.utils.dt import as_utc


class StudySession(Base):
    """
    One sign-in/sign-out interval. Times are naive UTC.
    Rows are never deleted; admins void them instead.
    """
    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_cadet_sign_in", "cadet_id", "sign_in"),
        # ✅ at most one open session per cadet, enforced by the store too
        Index(
            "uq_sessions_one_open_per_cadet",
            "cadet_id",
            unique=True,
            sqlite_where=text("sign_out IS NULL AND NOT voided"),
            postgresql_where=text("sign_out IS NULL AND NOT voided"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    cadet_id: Mapped[str] = mapped_column(ForeignKey("cadets.id", ondelete="CASCADE"), index=True)

    sign_in: Mapped[datetime] = mapped_column(DateTime(timezone=False), index=True)
    sign_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    voided: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    def to_record(self) -> SessionRecord:
        return SessionRecord(
            id=self.id,
            cadet_id=self.cadet_id,
            sign_in=as_utc(self.sign_in),
            sign_out=as_utc(self.sign_out) if self.sign_out is not None else None,
            voided=bool(self.voided),
        )
