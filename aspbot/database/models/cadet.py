# aspbot/database/models/cadet.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from aspbot.database.base import Base
from aspbot.services.records import Participant


class Cadet(Base):
    __tablename__ = "cadets"
    __table_args__ = (
        Index("ix_cadets_klass_company_name", "klass", "company", "name"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # uuid4

    # normalized: trimmed, single spaces
    name: Mapped[str] = mapped_column(String(128))
    klass: Mapped[str] = mapped_column(String(8), index=True)  # cohort tag, e.g. "2C"
    company: Mapped[str] = mapped_column(String(16))  # group tag, e.g. "G1"

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())

    def to_participant(self) -> Participant:
        return Participant(id=self.id, name=self.name, cohort=self.klass, group=self.company)
