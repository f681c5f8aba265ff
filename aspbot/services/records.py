from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Participant:
    id: str
    name: str
    cohort: str | None
    group: str


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """
    One attendance interval. Instants are timezone-aware UTC.
    sign_out=None means the session is still open.
    """

    id: str
    cadet_id: str
    sign_in: datetime
    sign_out: datetime | None = None
    voided: bool = False

    @property
    def is_open(self) -> bool:
        return self.sign_out is None and not self.voided
