from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping

from aspbot.config.settings import ProgramConfig
from aspbot.services.accounting import all_time_total, reward_days
from aspbot.services.records import Participant, SessionRecord


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    cadet_id: str
    name: str
    cohort: str | None
    group: str
    computed_minutes: int
    total_minutes: int  # what is displayed (override when set)
    overridden: bool
    reward_days: int


def build_leaderboard(
    participants: Mapping[str, Participant],
    sessions: Iterable[SessionRecord],
    overrides: Mapping[str, int],
    program: ProgramConfig,
    *,
    now: datetime | None = None,
) -> list[LeaderboardRow]:
    """
    One row per cadet that owns at least one non-void session, in the order
    cadets first appear in `sessions`. Sorted by displayed total, descending;
    ties keep encounter order.
    """
    by_cadet: dict[str, list[SessionRecord]] = defaultdict(list)
    for s in sessions:
        if s.voided:
            continue
        by_cadet[s.cadet_id].append(s)

    calendar = program.calendar
    rows: list[LeaderboardRow] = []

    for cadet_id, own in by_cadet.items():
        p = participants.get(cadet_id)
        if p is None:
            continue

        computed = all_time_total(own, calendar, now)
        override = overrides.get(cadet_id) if program.overrides_enabled else None
        total = int(override) if override is not None else computed

        rows.append(
            LeaderboardRow(
                cadet_id=cadet_id,
                name=p.name,
                cohort=p.cohort,
                group=p.group,
                computed_minutes=computed,
                total_minutes=total,
                overridden=override is not None,
                reward_days=reward_days(total, program.reward_day_minutes),
            )
        )

    # sorted() is stable
    return sorted(rows, key=lambda r: r.total_minutes, reverse=True)


def filter_by_cohort(rows: Iterable[LeaderboardRow], cohort: str | None) -> list[LeaderboardRow]:
    if not cohort or cohort.lower() == "all":
        return list(rows)
    return [r for r in rows if r.cohort == cohort]


def rank_of(rows: list[LeaderboardRow], cadet_id: str) -> int | None:
    for i, r in enumerate(rows, start=1):
        if r.cadet_id == cadet_id:
            return i
    return None
