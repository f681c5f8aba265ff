# aspbot/config/settings.py
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from aspbot.utils.window import WindowCalendar

_WEEKDAYS = {
    "mon": 0,
    "tue": 1,
    "wed": 2,
    "thu": 3,
    "fri": 4,
    "sat": 5,
    "sun": 6,
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _require(env: Mapping[str, str], key: str) -> str:
    v = env.get(key)
    if v is None or not v.strip():
        raise RuntimeError(f"Missing required environment variable: {key}")
    return v.strip()


def _to_int(value: str, key_name: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise RuntimeError(f"Invalid integer for {key_name}: {value!r}") from e


def _split(raw: str | None) -> list[str]:
    if not raw:
        return []
    cleaned = raw.strip().strip("[](){}").strip()
    if not cleaned:
        return []
    return [p.strip().strip("'\"") for p in re.split(r"[,\s]+", cleaned) if p.strip().strip("'\"")]


def _parse_int_list(raw: str | None, key_name: str) -> list[int]:
    """
    Parses comma/space/newline separated ints.
    Accepts:
      "951258732"
      "951258732,123"
      "951258732 123"
      "[951258732, 123]"  (brackets ignored)
    """
    return [_to_int(p, key_name) for p in _split(raw)]


def _parse_weekdays(raw: str | None, key_name: str) -> tuple[int, ...]:
    out: list[int] = []
    for p in _split(raw):
        key = p.lower()[:3]
        if key not in _WEEKDAYS:
            raise RuntimeError(f"Invalid weekday for {key_name}: {p!r}")
        if _WEEKDAYS[key] not in out:
            out.append(_WEEKDAYS[key])
    return tuple(out)


def _parse_hhmm(raw: str, key_name: str) -> int:
    m = re.fullmatch(r"(\d{1,2}):(\d{2})", raw.strip())
    if not m:
        raise RuntimeError(f"Invalid time for {key_name} (expected HH:MM): {raw!r}")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour == 24 and minute == 0:
        return 24 * 60
    if hour > 23 or minute > 59:
        raise RuntimeError(f"Invalid time for {key_name}: {raw!r}")
    return hour * 60 + minute


def _to_bool(raw: str | None, key_name: str, default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise RuntimeError(f"Invalid boolean for {key_name}: {raw!r}")


@dataclass(frozen=True, slots=True)
class ProgramConfig:
    """
    Everything that shapes attendance accounting.

    weekdays use Python numbering (Monday = 0). Window bounds are
    minute-of-day values in `timezone`, end exclusive.
    """

    weekdays: tuple[int, ...] = (0, 2)
    window_start_minute: int = 19 * 60 + 30
    window_end_minute: int = 21 * 60 + 30
    timezone: str = "America/New_York"

    session_cap_minutes: int = 120
    nightly_cap_minutes: int = 120
    reward_day_minutes: int = 240

    cohorts: tuple[str, ...] = ("1C", "2C", "3C", "4C")
    default_group: str = "G1"

    # feature flags
    overrides_enabled: bool = True
    nightly_cap_enabled: bool = True

    def __post_init__(self) -> None:
        if not self.weekdays:
            raise RuntimeError("ASP_DAYS must name at least one weekday")
        if any(d < 0 or d > 6 for d in self.weekdays):
            raise RuntimeError(f"Invalid weekdays: {self.weekdays!r}")
        if not 0 <= self.window_start_minute < self.window_end_minute <= 24 * 60:
            raise RuntimeError("ASP window start must be before window end")
        for name in ("session_cap_minutes", "nightly_cap_minutes", "reward_day_minutes"):
            if getattr(self, name) <= 0:
                raise RuntimeError(f"{name} must be positive")
        if not self.cohorts:
            raise RuntimeError("ASP_COHORTS must list at least one cohort")

    @property
    def calendar(self) -> WindowCalendar:
        return WindowCalendar(
            weekdays=self.weekdays,
            start_minute=self.window_start_minute,
            end_minute=self.window_end_minute,
            timezone=self.timezone,
        )

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ProgramConfig":
        defaults = cls()

        weekdays = _parse_weekdays(env.get("ASP_DAYS"), "ASP_DAYS") or defaults.weekdays

        start_raw = (env.get("ASP_WINDOW_START") or "").strip()
        end_raw = (env.get("ASP_WINDOW_END") or "").strip()
        start = _parse_hhmm(start_raw, "ASP_WINDOW_START") if start_raw else defaults.window_start_minute
        end = _parse_hhmm(end_raw, "ASP_WINDOW_END") if end_raw else defaults.window_end_minute

        def _int(key: str, default: int) -> int:
            raw = (env.get(key) or "").strip()
            return _to_int(raw, key) if raw else default

        cohorts = tuple(c.upper() for c in _split(env.get("ASP_COHORTS"))) or defaults.cohorts

        return cls(
            weekdays=weekdays,
            window_start_minute=start,
            window_end_minute=end,
            timezone=(env.get("TIMEZONE") or defaults.timezone).strip() or defaults.timezone,
            session_cap_minutes=_int("ASP_SESSION_CAP_MINUTES", defaults.session_cap_minutes),
            nightly_cap_minutes=_int("ASP_NIGHTLY_CAP_MINUTES", defaults.nightly_cap_minutes),
            reward_day_minutes=_int("ASP_REWARD_DAY_MINUTES", defaults.reward_day_minutes),
            cohorts=cohorts,
            default_group=(env.get("ASP_DEFAULT_GROUP") or defaults.default_group).strip() or defaults.default_group,
            overrides_enabled=_to_bool(env.get("ASP_OVERRIDES_ENABLED"), "ASP_OVERRIDES_ENABLED", True),
            nightly_cap_enabled=_to_bool(env.get("ASP_NIGHTLY_CAP_ENABLED"), "ASP_NIGHTLY_CAP_ENABLED", True),
        )


@dataclass(frozen=True, slots=True)
class Settings:
    # --- required ---
    bot_token: str

    # --- optional ---
    database_url: str = "sqlite+aiosqlite:///./asp.db"

    # --- security / admin ---
    root_admin_ids: tuple[int, ...] = ()
    admin_key: str = ""

    # --- telegram targets ---
    group_id: Optional[int] = None

    # --- program rules ---
    program: ProgramConfig = field(default_factory=ProgramConfig)

    # --- environment ---
    environment: str = "production"  # production | development

    @property
    def is_dev(self) -> bool:
        return self.environment.lower() in {"dev", "development", "local"}

    @property
    def timezone(self) -> str:
        return self.program.timezone

    @classmethod
    def load(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """
        Loads from process env (and .env if present) unless an explicit
        mapping is given. Fails fast for required fields.
        """
        if env is None:
            load_dotenv()
            env = os.environ

        bot_token = _require(env, "BOT_TOKEN")

        database_url = (env.get("DATABASE_URL") or "sqlite+aiosqlite:///./asp.db").strip()

        root_admin_ids = tuple(_parse_int_list(env.get("ROOT_ADMIN_IDS"), "ROOT_ADMIN_IDS"))
        admin_key = (env.get("ASP_ADMIN_KEY") or "").strip()

        group_id_raw = (env.get("GROUP_ID") or "").strip()
        group_id = _to_int(group_id_raw, "GROUP_ID") if group_id_raw else None

        environment = (env.get("ENVIRONMENT") or "production").strip() or "production"

        return cls(
            bot_token=bot_token,
            database_url=database_url,
            root_admin_ids=root_admin_ids,
            admin_key=admin_key,
            group_id=group_id,
            program=ProgramConfig.from_env(env),
            environment=environment,
        )
