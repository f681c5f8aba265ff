"""
Shared fixtures: a default program (Mon/Wed 19:30–21:30 America/New_York),
a temp-file SQLite database, and an `et` helper for building instants.
"""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from aspbot.config.settings import ProgramConfig, Settings
from aspbot.database.session import Database

ET = ZoneInfo("America/New_York")

# Reference dates (2025): Mon Sep 15, Tue Sep 16, Wed Sep 17.


def _et(y: int, m: int, d: int, hh: int = 0, mm: int = 0, ss: int = 0) -> datetime:
    return datetime(y, m, d, hh, mm, ss, tzinfo=ET).astimezone(timezone.utc)


@pytest.fixture
def et():
    return _et


@pytest.fixture
def program() -> ProgramConfig:
    return ProgramConfig()


@pytest.fixture
def calendar(program):
    return program.calendar


@pytest.fixture
def settings(program) -> Settings:
    return Settings(
        bot_token="123:test",
        root_admin_ids=(1,),
        admin_key="sekret",
        program=program,
    )


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'asp_test.db'}")
    await database.init_models()
    yield database
    await database.close()


@pytest.fixture
async def session(db):
    async with db.session() as s:
        yield s
