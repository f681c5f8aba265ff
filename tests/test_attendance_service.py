from datetime import timedelta

import pytest
from sqlalchemy import func, select

from aspbot.config.settings import ProgramConfig
from aspbot.database.models import Cadet, StudySession
from aspbot.database.repo.identity_repo import MemoryIdentityRepository
from aspbot.database.repo.leaderboard_repo import load_leaderboard
from aspbot.services import attendance as attendance_module
from aspbot.services.attendance import AttendanceService
from aspbot.services.errors import (
    CapExceededError,
    ClosedWindowError,
    NoOpenSessionError,
    ValidationError,
)

TG = 4242


@pytest.fixture
def service(program):
    return AttendanceService(program)


async def _count(session, model) -> int:
    return int(await session.scalar(select(func.count()).select_from(model)))


async def test_sign_in_creates_cadet_and_session(service, session, et):
    now = et(2025, 9, 15, 19, 45)
    result = await service.sign_in(session, telegram_id=TG, name="  Alice   Smith ", cohort="2c", now=now)

    assert result.resumed is False
    assert result.cadet.name == "Alice Smith"
    assert result.cadet.cohort == "2C"
    assert result.cadet.group == "G1"
    assert result.session.sign_in == now
    assert result.session.is_open

    assert await _count(session, Cadet) == 1
    assert await _count(session, StudySession) == 1
    remembered = await service.remembered_cadet(session, TG)
    assert remembered is not None and remembered.id == result.cadet.id


async def test_second_sign_in_resumes(service, session, et):
    first = await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 45))
    again = await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 20, 5))

    assert again.resumed is True
    assert again.session.id == first.session.id
    assert again.session.sign_in == first.session.sign_in
    assert await _count(session, StudySession) == 1


async def test_concurrent_insert_falls_back_to_resume(service, session, et, monkeypatch):
    first = await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 45))

    async def _stale_list(*args, **kwargs):
        return []

    # simulate a request that read the session list before the first insert landed
    monkeypatch.setattr(attendance_module, "list_sessions", _stale_list)
    again = await service.sign_in(session, telegram_id=TG + 1, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 46))

    assert again.resumed is True
    assert again.session.id == first.session.id
    assert await _count(session, StudySession) == 1


async def test_names_match_case_insensitively_and_are_canonicalized(service, session, et):
    first = await service.sign_in(session, telegram_id=TG, name="alice  smith", cohort="2C", now=et(2025, 9, 15, 19, 45))
    await service.sign_out(session, telegram_id=TG, now=et(2025, 9, 15, 20, 0))

    again = await service.sign_in(session, telegram_id=TG, name="Alice Smith", cohort="2C", now=et(2025, 9, 17, 19, 45))
    assert again.cadet.id == first.cadet.id
    assert again.cadet.name == "Alice Smith"
    assert await _count(session, Cadet) == 1


async def test_same_name_in_another_cohort_is_another_cadet(service, session, et):
    a = await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 45))
    b = await service.sign_in(session, telegram_id=TG + 1, name="Alice", cohort="3C", now=et(2025, 9, 15, 19, 45))
    assert a.cadet.id != b.cadet.id


async def test_closed_window_creates_nothing(service, session, et):
    with pytest.raises(ClosedWindowError):
        await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 16, 20, 0))
    assert await _count(session, Cadet) == 0
    assert await _count(session, StudySession) == 0


async def test_invalid_input_creates_nothing(service, session, et):
    with pytest.raises(ValidationError):
        await service.sign_in(session, telegram_id=TG, name="", cohort="2C", now=et(2025, 9, 15, 19, 45))
    with pytest.raises(ValidationError):
        await service.sign_in(session, telegram_id=TG, name="Alice", cohort="9Z", now=et(2025, 9, 15, 19, 45))
    assert await _count(session, Cadet) == 0


async def test_bypass_window_for_admins(service, session, et):
    result = await service.sign_in(
        session,
        telegram_id=TG,
        name="Alice",
        cohort="2C",
        now=et(2025, 9, 16, 20, 0),
        bypass_window=True,
    )
    assert result.resumed is False


async def test_nightly_cap_enforced_from_store(session, et):
    service = AttendanceService(ProgramConfig(nightly_cap_minutes=60))
    await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 30))
    await service.sign_out(session, telegram_id=TG, now=et(2025, 9, 15, 20, 30))

    with pytest.raises(CapExceededError):
        await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 20, 31))

    # a new night starts fresh
    result = await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 17, 19, 31))
    assert result.resumed is False


async def test_sign_out_and_double_sign_out(service, session, et):
    await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 35))
    closed = await service.sign_out(session, telegram_id=TG, now=et(2025, 9, 15, 20, 5))
    assert closed.sign_out == et(2025, 9, 15, 20, 5)

    with pytest.raises(NoOpenSessionError):
        await service.sign_out(session, telegram_id=TG, now=et(2025, 9, 15, 20, 6))

    rows = await load_leaderboard(session, service.program)
    assert [(r.name, r.total_minutes) for r in rows] == [("Alice", 30)]


async def test_sign_out_unknown_user(service, session, et):
    with pytest.raises(NoOpenSessionError):
        await service.sign_out(session, telegram_id=999, now=et(2025, 9, 15, 20, 0))


async def test_sign_in_remembered_and_forget(service, session, et):
    with pytest.raises(ValidationError):
        await service.sign_in_remembered(session, telegram_id=TG, now=et(2025, 9, 15, 19, 45))

    first = await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", group="G4", now=et(2025, 9, 15, 19, 45))
    await service.sign_out(session, telegram_id=TG, now=et(2025, 9, 15, 20, 0))

    again = await service.sign_in_remembered(session, telegram_id=TG, now=et(2025, 9, 17, 19, 45))
    assert again.cadet.id == first.cadet.id
    assert again.cadet.group == "G4"

    await service.forget(session, TG)
    assert await service.remembered_cadet(session, TG) is None


async def test_status_view(service, session, et):
    assert await service.status(session, telegram_id=TG, now=et(2025, 9, 15, 20, 0)) is None

    await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 30))
    view = await service.status(session, telegram_id=TG, now=et(2025, 9, 15, 20, 0, 30))

    assert view.open_session is not None
    assert view.elapsed_seconds == 30 * 60 + 30
    assert view.tonight_minutes == 30
    assert view.total_minutes == 30
    assert view.reward_days == 0
    assert view.window_open is True
    assert view.next_open == et(2025, 9, 17, 19, 30)


async def test_status_caps_elapsed(service, session, et):
    await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 30))
    view = await service.status(session, telegram_id=TG, now=et(2025, 9, 15, 19, 30) + timedelta(hours=3))
    assert view.elapsed_seconds == 120 * 60
    assert view.window_open is False


async def test_memory_identity_repository(program, session, et):
    service = AttendanceService(program, identities=MemoryIdentityRepository())
    result = await service.sign_in(session, telegram_id=TG, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 45))
    remembered = await service.remembered_cadet(session, TG)
    assert remembered.id == result.cadet.id
