import json

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select

from aspbot.config.settings import ProgramConfig
from aspbot.database.models import AdminActionLog
from aspbot.database.repo.leaderboard_repo import load_leaderboard
from aspbot.database.repo.sessions_repo import list_sessions
from aspbot.services.accounting import all_time_total
from aspbot.services.admin import AdminService
from aspbot.services.attendance import AttendanceService
from aspbot.services.auth import AuthService
from aspbot.services.errors import NotFoundError, ValidationError
from aspbot.services.expiry import SessionExpiry

ADMIN_TG = 777


@pytest.fixture
async def expiry(db):
    sched = AsyncIOScheduler(timezone="UTC")
    sched.start(paused=True)
    yield SessionExpiry(sched, db, 120)
    sched.shutdown(wait=False)


@pytest.fixture
def attendance(program, expiry):
    return AttendanceService(program, expiry=expiry)


@pytest.fixture
def admin(program, expiry):
    return AdminService(program, expiry=expiry)


async def _actions(session) -> list[AdminActionLog]:
    res = await session.execute(select(AdminActionLog).order_by(AdminActionLog.id.asc()))
    return list(res.scalars().all())


async def test_edit_session_closes_and_reopens(attendance, admin, expiry, session, et):
    result = await attendance.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 40))
    sid = result.session.id

    edited = await admin.edit_session(
        session,
        sid,
        new_start=et(2025, 9, 15, 19, 30),
        new_end=et(2025, 9, 15, 21, 0),
        actor_telegram_id=ADMIN_TG,
    )
    assert edited.sign_in == et(2025, 9, 15, 19, 30)
    assert edited.sign_out == et(2025, 9, 15, 21, 0)
    assert not expiry.is_armed(sid)

    rows = await load_leaderboard(session, admin.program)
    assert rows[0].total_minutes == 90

    reopened = await admin.edit_session(session, sid, new_start=et(2025, 9, 15, 19, 50), new_end=None)
    assert reopened.is_open
    assert not expiry.is_armed(sid)
    await session.commit()
    job = expiry.scheduler.get_job(SessionExpiry.job_id(sid))
    assert job.next_run_time == et(2025, 9, 15, 21, 50)

    log = await _actions(session)
    assert [a.action for a in log] == ["session_edit", "session_edit"]
    assert log[0].actor_telegram_id == ADMIN_TG
    payload = json.loads(log[0].payload_json)
    assert payload["new"]["sign_out"] is not None


async def test_edit_unknown_session(admin, session, et):
    with pytest.raises(NotFoundError):
        await admin.edit_session(session, "nope", new_start=et(2025, 9, 15, 19, 30), new_end=None)


async def test_void_participant_removes_from_leaderboard(attendance, admin, expiry, session, et):
    a = await attendance.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 30))
    await attendance.sign_out(session, telegram_id=1, now=et(2025, 9, 15, 20, 30))
    b = await attendance.sign_in(session, telegram_id=2, name="Bob", cohort="3C", now=et(2025, 9, 15, 19, 30))
    await attendance.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=et(2025, 9, 17, 19, 30))

    count = await admin.void_participant(session, a.cadet.id, actor_telegram_id=ADMIN_TG)
    assert count == 2

    rows = await load_leaderboard(session, admin.program, now=et(2025, 9, 15, 20, 0))
    assert [r.cadet_id for r in rows] == [b.cadet.id]
    await session.commit()
    assert len(expiry.scheduler.get_jobs()) == 1
    assert expiry.is_armed(b.session.id)

    # nothing left to void
    assert await admin.void_participant(session, a.cadet.id) == 0

    with pytest.raises(NotFoundError):
        await admin.void_participant(session, "missing")


async def test_override_is_display_only(attendance, admin, session, et):
    r = await attendance.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 35))
    await attendance.sign_out(session, telegram_id=1, now=et(2025, 9, 15, 20, 5))

    assert await admin.set_override(session, r.cadet.id, 1000, actor_telegram_id=ADMIN_TG) == 1000
    row = (await load_leaderboard(session, admin.program))[0]
    assert (row.total_minutes, row.computed_minutes, row.overridden) == (1000, 30, True)
    assert all_time_total(await list_sessions(session, r.cadet.id), admin.program.calendar) == 30

    _, sessions, override = await admin.cadet_sessions(session, r.cadet.id)
    assert override == 1000
    assert len(sessions) == 1

    assert await admin.set_override(session, r.cadet.id, -5) == 0

    assert await admin.clear_override(session, r.cadet.id) is True
    assert await admin.clear_override(session, r.cadet.id) is False
    row = (await load_leaderboard(session, admin.program))[0]
    assert (row.total_minutes, row.overridden) == (30, False)

    actions = [a.action for a in await _actions(session)]
    assert actions == ["override_set", "override_set", "override_clear"]


async def test_override_errors(session):
    admin = AdminService(ProgramConfig(overrides_enabled=False))
    with pytest.raises(ValidationError):
        await admin.set_override(session, "anyone", 10)

    with pytest.raises(NotFoundError):
        await AdminService(ProgramConfig()).set_override(session, "missing", 10)


async def test_cadet_sessions_unknown(admin, session):
    with pytest.raises(NotFoundError):
        await admin.cadet_sessions(session, "missing")


async def test_auth_resolve_unlock_lock(settings, session):
    auth = AuthService(settings)

    root = await auth.resolve(session, 1)
    assert (root.is_root, root.is_admin, root.role) == (True, True, "root")

    assert (await auth.resolve(session, ADMIN_TG)).is_admin is False
    assert await auth.unlock(session, ADMIN_TG, "wrong") is False
    assert await auth.unlock(session, ADMIN_TG, " sekret ", display_name="Sgt") is True

    res = await auth.resolve(session, ADMIN_TG)
    assert (res.is_root, res.is_admin, res.role) == (False, True, "admin")

    assert await auth.lock(session, ADMIN_TG) is True
    assert (await auth.resolve(session, ADMIN_TG)).is_admin is False


def test_empty_admin_key_disables_unlock(settings):
    from dataclasses import replace

    auth = AuthService(replace(settings, admin_key=""))
    assert auth.key_matches("") is False
    assert auth.key_matches(None) is False
