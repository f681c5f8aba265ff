import asyncio
from datetime import timedelta

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from aspbot.database.repo.sessions_repo import close_if_open, get_session_row
from aspbot.services import expiry as expiry_module
from aspbot.services.admin import AdminService
from aspbot.services.attendance import AttendanceService
from aspbot.services.expiry import SessionExpiry, expire_session
from aspbot.utils.dt import utcnow


@pytest.fixture
async def scheduler():
    # paused: jobs are stored and inspectable but never run on their own
    sched = AsyncIOScheduler(timezone="UTC")
    sched.start(paused=True)
    yield sched
    sched.shutdown(wait=False)


@pytest.fixture
def expiry(scheduler, db):
    return SessionExpiry(scheduler, db, 120)


async def _record(db, session_id):
    async with db.session() as s:
        row = await get_session_row(s, session_id)
        return row.to_record()


async def test_sign_in_arms_and_sign_out_cancels(program, db, session, expiry, scheduler, et):
    service = AttendanceService(program, expiry=expiry)
    start = et(2025, 9, 15, 19, 40)
    result = await service.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=start)

    job = scheduler.get_job(SessionExpiry.job_id(result.session.id))
    assert job is not None
    assert job.next_run_time == start + timedelta(minutes=120)

    # resuming keeps a single job
    await service.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=start + timedelta(minutes=5))
    assert len(scheduler.get_jobs()) == 1

    await service.sign_out(session, telegram_id=1, now=start + timedelta(minutes=30))
    # sign-out ran inside an open transaction; the cancel waits for the commit
    assert expiry.is_armed(result.session.id)
    await session.commit()
    assert not expiry.is_armed(result.session.id)
    assert expiry.cancel(result.session.id) is False


async def test_fire_closes_at_exact_cap(program, db, session, expiry, et):
    notified = []

    async def _on_expired(record):
        notified.append(record)

    expiry.on_expired = _on_expired
    service = AttendanceService(program)
    start = et(2025, 9, 15, 19, 40, 17)
    result = await service.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=start)

    closed = await expiry.fire(result.session.id)
    assert closed.sign_out == start + timedelta(minutes=120)
    assert [r.id for r in notified] == [result.session.id]

    stored = await _record(db, result.session.id)
    assert stored.sign_out == start + timedelta(minutes=120)

    # a duplicate or late job is a no-op
    assert await expiry.fire(result.session.id) is None
    assert len(notified) == 1


async def test_expiry_does_not_overwrite_manual_sign_out(program, db, session, expiry, et):
    service = AttendanceService(program)
    start = et(2025, 9, 15, 19, 40)
    result = await service.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=start)

    async with db.transaction() as s:
        assert await close_if_open(s, result.session.id, start + timedelta(minutes=10))

    assert await expiry.fire(result.session.id) is None
    stored = await _record(db, result.session.id)
    assert stored.sign_out == start + timedelta(minutes=10)


async def test_notifier_failure_does_not_undo_close(program, db, session, expiry, et):
    async def _boom(record):
        raise RuntimeError("telegram down")

    expiry.on_expired = _boom
    service = AttendanceService(program)
    result = await service.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 40))

    assert await expiry.fire(result.session.id) is not None
    assert (await _record(db, result.session.id)).sign_out is not None


async def test_expire_session_unknown_id(session):
    assert await expire_session(session, "missing", 120) is None


async def test_rearm_open_sessions(program, db, session, expiry, et):
    service = AttendanceService(program)
    old = await service.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=et(2025, 9, 15, 19, 30))
    fresh = await service.sign_in(session, telegram_id=2, name="Bob", cohort="3C", now=et(2025, 9, 17, 19, 50))
    done = await service.sign_in(session, telegram_id=3, name="Cara", cohort="4C", now=et(2025, 9, 17, 19, 30))
    async with db.transaction() as s:
        await close_if_open(s, done.session.id, et(2025, 9, 17, 19, 45))

    expired, armed = await expiry.rearm_open_sessions(et(2025, 9, 17, 20, 0))

    assert (expired, armed) == (1, 1)
    assert (await _record(db, old.session.id)).sign_out == et(2025, 9, 15, 21, 30)
    assert expiry.is_armed(fresh.session.id)
    assert not expiry.is_armed(old.session.id)
    assert not expiry.is_armed(done.session.id)


async def test_arming_waits_for_commit_and_is_dropped_on_rollback(program, db, expiry, et):
    service = AttendanceService(program, expiry=expiry)
    start = et(2025, 9, 15, 19, 40)

    async with db.SessionLocal() as s:
        await s.execute(text("SELECT 1"))
        rolled_back = await service.sign_in(s, telegram_id=1, name="Alice", cohort="2C", now=start)
        assert not expiry.is_armed(rolled_back.session.id)
        await s.rollback()
    assert not expiry.is_armed(rolled_back.session.id)

    async with db.SessionLocal() as s:
        await s.execute(text("SELECT 1"))
        kept = await service.sign_in(s, telegram_id=1, name="Alice", cohort="2C", now=start)
        assert not expiry.is_armed(kept.session.id)
        await s.commit()
    assert expiry.is_armed(kept.session.id)


async def test_fire_reschedules_when_database_is_busy(db, expiry, scheduler, monkeypatch):
    async def _locked(*args, **kwargs):
        raise OperationalError("UPDATE sessions", {}, Exception("database is locked"))

    monkeypatch.setattr(expiry_module, "expire_session", _locked)

    before = utcnow()
    assert await expiry.fire("s1") is None

    job = scheduler.get_job(SessionExpiry.job_id("s1"))
    assert job is not None
    assert job.next_run_time >= before + timedelta(seconds=SessionExpiry.RETRY_SECONDS)


# --- running scheduler, handler-shaped transactions ---


@pytest.fixture
async def live_expiry(db):
    sched = AsyncIOScheduler(timezone="UTC")
    sched.start()
    yield SessionExpiry(sched, db, 120)
    sched.shutdown(wait=False)


async def _wait_for_sign_out(db, session_id, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    record = await _record(db, session_id)
    while record.sign_out is None and loop.time() < deadline:
        await asyncio.sleep(0.05)
        record = await _record(db, session_id)
    return record


async def test_admin_reopen_with_past_start_expires_after_commit(program, db, session, live_expiry):
    setup = AttendanceService(program)
    result = await setup.sign_in(session, telegram_id=1, name="Alice", cohort="2C", now=utcnow(), bypass_window=True)
    sid = result.session.id

    admin = AdminService(program, expiry=live_expiry)
    async with db.SessionLocal() as s:
        # the middleware's session already has a transaction open by now
        await s.execute(text("SELECT 1"))
        reopened = await admin.edit_session(s, sid, new_start=utcnow() - timedelta(hours=3), new_end=None)
        assert reopened.is_open
        assert not live_expiry.is_armed(sid)
        await asyncio.sleep(0.3)
        await s.commit()

    stored = await _wait_for_sign_out(db, sid)
    assert stored.sign_out == stored.sign_in + timedelta(minutes=120)
    assert not live_expiry.is_armed(sid)


async def test_resuming_overdue_session_expires_after_commit(program, db, session, live_expiry):
    setup = AttendanceService(program)
    stale = await setup.sign_in(
        session,
        telegram_id=1,
        name="Alice",
        cohort="2C",
        now=utcnow() - timedelta(hours=3),
        bypass_window=True,
    )
    sid = stale.session.id

    service = AttendanceService(program, expiry=live_expiry)
    async with db.SessionLocal() as s:
        await s.execute(text("SELECT 1"))
        again = await service.sign_in(s, telegram_id=1, name="Alice", cohort="2C", now=utcnow(), bypass_window=True)
        assert again.resumed
        assert again.session.id == sid
        assert not live_expiry.is_armed(sid)
        await asyncio.sleep(0.3)
        await s.commit()

    stored = await _wait_for_sign_out(db, sid)
    assert stored.sign_out == stored.sign_in + timedelta(minutes=120)
