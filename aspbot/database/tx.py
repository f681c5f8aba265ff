# aspbot/database/tx.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Callable, Iterator

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

from aspbot.services.errors import PersistenceError

log = logging.getLogger(__name__)

_AFTER_COMMIT_KEY = "aspbot.after_commit"


@asynccontextmanager
async def transactional(session: AsyncSession):
    """
    Safe transactional context for SQLAlchemy 2.x autobegin.

    - If a transaction is already active, use SAVEPOINT (begin_nested)
    - Otherwise, start a new transaction
    """
    if session.in_transaction():
        async with session.begin_nested():
            yield
    else:
        async with session.begin():
            yield


def after_commit(session: AsyncSession, action: Callable[[], None]) -> None:
    """
    Run `action` once the outermost transaction of `session` commits.

    - no transaction open: runs right away
    - SAVEPOINT releases do not count, only the real COMMIT
    - rollback or close without commit drops it
    """
    sync = session.sync_session
    if not sync.in_transaction():
        action()
        return

    pending = sync.info.get(_AFTER_COMMIT_KEY)
    if pending is None:
        pending = sync.info[_AFTER_COMMIT_KEY] = []
        event.listen(sync, "after_commit", _run_pending)
        event.listen(sync, "after_transaction_end", _drop_pending)
    pending.append(action)


def _run_pending(sync: Session) -> None:
    if sync.in_nested_transaction():
        return
    actions = sync.info.get(_AFTER_COMMIT_KEY) or []
    sync.info[_AFTER_COMMIT_KEY] = []
    for action in actions:
        try:
            action()
        except Exception:
            # the data is already committed; one failed hook must not stop the rest
            log.exception("After-commit action failed")


def _drop_pending(sync: Session, transaction: SessionTransaction) -> None:
    if transaction.parent is None:
        sync.info[_AFTER_COMMIT_KEY] = []


@contextmanager
def persistence_errors(action: str) -> Iterator[None]:
    """
    Surface storage failures as PersistenceError. No retries here;
    the caller decides what to do.
    """
    try:
        yield
    except SQLAlchemyError as e:
        raise PersistenceError(f"{action} failed: {e.__class__.__name__}") from e
