# Overview: Transaction scoping and row locking shared by the mutating services.

from __future__ import annotations

from contextlib import contextmanager

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Products and orders also carry a version_id column, so a stale write
    fails with StaleDataError instead of overwriting a concurrent one.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work():
    """
    Run a block as one atomic unit of work on the current session.

    Commits when the block finishes; any exception rolls back every write
    made in the block and is re-raised unchanged. There is no retry.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
