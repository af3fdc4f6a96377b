# Overview: Transaction helpers shared by the service layer (row locks, retry on contention).

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, DependencyError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute one transactional operation, retrying on contention.

    Any exception rolls the session back so nothing half-written survives.
    OperationalError (deadlock, lock timeout, lost connection) and
    StaleDataError (optimistic version mismatch) are retried with exponential
    backoff; once attempts run out they surface as DependencyError and
    ConflictError respectively. Everything else propagates unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error("Giving up after %d attempts: %s", attempts, exc)
                if isinstance(exc, StaleDataError):
                    raise ConflictError("Record was modified concurrently, please retry") from exc
                raise DependencyError("Database unavailable") from exc
            current_app.logger.warning("Retrying after %s (attempt %d)", type(exc).__name__, attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
