"""
Transaction capability for read-then-write sequences that must land atomically.

Transactional logic is written against `Transaction` (read / write / commit)
and never touches the ORM directly. `SqlTransaction` adapts it to a
SQLAlchemy session: rows carry a `version` column, so a concurrent writer
makes the final flush fail with StaleDataError, and `run_transaction`
re-executes the whole body on a fresh snapshot.
"""
import logging
import random
import time
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ryme.exceptions import ConflictError
from ryme.models import Order, Product

logger = logging.getLogger(__name__)

Key = Tuple[str, Any]


class Transaction:
    """Store-agnostic transactional capability."""

    def read(self, kind: str, key: Any) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def write(self, kind: str, key: Any, changes: Dict[str, Any]) -> None:
        raise NotImplementedError

    def commit(self) -> None:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError


class SqlTransaction(Transaction):
    """
    Transaction over a SQLAlchemy session.

    Reads always hit the database (populate_existing) and remember the row
    version; writes are buffered and only applied on commit.
    """

    MODELS = {
        'order': Order,
        'product': Product,
    }

    def __init__(self, session):
        self.session = session
        self._rows: Dict[Key, Any] = {}
        self._writes: Dict[Key, Dict[str, Any]] = {}

    def _load(self, kind: str, key: Any):
        model = self.MODELS[kind]
        row = self.session.get(model, key, populate_existing=True)
        self._rows[(kind, key)] = row
        return row

    def read(self, kind, key):
        row = self._load(kind, key)
        return row.to_dict() if row is not None else None

    def write(self, kind, key, changes):
        self._writes.setdefault((kind, key), {}).update(changes)

    def commit(self):
        for (kind, key), changes in self._writes.items():
            row = self._rows.get((kind, key))
            if row is None:
                row = self._load(kind, key)
            for field, value in changes.items():
                setattr(row, field, value)
        self.session.commit()
        self._writes.clear()

    def rollback(self):
        self._writes.clear()
        self.session.rollback()


def run_transaction(
    session,
    body: Callable[[Transaction], Any],
    *,
    attempts: int = 5,
    backoff_base: float = 0.05,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    before_commit: Optional[Callable[[Any], None]] = None,
):
    """
    Run `body` inside a transaction, retrying on write-write conflicts.

    `before_commit(result)` runs after `body` succeeded and may add rows to
    the session; they land in the same commit and are retried with it.

    Retries on StaleDataError (optimistic locking conflict) and
    OperationalError (lock timeouts/deadlocks). Business errors raised by
    `body` roll back and propagate untouched.

    Raises:
        ConflictError: when every attempt hit a conflict
    """
    for attempt in range(1, attempts + 1):
        tx = SqlTransaction(session)
        try:
            result = body(tx)
            if before_commit:
                before_commit(result)
            tx.commit()
            return result
        except (StaleDataError, OperationalError) as exc:
            tx.rollback()
            if on_retry:
                on_retry(attempt, exc)
            if attempt >= attempts:
                logger.warning(f"[TX] Giving up after {attempts} attempts: {exc}")
                raise ConflictError('The operation conflicted with concurrent changes, please retry') from exc
            delay = min(backoff_base * (2 ** (attempt - 1)), 1.0)
            logger.info(f"[TX] Write conflict on attempt {attempt}, retrying in {delay:.3f}s")
            time.sleep(delay * random.uniform(0.5, 1.5))
        except Exception:
            tx.rollback()
            raise
