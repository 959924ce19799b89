"""
Durable FIFO of mutations issued while offline.

Entries are stored in a local SQLite database (OFFLINE_QUEUE_URL). The
queue only orders and persists calls; executing them is the gate's job.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, func
from sqlalchemy.orm import sessionmaker

from ryme.commands import Command, encode
from ryme.offline.models import OfflineBase, OfflineOperation
from ryme.utils.formatters import utcnow

logger = logging.getLogger(__name__)


def replace_id(value: Any, temp_id: str, real_id: Any) -> Any:
    """Recursively swap every occurrence of temp_id inside a JSON payload."""
    if isinstance(value, str):
        return real_id if value == temp_id else value
    if isinstance(value, list):
        return [replace_id(v, temp_id, real_id) for v in value]
    if isinstance(value, dict):
        return {k: replace_id(v, temp_id, real_id) for k, v in value.items()}
    return value


def replace_path(path: str, temp_id: str, real_id: Any) -> str:
    return '/'.join(str(real_id) if segment == temp_id else segment for segment in path.split('/'))


class OfflineQueue:
    """
    Ordered persistent queue of pending commands.

    Args:
        url: SQLAlchemy URL of the local queue database
    """

    def __init__(self, url: str):
        self.url = url
        connect_args = {'check_same_thread': False, 'timeout': 30} if url.startswith('sqlite') else {}
        self.engine = create_engine(url, connect_args=connect_args)
        OfflineBase.metadata.create_all(bind=self.engine)
        self._Session = sessionmaker(bind=self.engine, expire_on_commit=False)

    def enqueue(self, command: Command, temp_id: Optional[str] = None) -> Dict[str, Any]:
        """Append a command at the tail."""
        method, path, payload = encode(command)
        session = self._Session()
        try:
            operation = OfflineOperation(
                type=command.type,
                method=method,
                path=path,
                payload=payload,
                temp_id=temp_id,
                queued_at=utcnow(),
            )
            session.add(operation)
            session.commit()
            logger.info(f"[OFFLINE] Queued #{operation.id} {method} {path}")
            return operation.to_dict()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def head(self) -> Optional[Dict[str, Any]]:
        """Oldest pending entry, or None when the queue is empty."""
        session = self._Session()
        try:
            operation = session.query(OfflineOperation).order_by(OfflineOperation.id.asc()).first()
            return operation.to_dict() if operation else None
        finally:
            session.close()

    def pending(self) -> List[Dict[str, Any]]:
        """Every pending entry in replay order."""
        session = self._Session()
        try:
            return [op.to_dict() for op in session.query(OfflineOperation).order_by(OfflineOperation.id.asc())]
        finally:
            session.close()

    def count(self) -> int:
        session = self._Session()
        try:
            return session.query(func.count(OfflineOperation.id)).scalar() or 0
        finally:
            session.close()

    def remove(self, entry_id: int) -> bool:
        """Drop an entry after its replay succeeded."""
        session = self._Session()
        try:
            deleted = session.query(OfflineOperation).filter(OfflineOperation.id == entry_id).delete()
            session.commit()
            return deleted > 0
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def record_failure(self, entry_id: int, error: str) -> None:
        """Keep the entry in place and remember why its replay failed."""
        session = self._Session()
        try:
            operation = session.get(OfflineOperation, entry_id)
            if operation is not None:
                operation.retry_count = (operation.retry_count or 0) + 1
                operation.last_error = error
                session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def rewrite_target(self, temp_id: str, real_id: Any) -> int:
        """
        Point queued entries that reference temp_id at the real id.

        Returns:
            Number of entries rewritten
        """
        session = self._Session()
        try:
            rewritten = 0
            for operation in session.query(OfflineOperation).order_by(OfflineOperation.id.asc()):
                path = replace_path(operation.path, temp_id, real_id)
                payload = replace_id(operation.payload or {}, temp_id, real_id)
                if path != operation.path or payload != operation.payload:
                    operation.path = path
                    operation.payload = payload
                    rewritten += 1
            session.commit()
            if rewritten:
                logger.info(f"[OFFLINE] Rewrote {rewritten} queued entries from {temp_id} to {real_id}")
            return rewritten
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def discard_head(self) -> Optional[Dict[str, Any]]:
        """
        Drop the head entry without replaying it (operator intervention).

        Returns:
            The discarded entry, or None when the queue is empty
        """
        head = self.head()
        if head is None:
            return None
        self.remove(head['id'])
        logger.warning(f"[OFFLINE] Discarded #{head['id']} {head['method']} {head['path']}: {head['last_error']}")
        return head
