"""Local queue storage. Lives in its own database, never in the shared store."""
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from sqlalchemy.orm import declarative_base
from ryme.utils.formatters import iso, utcnow

OfflineBase = declarative_base()


class OfflineOperation(OfflineBase):
    """
    One pending mutation.

    The autoincrement id is the FIFO cursor: the smallest id is the head.
    """

    __tablename__ = 'offline_operation'

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(40), nullable=False)
    method = Column(String(10), nullable=False)
    path = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    temp_id = Column(String(64), nullable=True, index=True)
    queued_at = Column(DateTime, nullable=False, default=utcnow)
    retry_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    def __repr__(self):
        return f"<OfflineOperation(id={self.id}, {self.method} {self.path})>"

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'method': self.method,
            'path': self.path,
            'payload': self.payload or {},
            'temp_id': self.temp_id,
            'queued_at': iso(self.queued_at),
            'retry_count': self.retry_count,
            'last_error': self.last_error,
        }
