"""
Activity log model: append-only audit trail of every mutation.
"""
from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime
from ryme.database import Base
from ryme.utils.formatters import iso, utcnow
import enum
import json


class ActivityAction(str, enum.Enum):
    """Enumeration of logged actions."""
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    PERMANENT_DELETE = 'permanent_delete'
    RESTORE = 'restore'
    AUTO_CLEANUP = 'auto_cleanup'


class ActivityLogEntry(Base):
    """One audit entry. Rows are never updated or deleted by normal flows."""

    __tablename__ = 'activity_log'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    action = Column(String(30), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)  # e.g., 'product', 'order', 'recycle_bin'
    entity_id = Column(String(64), nullable=True)
    description = Column(Text, nullable=False)
    data = Column(Text, nullable=True)  # JSON snapshot
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self):
        return f"<ActivityLogEntry {self.action} {self.entity_type} at {self.timestamp}>"

    def to_dict(self):
        return {
            'id': self.id,
            'action': self.action,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'description': self.description,
            'data': json.loads(self.data) if self.data else None,
            'timestamp': iso(self.timestamp),
        }
