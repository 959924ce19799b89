"""Recycle bin model: soft-deleted documents kept for a fixed window."""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime, JSON
from ryme.database import Base
from ryme.utils.formatters import iso


class RecycleBinEntry(Base):
    """
    Snapshot of a deleted record.

    expires_at is fixed at deletion time and never extended.
    """

    __tablename__ = 'recycle_bin'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    original_id = Column(String(64), nullable=False)
    type = Column(String(30), nullable=False, default='order')
    document = Column(JSON, nullable=False)
    deleted_at = Column(DateTime, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<RecycleBinEntry(id={self.id}, type={self.type}, original_id={self.original_id})>"

    def to_dict(self):
        return {
            **(self.document or {}),
            'id': self.id,
            'original_id': self.original_id,
            'type': self.type,
            'deleted_at': iso(self.deleted_at),
            'expires_at': iso(self.expires_at),
        }
