"""Persisted offline queue model."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func

from surveysync.core.database import Base


class QueueRecord(Base):
    """
    Single durable key/value record holding the serialized offline queue.

    The whole queue lives in ``value`` as JSON and is always rewritten in
    full; there are no per-item rows.
    """

    __tablename__ = "offline_store"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<QueueRecord(key={self.key}, size={len(self.value or '')})>"
