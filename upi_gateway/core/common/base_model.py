"""
Shared columns for gateway tables
"""

import uuid
from sqlalchemy import Column, DateTime, Uuid
from sqlalchemy.sql import func
from upi_gateway.infrastructure.database import Base


class BaseModel(Base):
    """
    Abstract base: internal UUID key plus audit timestamps.

    The UUID never leaves the service; merchant-facing tables expose their
    own opaque identifier. updated_at is bumped by the database on every
    UPDATE, including the compare-and-set updates issued by reconciliation.
    """
    __abstract__ = True

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id}>"
