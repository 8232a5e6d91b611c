import datetime
import uuid

from sqlalchemy import Column, Integer, String, TIMESTAMP, CheckConstraint
from sqlalchemy.sql import func
from . import config
from .database import Base


def _new_record_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class InventoryRecord(Base):
    __tablename__ = config.INVENTORY_COLLECTION

    id = Column(String(36), primary_key=True, default=_new_record_id) # Assigned by the store, never by callers
    name = Column(String(255), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    # Client-side default keeps microseconds so same-second inserts still list in order
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint('quantity >= 0', name='inventory_quantity_non_negative'),
    )

    def __repr__(self):
        return f"<InventoryRecord(id='{self.id}', name='{self.name}', quantity={self.quantity})>"
