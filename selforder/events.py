"""
Pydantic event schemas for order changes.
Published on every backing-store write and consumed from the staff backend
when it moves an order to completed/cancelled.
"""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from selforder.models.order import OrderStatus


class OrderChangeKind(str, Enum):
    PLACED = "placed"
    TABLE_CHANGED = "table_changed"
    STATUS_CHANGED = "status_changed"


class EventBase(BaseModel):
    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_version: int = 1
    correlation_id: str = "unknown"  # carries X-Request-ID from the HTTP layer
    occurred_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"extra": "ignore"}


class OrderChangedEvent(EventBase):
    order_id: uuid.UUID
    device_id: str
    kind: OrderChangeKind
    status: OrderStatus | None = None
    table_number: int | None = None
