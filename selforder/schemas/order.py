import uuid
from decimal import Decimal

from pydantic import BaseModel, Field

from selforder.models.order import OrderStatus, PaymentMethod
from selforder.schemas.menu_item import CartItem


class OrderCreate(BaseModel):
    device_id: str
    table_number: int
    items: list[CartItem]
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    created_at: int
    payment_method: PaymentMethod | None = PaymentMethod.CASH


class Order(OrderCreate):
    id: uuid.UUID

    model_config = {"from_attributes": True}


class CartLineRequest(BaseModel):
    menu_item_id: uuid.UUID
    quantity: int = Field(default=1, ge=1)
    option_ids: list[uuid.UUID] = Field(default_factory=list)


class OrderRequest(BaseModel):
    items: list[CartLineRequest] = Field(min_length=1)
    # Falls back to the table_number cookie when omitted
    table_number: str | None = None


class PaymentRequest(BaseModel):
    method: PaymentMethod = PaymentMethod.CASH


class PaymentResponse(BaseModel):
    order_id: uuid.UUID
    method: PaymentMethod
    total: Decimal
    settled: bool = False
