import logging

from selforder.models.order import OrderStatus, PaymentMethod
from selforder.schemas.order import Order

logger = logging.getLogger(__name__)


def can_pay(order: Order) -> bool:
    return order.status == OrderStatus.COMPLETED and order.id is not None


def record_payment(order: Order, method: PaymentMethod) -> None:
    # No gateway: payment is only logged.
    logger.info(
        "Payment processed for order %s with %s",
        order.id,
        method.value,
        extra={"order_id": str(order.id), "method": method.value, "total": float(order.total)},
    )


class PaymentDialog:
    def __init__(self) -> None:
        self.selected_order: Order | None = None
        self.is_open = False

    def open(self, order: Order) -> bool:
        if not can_pay(order):
            return False
        self.selected_order = order
        self.is_open = True
        return True

    def close(self) -> None:
        self.is_open = False
        self.selected_order = None

    def submit(self, method: PaymentMethod) -> bool:
        if self.selected_order is None:
            return False
        record_payment(self.selected_order, method)
        return True
