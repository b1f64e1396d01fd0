import logging
import time
import uuid

from opentelemetry import trace

from selforder.exceptions import InvalidTableNumberError, OrderSubmitError
from selforder.metrics import ORDERS_SUBMITTED
from selforder.models.order import OrderStatus, PaymentMethod
from selforder.schemas.menu_item import MenuItem
from selforder.schemas.order import CartLineRequest, Order, OrderCreate
from selforder.services.cart import Cart, select_options
from selforder.store import BackingStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_table_number(value: str | int) -> int:
    text = str(value).strip()
    # isdigit() also accepts superscripts and other non-ASCII digits int() rejects
    if not (text.isascii() and text.isdigit()) or int(text) < 1:
        raise InvalidTableNumberError(f"Invalid table number: {value!r}")
    return int(text)


def build_order(cart: Cart, table_number: str | int, device_id: str) -> OrderCreate:
    return OrderCreate(
        device_id=device_id,
        table_number=parse_table_number(table_number),
        items=cart.snapshot(),
        total=cart.total(),
        status=OrderStatus.PENDING,
        created_at=now_ms(),
        payment_method=PaymentMethod.CASH,
    )


def build_cart(menu_items: list[MenuItem], lines: list[CartLineRequest]) -> Cart:
    """Rebuild a cart from posted lines, taking prices and options from the catalog."""
    by_id = {item.id: item for item in menu_items}
    missing = {line.menu_item_id for line in lines} - set(by_id)
    if missing:
        raise ValueError(f"Menu items not found: {sorted(str(m) for m in missing)}")

    cart = Cart()
    for line in lines:
        item = by_id[line.menu_item_id]
        options = select_options(item, line.option_ids)
        cart_line = cart.add(item, options)
        cart.update_quantity(item.id, cart_line.quantity - 1 + line.quantity, options)
    return cart


def merge_order(orders: list[Order], order: Order) -> list[Order]:
    """Prepend ``order`` unless the live stream already delivered it."""
    if any(existing.id == order.id for existing in orders):
        return orders
    return [order, *orders]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def save_order(store: BackingStore, order: OrderCreate) -> uuid.UUID:
    try:
        return await store.add_order(order)
    except Exception as exc:
        logger.error(
            "Error saving order",
            extra={"device_id": order.device_id, "error": str(exc)},
        )
        raise OrderSubmitError(f"Could not save order: {exc}") from exc


async def submit_order(
    store: BackingStore,
    cart: Cart,
    table_number: str | None,
    device_id: str,
) -> Order | None:
    """
    Persist the cart as a pending order and clear the cart.

    Returns None without touching the store when the cart is empty or no
    table is set. On failure raises OrderSubmitError and leaves the cart as is.
    """
    if cart.is_empty or not table_number:
        return None

    new_order = build_order(cart, table_number, device_id)

    with tracer.start_as_current_span("orders.submit"):
        try:
            order_id = await save_order(store, new_order)
        except OrderSubmitError:
            ORDERS_SUBMITTED.labels("failed").inc()
            raise

    ORDERS_SUBMITTED.labels("success").inc()
    cart.clear()

    logger.info(
        "Order placed",
        extra={
            "order_id": str(order_id),
            "device_id": device_id,
            "table_number": new_order.table_number,
            "amount": float(new_order.total),
            "item_count": len(new_order.items),
        },
    )
    return Order(id=order_id, **new_order.model_dump())


class OrderSubmitter:
    """Single-flight wrapper: a submission in progress suppresses duplicates."""

    def __init__(self, store: BackingStore) -> None:
        self._store = store
        self.is_submitting = False

    async def submit(self, cart: Cart, table_number: str | None, device_id: str) -> Order | None:
        if self.is_submitting:
            logger.debug("Submission already in progress", extra={"device_id": device_id})
            return None

        self.is_submitting = True
        try:
            return await submit_order(self._store, cart, table_number, device_id)
        finally:
            self.is_submitting = False
