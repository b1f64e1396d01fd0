"""
Ordering view: the state behind one customer's menu page.

Owns the cart, the live order list, the category filter, the table modal and
the payment dialog. All mutations run on one event loop; the submission flag
is the only guard. Use it as an async context manager so the order stream is
released exactly once::

    async with OrderingView(store, hub, storage, url_table="5") as view:
        view.add_to_cart(item)
        await view.order_now()
"""

import logging
import uuid
from collections.abc import Iterable
from decimal import Decimal

from selforder.exceptions import (
    InvalidTableNumberError,
    OrderSubmitError,
    SubscriptionError,
    TableUpdateError,
)
from selforder.models.order import PaymentMethod
from selforder.schemas.menu_item import Category, MenuItem, SelectedOption
from selforder.schemas.order import Order
from selforder.services.cart import Cart
from selforder.services.catalog import filter_menu_items, load_catalog, toggle_category
from selforder.services.device import get_or_create_device_id
from selforder.services.order_service import OrderSubmitter, merge_order
from selforder.services.order_stream import OrderStreamHub, OrderSubscription
from selforder.services.payment import PaymentDialog
from selforder.services.table import TableAssignment, TableModalState
from selforder.storage import LocalStorage
from selforder.store import BackingStore

logger = logging.getLogger(__name__)

ORDER_SUBMIT_ALERT = "Failed to place order. Please try again."
TABLE_UPDATE_ALERT = "Failed to update table number. Please try again."
INVALID_TABLE_ALERT = "Please enter a valid table number."


class OrderingView:
    def __init__(
        self,
        store: BackingStore,
        hub: OrderStreamHub,
        storage: LocalStorage,
        *,
        url_table: str | None = None,
        atomic_table_updates: bool = False,
    ) -> None:
        self._store = store
        self._hub = hub
        self.device_id = get_or_create_device_id(storage)
        self.table = TableAssignment(
            store, storage, self.device_id, url_table, atomic=atomic_table_updates
        )

        self.categories: list[Category] = []
        self.menu_items: list[MenuItem] = []
        self.selected_category: uuid.UUID | None = None
        self.is_loading = True

        self.cart = Cart()
        self._submitter = OrderSubmitter(store)

        self.orders: list[Order] = []
        self.is_loading_orders = True
        self.payment = PaymentDialog()
        self.alert: str | None = None

        self._mounted = False
        self._subscription: OrderSubscription | None = None

    async def __aenter__(self) -> "OrderingView":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.unmount()

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def mount(self) -> None:
        self._mounted = True
        catalog = await load_catalog(self._store)
        if not self._mounted:
            return
        self.categories = catalog.categories
        self.menu_items = catalog.items
        self.is_loading = False

        subscription = await self._hub.subscribe(
            self.device_id, self._on_orders, self._on_orders_error
        )
        if not self._mounted:
            subscription.unsubscribe()
            return
        self._subscription = subscription

    def unmount(self) -> None:
        self._mounted = False
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    @property
    def mounted(self) -> bool:
        return self._mounted

    def _on_orders(self, orders: list[Order]) -> None:
        if not self._mounted:
            return
        self.orders = orders
        self.is_loading_orders = False

    def _on_orders_error(self, error: SubscriptionError) -> None:
        logger.error("Error listening to orders", extra={"error": str(error)})
        if self._mounted:
            self.is_loading_orders = False

    # -----------------------------------------------------------------------
    # Menu
    # -----------------------------------------------------------------------

    def select_category(self, category_id: uuid.UUID | None) -> None:
        if category_id is None:
            self.selected_category = None
        else:
            self.selected_category = toggle_category(self.selected_category, category_id)

    @property
    def filtered_menu_items(self) -> list[MenuItem]:
        return filter_menu_items(self.menu_items, self.selected_category)

    # -----------------------------------------------------------------------
    # Cart
    # -----------------------------------------------------------------------

    def add_to_cart(self, item: MenuItem, selected_options: Iterable[SelectedOption] = ()) -> None:
        self.cart.add(item, selected_options)

    def update_quantity(
        self,
        item_id: uuid.UUID,
        quantity: int,
        selected_options: Iterable[SelectedOption] = (),
    ) -> None:
        self.cart.update_quantity(item_id, quantity, selected_options)

    @property
    def cart_total(self) -> Decimal:
        return self.cart.total()

    @property
    def is_submitting(self) -> bool:
        return self._submitter.is_submitting

    async def order_now(self) -> Order | None:
        self.alert = None
        try:
            order = await self._submitter.submit(self.cart, self.table.table_number, self.device_id)
        except InvalidTableNumberError:
            self.alert = INVALID_TABLE_ALERT
            self.table.request_edit()
            return None
        except OrderSubmitError as exc:
            logger.error("Error placing order", extra={"device_id": self.device_id, "error": str(exc)})
            if self._mounted:
                self.alert = ORDER_SUBMIT_ALERT
            return None

        if order is not None and self._mounted:
            self.orders = merge_order(self.orders, order)
        return order

    # -----------------------------------------------------------------------
    # Table
    # -----------------------------------------------------------------------

    @property
    def show_table_modal(self) -> bool:
        return self.table.modal == TableModalState.OPEN

    def edit_table(self) -> None:
        self.table.request_edit()

    async def submit_table(self, value: str) -> bool:
        self.alert = None
        try:
            updated = await self.table.confirm(value)
        except InvalidTableNumberError:
            self.alert = INVALID_TABLE_ALERT
            return False
        except TableUpdateError as exc:
            logger.error("Error updating table number", extra={"error": str(exc)})
            if self._mounted:
                self.alert = TABLE_UPDATE_ALERT
            return False
        return updated is not None

    # -----------------------------------------------------------------------
    # Order history / payment
    # -----------------------------------------------------------------------

    def open_payment(self, order: Order) -> bool:
        return self.payment.open(order)

    def close_payment(self) -> None:
        self.payment.close()

    def submit_payment(self, method: PaymentMethod = PaymentMethod.CASH) -> bool:
        return self.payment.submit(method)
