import asyncio
import time
import uuid
from decimal import Decimal

import pytest

from selforder.exceptions import InvalidOptionError, InvalidTableNumberError, OrderSubmitError
from selforder.models.order import OrderStatus, PaymentMethod
from selforder.schemas.order import CartLineRequest
from selforder.services.cart import Cart, select_options
from selforder.services.catalog import load_catalog
from selforder.services.order_service import (
    OrderSubmitter,
    build_cart,
    merge_order,
    parse_table_number,
    submit_order,
)
from selforder.store import BackingStore


class CountingStore(BackingStore):
    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.writes = 0

    async def add_order(self, order):
        self.writes += 1
        return await super().add_order(order)


class FailingStore(BackingStore):
    async def add_order(self, order):
        raise ConnectionError("write rejected")


class BlockingStore(CountingStore):
    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.release = asyncio.Event()

    async def add_order(self, order):
        await self.release.wait()
        return await super().add_order(order)


def _cart(make_item):
    burger = make_item(options=[("Cheese", "15.00")])
    cart = Cart()
    cart.add(burger, select_options(burger, [burger.options[0].id]))
    cart.add(make_item("Cola", "50.00"))
    return cart


async def test_submit_persists_pending_order_and_clears_cart(store, make_item):
    cart = _cart(make_item)
    before = int(time.time() * 1000)

    order = await submit_order(store, cart, "7", "device-1")

    assert cart.is_empty
    assert order.status == OrderStatus.PENDING
    assert order.payment_method == PaymentMethod.CASH
    assert order.table_number == 7
    assert order.total == Decimal("165.00")
    assert order.created_at >= before

    [saved] = await store.list_orders("device-1")
    assert saved.id == order.id
    assert saved.total == Decimal("165.00")
    assert [(i.name, i.quantity) for i in saved.items] == [("Burger", 1), ("Cola", 1)]
    assert saved.items[0].selected_options[0].name == "Cheese"


async def test_submit_empty_cart_is_noop(session_factory):
    store = CountingStore(session_factory)

    assert await submit_order(store, Cart(), "7", "device-1") is None
    assert store.writes == 0


async def test_submit_without_table_is_noop(session_factory, make_item):
    store = CountingStore(session_factory)
    cart = _cart(make_item)

    assert await submit_order(store, cart, None, "device-1") is None
    assert store.writes == 0
    assert len(cart) == 2


async def test_submit_failure_keeps_cart(session_factory, make_item):
    cart = _cart(make_item)
    submitter = OrderSubmitter(FailingStore(session_factory))

    with pytest.raises(OrderSubmitError):
        await submitter.submit(cart, "7", "device-1")

    assert len(cart) == 2
    assert not submitter.is_submitting


async def test_submit_rejects_non_numeric_table(store, make_item):
    with pytest.raises(InvalidTableNumberError):
        await submit_order(store, _cart(make_item), "window", "device-1")


async def test_duplicate_submit_is_suppressed_while_in_flight(session_factory, make_item):
    store = BlockingStore(session_factory)
    submitter = OrderSubmitter(store)
    cart = _cart(make_item)

    first = asyncio.create_task(submitter.submit(cart, "7", "device-1"))
    while not submitter.is_submitting:
        await asyncio.sleep(0)

    assert await submitter.submit(cart, "7", "device-1") is None

    store.release.set()
    order = await first

    assert order is not None
    assert store.writes == 1
    assert not submitter.is_submitting


async def test_merge_order_skips_already_delivered(store, make_item):
    order = await submit_order(store, _cart(make_item), "7", "device-1")

    assert merge_order([order], order) == [order]
    assert merge_order([], order) == [order]


async def test_build_cart_uses_catalog_prices_and_options(store, menu):
    catalog = await load_catalog(store)
    burger = next(item for item in catalog.items if item.id == menu["burger"])
    cheese = burger.options[0]

    cart = build_cart(
        catalog.items,
        [
            CartLineRequest(menu_item_id=menu["burger"], quantity=2, option_ids=[cheese.id]),
            CartLineRequest(menu_item_id=menu["burger"], quantity=1, option_ids=[cheese.id]),
            CartLineRequest(menu_item_id=menu["cola"], quantity=1),
        ],
    )

    assert [(line.name, line.quantity) for line in cart] == [("Burger", 3), ("Cola", 1)]
    assert cart.total() == Decimal("395.00")


async def test_build_cart_rejects_unknown_items_and_options(store, menu):
    catalog = await load_catalog(store)

    with pytest.raises(ValueError):
        build_cart(catalog.items, [CartLineRequest(menu_item_id=uuid.uuid4())])
    with pytest.raises(InvalidOptionError):
        build_cart(
            catalog.items,
            [CartLineRequest(menu_item_id=menu["cola"], option_ids=[uuid.uuid4()])],
        )


def test_parse_table_number():
    assert parse_table_number(" 12 ") == 12
    for bad in ("", "0", "-1", "A1", "²", "٣"):
        with pytest.raises(InvalidTableNumberError):
            parse_table_number(bad)
