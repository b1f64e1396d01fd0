import uuid

import pytest

from selforder.exceptions import InvalidTableNumberError, TableUpdateError
from selforder.models.order import OrderStatus
from selforder.services.table import (
    TableAssignment,
    TableModalState,
    resolve_initial_table,
    update_table_for_pending_orders,
)
from selforder.storage import TABLE_NUMBER_KEY, MemoryStorage
from selforder.store import BackingStore


class CountingStore(BackingStore):
    def __init__(self, session_factory, fail_for=()):
        super().__init__(session_factory)
        self.updated: list[uuid.UUID] = []
        self.fail_for = set(fail_for)

    async def update_table_number(self, order_id, table_number):
        if order_id in self.fail_for:
            raise ConnectionError("update rejected")
        self.updated.append(order_id)
        await super().update_table_number(order_id, table_number)


async def _table_numbers(store, device_id):
    return {o.id: o.table_number for o in await store.list_orders(device_id)}


def test_url_parameter_wins_and_is_stored():
    storage = MemoryStorage({TABLE_NUMBER_KEY: "3"})

    assert resolve_initial_table(storage, "5") == "5"
    assert storage.get(TABLE_NUMBER_KEY) == "5"


def test_stored_table_used_without_url_parameter():
    storage = MemoryStorage({TABLE_NUMBER_KEY: "3"})
    assert resolve_initial_table(storage) == "3"


async def test_modal_opens_without_table(store):
    assignment = TableAssignment(store, MemoryStorage(), "device-1")

    assert assignment.table_number is None
    assert assignment.modal == TableModalState.OPEN


async def test_modal_closed_when_table_resolved_and_reopens_on_edit(store):
    assignment = TableAssignment(store, MemoryStorage(), "device-1", "8")
    assert assignment.modal == TableModalState.CLOSED

    assignment.request_edit()

    assert assignment.modal == TableModalState.OPEN


async def test_confirm_updates_only_pending_orders_of_device(session_factory, place_order):
    store = CountingStore(session_factory)
    pending_a = await place_order("device-1", table_number=1)
    pending_b = await place_order("device-1", table_number=1)
    completed = await place_order("device-1", status=OrderStatus.COMPLETED, table_number=1)
    cancelled = await place_order("device-1", status=OrderStatus.CANCELLED, table_number=1)
    other = await place_order("device-2", table_number=1)
    storage = MemoryStorage()
    assignment = TableAssignment(store, storage, "device-1")

    updated = await assignment.confirm(" 9 ")

    assert updated == 2
    assert sorted(store.updated) == sorted([pending_a, pending_b])
    assert await _table_numbers(store, "device-1") == {
        pending_a: 9,
        pending_b: 9,
        completed: 1,
        cancelled: 1,
    }
    assert await _table_numbers(store, "device-2") == {other: 1}
    assert storage.get(TABLE_NUMBER_KEY) == "9"
    assert assignment.table_number == "9"
    assert assignment.modal == TableModalState.CLOSED


async def test_atomic_update_moves_all_pending_orders(store, place_order):
    first = await place_order("device-1")
    second = await place_order("device-1")
    done = await place_order("device-1", status=OrderStatus.COMPLETED)

    updated = await update_table_for_pending_orders(store, 4, "device-1", atomic=True)

    assert updated == 2
    assert await _table_numbers(store, "device-1") == {first: 4, second: 4, done: 1}


async def test_partial_failure_raises_aggregate_error(session_factory, place_order):
    ok = await place_order("device-1")
    broken = await place_order("device-1")
    store = CountingStore(session_factory, fail_for=[broken])
    storage = MemoryStorage()
    assignment = TableAssignment(store, storage, "device-1")

    with pytest.raises(TableUpdateError) as excinfo:
        await assignment.confirm("6")

    assert (excinfo.value.failed, excinfo.value.total) == (1, 2)
    assert await _table_numbers(store, "device-1") == {ok: 6, broken: 1}
    assert storage.get(TABLE_NUMBER_KEY) == "6"
    assert assignment.modal == TableModalState.OPEN


async def test_blank_confirm_is_ignored(session_factory):
    store = CountingStore(session_factory)
    storage = MemoryStorage()
    assignment = TableAssignment(store, storage, "device-1")

    assert await assignment.confirm("   ") is None
    assert storage.get(TABLE_NUMBER_KEY) is None
    assert assignment.modal == TableModalState.OPEN


async def test_invalid_table_number_is_rejected(store):
    storage = MemoryStorage()
    assignment = TableAssignment(store, storage, "device-1")

    with pytest.raises(InvalidTableNumberError):
        await assignment.confirm("patio")
    assert storage.get(TABLE_NUMBER_KEY) is None
