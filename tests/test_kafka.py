import asyncio
from types import SimpleNamespace

from selforder.events import OrderChangedEvent, OrderChangeKind
from selforder.models.order import OrderStatus
from selforder.services.kafka import (
    OrderEventPublisher,
    handle_message,
    run_consumer,
    stop_consumer_task,
)


class FakeProducer:
    def __init__(self):
        self.sent = []

    async def send_and_wait(self, topic, key=None, value=None, headers=None):
        self.sent.append((topic, key, value))


def _message(value: bytes):
    return SimpleNamespace(value=value, headers=[], offset=0, partition=0)


async def test_status_change_message_refreshes_device(hub, place_order):
    order_id = await place_order("device-1")
    snapshots = []
    await hub.subscribe("device-1", snapshots.append)
    event = OrderChangedEvent(
        order_id=order_id,
        device_id="device-1",
        kind=OrderChangeKind.STATUS_CHANGED,
        status=OrderStatus.COMPLETED,
    )

    await handle_message(_message(event.model_dump_json().encode()), hub)

    assert len(snapshots) == 2


async def test_unparseable_message_is_skipped(hub):
    snapshots = []
    await hub.subscribe("device-1", snapshots.append)

    await handle_message(_message(b"not json"), hub)

    assert len(snapshots) == 1


async def test_store_writes_are_published(store, place_order):
    producer = FakeProducer()
    store.add_listener(OrderEventPublisher(producer, "order.changed").publish)

    order_id = await place_order("device-1")

    [(topic, key, value)] = producer.sent
    assert topic == "order.changed"
    assert key == str(order_id).encode()
    event = OrderChangedEvent.model_validate_json(value)
    assert event.kind == OrderChangeKind.PLACED
    assert event.device_id == "device-1"


async def test_stop_consumer_task_logs_failed_loop(caplog):
    class BrokenConsumer:
        def __aiter__(self):
            return self

        async def __anext__(self):
            raise RuntimeError("broker went away")

    task = asyncio.create_task(run_consumer(BrokenConsumer(), hub=None))
    await asyncio.sleep(0)

    await stop_consumer_task(task)

    assert task.done()
    assert "Order status consumer stopped with an error" in caplog.text


async def test_stop_consumer_task_cancels_running_loop():
    class IdleConsumer:
        def __aiter__(self):
            return self

        async def __anext__(self):
            await asyncio.sleep(3600)

    task = asyncio.create_task(run_consumer(IdleConsumer(), hub=None))
    await asyncio.sleep(0)

    await stop_consumer_task(task)

    assert task.cancelled()
