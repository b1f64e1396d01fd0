"""
Kafka wiring for order change events.

  - publish: every committed order write goes out on ``order.changed``
  - consume: status changes written by the staff backend arrive on
    ``order.status_changed`` and refresh that device's live subscribers
"""

import asyncio
import logging

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from opentelemetry import trace
from opentelemetry.propagate import extract, inject

from selforder.events import OrderChangedEvent
from selforder.metrics import ORDER_EVENTS_CONSUMED
from selforder.services.order_stream import OrderStreamHub

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class OrderEventPublisher:
    def __init__(self, producer: AIOKafkaProducer, topic: str) -> None:
        self._producer = producer
        self._topic = topic

    async def publish(self, event: OrderChangedEvent) -> None:
        headers: dict[str, str] = {}
        inject(headers)
        await self._producer.send_and_wait(
            self._topic,
            key=str(event.order_id).encode(),
            value=event.model_dump_json().encode(),
            headers=[(k, v.encode()) for k, v in headers.items()],
        )
        logger.info(
            "Published order event",
            extra={
                "order_id": str(event.order_id),
                "kind": event.kind.value,
                "correlation_id": event.correlation_id,
            },
        )


async def run_consumer(consumer: AIOKafkaConsumer, hub: OrderStreamHub) -> None:
    """Main consumer loop, runs until cancelled."""
    async for msg in consumer:
        await handle_message(msg, hub)


async def stop_consumer_task(task: asyncio.Task) -> None:
    """Cancel the consumer loop and wait for it, logging a loop that had already failed."""
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("Order status consumer stopped with an error")


async def handle_message(msg, hub: OrderStreamHub) -> None:
    # Extract W3C trace context propagated via Kafka headers
    headers = {k: v.decode() for k, v in msg.headers} if msg.headers else {}
    ctx = extract(headers)

    with tracer.start_as_current_span("kafka.consume.order.status_changed", context=ctx):
        try:
            event = OrderChangedEvent.model_validate_json(msg.value)
        except ValueError as exc:
            logger.error(
                "Failed to parse order event",
                extra={"error": str(exc), "offset": msg.offset, "partition": msg.partition},
            )
            ORDER_EVENTS_CONSUMED.labels("parse_error").inc()
            return

        logger.info(
            "Received order event",
            extra={
                "order_id": str(event.order_id),
                "kind": event.kind.value,
                "status": event.status.value if event.status else None,
                "correlation_id": event.correlation_id,
            },
        )
        await hub.handle_event(event)
        ORDER_EVENTS_CONSUMED.labels("processed").inc()
