"""
Standing subscription over a device's orders.

Every delivery is the full current list, newest first. Deliveries for one
device are serialized so a slow query cannot overwrite a newer snapshot.
After an error the subscription is stalled: it receives nothing more until
the consumer unsubscribes and subscribes again.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable

from selforder.events import OrderChangedEvent
from selforder.exceptions import SubscriptionError
from selforder.metrics import ACTIVE_SUBSCRIPTIONS, SNAPSHOTS_DELIVERED
from selforder.schemas.order import Order
from selforder.store import BackingStore

logger = logging.getLogger(__name__)

OnUpdate = Callable[[list[Order]], None]
OnError = Callable[[SubscriptionError], None]


class OrderSubscription:
    def __init__(
        self,
        hub: "OrderStreamHub",
        device_id: str,
        on_update: OnUpdate,
        on_error: OnError | None,
    ) -> None:
        self._hub = hub
        self.device_id = device_id
        self._on_update = on_update
        self._on_error = on_error
        self.active = True
        self.stalled = False

    @property
    def receiving(self) -> bool:
        return self.active and not self.stalled

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._hub._remove(self)

    def _deliver(self, orders: list[Order]) -> None:
        if self.receiving:
            self._on_update(list(orders))

    def _fail(self, error: SubscriptionError) -> None:
        if not self.receiving:
            return
        self.stalled = True
        if self._on_error is not None:
            self._on_error(error)


class OrderStreamHub:
    def __init__(self, store: BackingStore) -> None:
        self._store = store
        self._subscriptions: dict[str, list[OrderSubscription]] = defaultdict(list)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def subscriber_count(self, device_id: str) -> int:
        return len(self._subscriptions.get(device_id, []))

    async def subscribe(
        self,
        device_id: str,
        on_update: OnUpdate,
        on_error: OnError | None = None,
    ) -> OrderSubscription:
        """Register a listener and push the current snapshot to it."""
        subscription = OrderSubscription(self, device_id, on_update, on_error)
        self._subscriptions[device_id].append(subscription)
        ACTIVE_SUBSCRIPTIONS.inc()
        logger.debug("Order subscription opened", extra={"device_id": device_id})

        await self._push(device_id, [subscription])
        return subscription

    async def notify(self, device_id: str) -> None:
        """Re-read the device's orders and push them to every live subscriber."""
        subscriptions = [s for s in self._subscriptions.get(device_id, []) if s.receiving]
        if subscriptions:
            await self._push(device_id, subscriptions)

    async def handle_event(self, event: OrderChangedEvent) -> None:
        await self.notify(event.device_id)

    def _remove(self, subscription: OrderSubscription) -> None:
        subscriptions = self._subscriptions.get(subscription.device_id)
        if subscriptions is None or subscription not in subscriptions:
            return
        subscriptions.remove(subscription)
        if not subscriptions:
            del self._subscriptions[subscription.device_id]
            lock = self._locks.get(subscription.device_id)
            if lock is not None and not lock.locked():
                del self._locks[subscription.device_id]
        ACTIVE_SUBSCRIPTIONS.dec()
        logger.debug("Order subscription closed", extra={"device_id": subscription.device_id})

    async def _push(self, device_id: str, subscriptions: list[OrderSubscription]) -> None:
        async with self._locks[device_id]:
            try:
                orders = await self._store.list_orders(device_id)
            except Exception as exc:
                logger.error(
                    "Error listening to orders",
                    extra={"device_id": device_id, "error": str(exc)},
                )
                SNAPSHOTS_DELIVERED.labels("error").inc()
                error = SubscriptionError(f"Order stream failed: {exc}")
                for subscription in subscriptions:
                    subscription._fail(error)
                return

            for subscription in subscriptions:
                subscription._deliver(orders)
            SNAPSHOTS_DELIVERED.labels("delivered").inc()
