"""
Backing store for categories, menu items and orders.

Wraps an ``async_sessionmaker`` and exposes only the query shapes the
ordering core needs: equality on ``device_id`` and ``status``, sort on
``created_at``. Every committed order write is announced to the registered
change listeners (the order stream hub, the Kafka publisher).
"""

import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from selforder import models
from selforder.events import OrderChangedEvent, OrderChangeKind
from selforder.middleware.request_id import current_request_id
from selforder.models.order import OrderStatus
from selforder.schemas.order import Order, OrderCreate

logger = logging.getLogger(__name__)

ChangeListener = Callable[[OrderChangedEvent], Awaitable[None]]


class BackingStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._listeners: list[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    # -----------------------------------------------------------------------
    # Catalog
    # -----------------------------------------------------------------------

    async def list_categories(self) -> list[models.Category]:
        async with self._session_factory() as db:
            result = await db.execute(select(models.Category))
            return list(result.scalars().all())

    async def list_menu_items(self) -> list[models.MenuItem]:
        async with self._session_factory() as db:
            result = await db.execute(select(models.MenuItem))
            return list(result.scalars().all())

    # -----------------------------------------------------------------------
    # Orders
    # -----------------------------------------------------------------------

    async def add_order(self, order: OrderCreate) -> uuid.UUID:
        row = models.Order(
            device_id=order.device_id,
            table_number=order.table_number,
            items=[item.model_dump(mode="json") for item in order.items],
            total=order.total,
            status=order.status,
            created_at=order.created_at,
            payment_method=order.payment_method,
        )
        async with self._session_factory() as db:
            db.add(row)
            await db.commit()

        await self._announce(
            OrderChangedEvent(
                correlation_id=current_request_id(),
                order_id=row.id,
                device_id=row.device_id,
                kind=OrderChangeKind.PLACED,
                status=row.status,
                table_number=row.table_number,
            )
        )
        return row.id

    async def get_order(self, order_id: uuid.UUID) -> Order | None:
        async with self._session_factory() as db:
            row = await db.get(models.Order, order_id)
            return Order.model_validate(row) if row is not None else None

    async def list_orders(
        self,
        device_id: str,
        *,
        status: OrderStatus | None = None,
        newest_first: bool = True,
    ) -> list[Order]:
        stmt = select(models.Order).where(models.Order.device_id == device_id)
        if status is not None:
            stmt = stmt.where(models.Order.status == status)
        created = models.Order.created_at
        stmt = stmt.order_by(created.desc() if newest_first else created.asc())

        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [Order.model_validate(row) for row in result.scalars().all()]

    async def update_table_number(self, order_id: uuid.UUID, table_number: int) -> None:
        async with self._session_factory() as db:
            row = await db.get(models.Order, order_id)
            if row is None:
                raise LookupError(f"Order {order_id} not found")
            row.table_number = table_number
            await db.commit()
            device_id = row.device_id

        await self._announce(self._table_event(order_id, device_id, table_number))

    async def update_table_numbers(
        self, order_ids: Iterable[uuid.UUID], device_id: str, table_number: int
    ) -> None:
        """Move several orders to a new table in one transaction."""
        ids = list(order_ids)
        if not ids:
            return
        async with self._session_factory() as db:
            await db.execute(
                update(models.Order)
                .where(models.Order.id.in_(ids))
                .values(table_number=table_number)
            )
            await db.commit()

        for order_id in ids:
            await self._announce(self._table_event(order_id, device_id, table_number))

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    @staticmethod
    def _table_event(order_id: uuid.UUID, device_id: str, table_number: int) -> OrderChangedEvent:
        return OrderChangedEvent(
            correlation_id=current_request_id(),
            order_id=order_id,
            device_id=device_id,
            kind=OrderChangeKind.TABLE_CHANGED,
            table_number=table_number,
        )

    async def _announce(self, event: OrderChangedEvent) -> None:
        # The write is already committed; a failing listener must not undo it.
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception(
                    "Order change listener failed",
                    extra={"order_id": str(event.order_id), "kind": event.kind.value},
                )
