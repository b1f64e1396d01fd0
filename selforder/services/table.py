import asyncio
import logging
from enum import Enum

from selforder.exceptions import TableUpdateError
from selforder.metrics import TABLE_UPDATES
from selforder.models.order import OrderStatus
from selforder.services.order_service import parse_table_number
from selforder.storage import TABLE_NUMBER_KEY, LocalStorage
from selforder.store import BackingStore

logger = logging.getLogger(__name__)


class TableModalState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


def resolve_initial_table(storage: LocalStorage, url_param: str | None = None) -> str | None:
    """URL parameter wins over the stored value and replaces it."""
    if url_param:
        storage.set(TABLE_NUMBER_KEY, url_param)
        return url_param
    return storage.get(TABLE_NUMBER_KEY) or None


async def update_table_for_pending_orders(
    store: BackingStore,
    table_number: int,
    device_id: str,
    *,
    atomic: bool = False,
) -> int:
    """
    Move every pending order of ``device_id`` to ``table_number``.

    Without ``atomic`` each order is updated independently and concurrently,
    so a failure may leave some orders moved and others not; the caller only
    learns the aggregate outcome. Returns the number of orders updated.
    """
    try:
        pending = await store.list_orders(device_id, status=OrderStatus.PENDING)
        if atomic:
            await store.update_table_numbers([o.id for o in pending], device_id, table_number)
            results: list = []
        else:
            results = await asyncio.gather(
                *(store.update_table_number(o.id, table_number) for o in pending),
                return_exceptions=True,
            )
    except Exception as exc:
        TABLE_UPDATES.labels("failed").inc()
        logger.error(
            "Error updating table numbers",
            extra={"device_id": device_id, "error": str(exc)},
        )
        raise TableUpdateError(f"Could not update table number: {exc}") from exc

    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        TABLE_UPDATES.labels("failed").inc()
        logger.error(
            "Error updating table numbers",
            extra={
                "device_id": device_id,
                "failed": len(failures),
                "total": len(pending),
                "error": str(failures[0]),
            },
        )
        raise TableUpdateError(
            f"{len(failures)} of {len(pending)} pending orders were not updated",
            failed=len(failures),
            total=len(pending),
        )

    TABLE_UPDATES.labels("success").inc()
    logger.info(
        "Table number updated on pending orders",
        extra={"device_id": device_id, "table_number": table_number, "orders": len(pending)},
    )
    return len(pending)


class TableAssignment:
    """
    Table number plus the entry modal.

    The modal starts OPEN unless a table was resolved at startup, closes on a
    successful confirm and reopens on request_edit(). It has no terminal state.
    """

    def __init__(
        self,
        store: BackingStore,
        storage: LocalStorage,
        device_id: str,
        url_param: str | None = None,
        *,
        atomic: bool = False,
    ) -> None:
        self._store = store
        self._storage = storage
        self._device_id = device_id
        self._atomic = atomic
        self.table_number = resolve_initial_table(storage, url_param)
        self.modal = TableModalState.CLOSED if self.table_number else TableModalState.OPEN

    def request_edit(self) -> None:
        self.modal = TableModalState.OPEN

    async def confirm(self, value: str) -> int | None:
        """
        Store the table number and push it to the device's pending orders.

        Blank input is ignored and returns None. Otherwise returns the number of
        orders updated. The value is stored locally before the orders are
        updated, so a TableUpdateError leaves it stored and the modal open.
        """
        value = value.strip()
        if not value:
            return None
        table_number = parse_table_number(value)

        self._storage.set(TABLE_NUMBER_KEY, value)
        self.table_number = value
        updated = await update_table_for_pending_orders(
            self._store, table_number, self._device_id, atomic=self._atomic
        )
        self.modal = TableModalState.CLOSED
        return updated
