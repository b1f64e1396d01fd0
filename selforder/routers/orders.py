import asyncio
import logging
import uuid

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Request,
    WebSocket,
    status,
)

from selforder.exceptions import CatalogLoadError, OrderSubmitError
from selforder.routers.deps import get_device_id, get_storage, get_store
from selforder.schemas.order import Order, OrderRequest, PaymentRequest, PaymentResponse
from selforder.services.catalog import fetch_catalog
from selforder.services.order_service import build_cart, submit_order
from selforder.services.payment import can_pay, record_payment
from selforder.storage import DEVICE_ID_KEY, TABLE_NUMBER_KEY, LocalStorage
from selforder.store import BackingStore

router = APIRouter()
logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


@router.post("", response_model=Order, status_code=status.HTTP_201_CREATED)
async def place_order(
    body: OrderRequest,
    request: Request,
    storage: LocalStorage = Depends(get_storage),
    device_id: str = Depends(get_device_id),
    store: BackingStore = Depends(get_store),
) -> Order:
    request_id = _request_id(request)
    logger.info(
        "Received place_order request",
        extra={"request_id": request_id, "device_id": device_id, "lines": len(body.items)},
    )

    table_number = body.table_number or storage.get(TABLE_NUMBER_KEY)
    if not table_number:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Table number is not set")

    in_flight: set[str] = request.app.state.submissions_in_flight
    if device_id in in_flight:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="An order is already being submitted"
        )

    in_flight.add(device_id)
    try:
        catalog = await fetch_catalog(store)
        cart = build_cart(catalog.items, body.items)
        order = await submit_order(store, cart, table_number, device_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except (CatalogLoadError, OrderSubmitError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    finally:
        in_flight.discard(device_id)

    if order is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Cart is empty")
    return order


@router.get("", response_model=list[Order])
async def list_orders(
    device_id: str = Depends(get_device_id),
    store: BackingStore = Depends(get_store),
) -> list[Order]:
    return await store.list_orders(device_id)


async def _own_order(store: BackingStore, order_id: uuid.UUID, device_id: str) -> Order:
    order = await store.get_order(order_id)
    if order is None or order.device_id != device_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: uuid.UUID,
    request: Request,
    device_id: str = Depends(get_device_id),
    store: BackingStore = Depends(get_store),
) -> Order:
    logger.info(
        "Received get_order request",
        extra={"request_id": _request_id(request), "order_id": str(order_id)},
    )
    return await _own_order(store, order_id, device_id)


@router.post("/{order_id}/payment", response_model=PaymentResponse)
async def pay_order(
    order_id: uuid.UUID,
    body: PaymentRequest,
    device_id: str = Depends(get_device_id),
    store: BackingStore = Depends(get_store),
) -> PaymentResponse:
    order = await _own_order(store, order_id, device_id)
    if not can_pay(order):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Only completed orders can be paid"
        )
    record_payment(order, body.method)
    return PaymentResponse(order_id=order.id, method=body.method, total=order.total)


# ---------------------------------------------------------------------------
# Live order stream
# ---------------------------------------------------------------------------


async def _forward(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        payload = await queue.get()
        if isinstance(payload, Exception):
            # The subscription is stalled after an error; nothing else will arrive.
            await websocket.send_json({"type": "error", "detail": str(payload)})
            continue
        await websocket.send_json(
            {"type": "snapshot", "orders": [o.model_dump(mode="json") for o in payload]}
        )


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/stream")
async def stream_orders(websocket: WebSocket) -> None:
    device_id = websocket.cookies.get(DEVICE_ID_KEY)
    if not device_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    queue: asyncio.Queue = asyncio.Queue()
    subscription = await websocket.app.state.hub.subscribe(
        device_id, queue.put_nowait, queue.put_nowait
    )
    logger.info("Order stream opened", extra={"device_id": device_id})

    forward = asyncio.create_task(_forward(websocket, queue))
    disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, pending = await asyncio.wait(
            {forward, disconnect}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.debug(
                    "Order stream ended with error",
                    extra={"device_id": device_id, "error": str(task.exception())},
                )
    finally:
        subscription.unsubscribe()
        logger.info("Order stream closed", extra={"device_id": device_id})
