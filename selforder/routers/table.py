import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from selforder.config import settings
from selforder.exceptions import InvalidTableNumberError, TableUpdateError
from selforder.routers.deps import get_device_id, get_storage, get_store
from selforder.schemas.table import TableResponse, TableUpdateRequest
from selforder.services.table import TableAssignment
from selforder.storage import LocalStorage
from selforder.store import BackingStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=TableResponse)
async def get_table(
    table: str | None = None,
    storage: LocalStorage = Depends(get_storage),
    device_id: str = Depends(get_device_id),
    store: BackingStore = Depends(get_store),
) -> TableResponse:
    assignment = TableAssignment(store, storage, device_id, table)
    return TableResponse(table_number=assignment.table_number, modal=assignment.modal)


@router.put("", response_model=TableResponse)
async def put_table(
    body: TableUpdateRequest,
    request: Request,
    storage: LocalStorage = Depends(get_storage),
    device_id: str = Depends(get_device_id),
    store: BackingStore = Depends(get_store),
) -> TableResponse:
    logger.info(
        "Received table update request",
        extra={"request_id": getattr(request.state, "request_id", "unknown"), "device_id": device_id},
    )
    assignment = TableAssignment(
        store, storage, device_id, atomic=settings.table_update_atomic
    )
    try:
        updated = await assignment.confirm(body.table_number)
    except InvalidTableNumberError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except TableUpdateError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to update table number. Please try again.",
        )

    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Table number is required"
        )
    return TableResponse(
        table_number=assignment.table_number,
        modal=assignment.modal,
        updated_orders=updated,
    )
