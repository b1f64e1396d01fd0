from pydantic import BaseModel

from selforder.services.table import TableModalState


class TableUpdateRequest(BaseModel):
    table_number: str


class TableResponse(BaseModel):
    table_number: str | None
    modal: TableModalState
    updated_orders: int = 0
