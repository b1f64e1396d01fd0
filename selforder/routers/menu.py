import logging
import uuid

from fastapi import APIRouter, Depends

from selforder.routers.deps import get_store
from selforder.schemas.menu_item import Catalog
from selforder.services.catalog import filter_menu_items, load_catalog
from selforder.store import BackingStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=Catalog)
async def get_menu(
    category: uuid.UUID | None = None,
    store: BackingStore = Depends(get_store),
) -> Catalog:
    catalog = await load_catalog(store)
    return Catalog(
        categories=catalog.categories,
        items=filter_menu_items(catalog.items, category),
    )
