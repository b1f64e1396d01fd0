import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from selforder import models
from selforder.exceptions import CatalogLoadError
from selforder.metrics import CATALOG_LOADS
from selforder.schemas.menu_item import Catalog, Category, MenuItem, OptionSpec
from selforder.store import BackingStore

logger = logging.getLogger(__name__)

_CATALOG_SEED = [
    {
        "name": "Rice Meals",
        "items": [
            {
                "name": "Chicken Adobo",
                "price": Decimal("145.00"),
                "options": [
                    {"name": "Extra Rice", "price": Decimal("20.00")},
                    {"name": "Boiled Egg", "price": Decimal("15.00")},
                ],
            },
            {
                "name": "Pork Sinigang",
                "price": Decimal("165.00"),
                "options": [{"name": "Extra Rice", "price": Decimal("20.00")}],
            },
            {"name": "Beef Tapa", "price": Decimal("155.00")},
        ],
    },
    {
        "name": "Noodles",
        "items": [
            {"name": "Pancit Canton", "price": Decimal("120.00")},
            {
                "name": "Beef Mami",
                "price": Decimal("130.00"),
                "options": [{"name": "Add Wonton", "price": Decimal("25.00")}],
            },
        ],
    },
    {
        "name": "Drinks",
        "items": [
            {
                "name": "Iced Tea",
                "price": Decimal("45.00"),
                "options": [
                    {"name": "Large", "price": Decimal("15.00"), "max_selections": 1},
                    {"name": "Less Sugar", "price": Decimal("0.00")},
                ],
            },
            {"name": "Calamansi Juice", "price": Decimal("55.00")},
            {"name": "Bottled Water", "price": Decimal("25.00")},
        ],
    },
]


async def seed_catalog(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Populate categories and menu_items if empty. Called once on startup."""
    async with session_factory() as db:
        result = await db.execute(select(models.MenuItem).limit(1))
        if result.scalars().first() is not None:
            return
        count = 0
        for category_data in _CATALOG_SEED:
            category = models.Category(id=uuid.uuid4(), name=category_data["name"])
            db.add(category)
            for item_data in category_data["items"]:
                options = [
                    {
                        "id": str(uuid.uuid4()),
                        "name": opt["name"],
                        "is_required": False,
                        "max_selections": opt.get("max_selections"),
                        "price": str(opt["price"]),
                    }
                    for opt in item_data.get("options", [])
                ]
                db.add(
                    models.MenuItem(
                        name=item_data["name"],
                        price=item_data["price"],
                        category_id=category.id,
                        options=options or None,
                    )
                )
                count += 1
        await db.commit()
        logger.info("Seeded %d menu items", count)


def _to_menu_item(row: models.MenuItem) -> MenuItem:
    return MenuItem(
        id=row.id,
        name=row.name,
        price=row.price,
        category=row.category_id,
        image_url=row.image_url or "",
        options=[OptionSpec.model_validate(opt) for opt in row.options or []],
    )


async def fetch_catalog(store: BackingStore) -> Catalog:
    try:
        category_rows = await store.list_categories()
        item_rows = await store.list_menu_items()
        return Catalog(
            categories=[Category.model_validate(row) for row in category_rows],
            items=[_to_menu_item(row) for row in item_rows],
        )
    except Exception as exc:
        raise CatalogLoadError(f"Could not load catalog: {exc}") from exc


async def load_catalog(store: BackingStore) -> Catalog:
    """
    Load categories and menu items once.

    Never raises: on any failure the error is logged and an empty catalog is
    returned so the page still renders.
    """
    try:
        catalog = await fetch_catalog(store)
    except CatalogLoadError as exc:
        logger.error("Error fetching catalog", extra={"error": str(exc)})
        CATALOG_LOADS.labels("failed").inc()
        return Catalog()

    CATALOG_LOADS.labels("success").inc()
    logger.info(
        "Catalog loaded",
        extra={"categories": len(catalog.categories), "items": len(catalog.items)},
    )
    return catalog


def filter_menu_items(items: list[MenuItem], category_id: uuid.UUID | None) -> list[MenuItem]:
    if category_id is None:
        return list(items)
    return [item for item in items if item.category == category_id]


def toggle_category(selected: uuid.UUID | None, clicked: uuid.UUID) -> uuid.UUID | None:
    """Clicking the selected category chip clears the filter."""
    return None if selected == clicked else clicked


def group_by_category(catalog: Catalog) -> dict[uuid.UUID, list[MenuItem]]:
    groups: dict[uuid.UUID, list[MenuItem]] = {c.id: [] for c in catalog.categories}
    for item in catalog.items:
        groups.setdefault(item.category, []).append(item)
    return groups
