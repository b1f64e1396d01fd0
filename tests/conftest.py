import os
import tempfile
import uuid
from decimal import Decimal

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="selforder-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/api.db"
os.environ["OTLP_ENDPOINT"] = ""
os.environ["KAFKA_BOOTSTRAP_SERVERS"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from selforder import models  # noqa: E402
from selforder.database import Base  # noqa: E402
from selforder.models.order import OrderStatus, PaymentMethod  # noqa: E402
from selforder.schemas.menu_item import CartItem, MenuItem, OptionSpec  # noqa: E402
from selforder.schemas.order import OrderCreate  # noqa: E402
from selforder.services.order_stream import OrderStreamHub  # noqa: E402
from selforder.store import BackingStore  # noqa: E402


def build_item(name="Burger", price="100.00", options=(), category=None) -> MenuItem:
    return MenuItem(
        id=uuid.uuid4(),
        name=name,
        price=Decimal(price),
        category=category or uuid.uuid4(),
        options=[
            OptionSpec(id=uuid.uuid4(), name=opt_name, price=Decimal(opt_price))
            for opt_name, opt_price in options
        ],
    )


@pytest.fixture
def make_item():
    return build_item


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return BackingStore(session_factory)


@pytest.fixture
def hub(store):
    hub = OrderStreamHub(store)
    store.add_listener(hub.handle_event)
    return hub


@pytest.fixture
async def menu(session_factory):
    """Two categories; a burger with two priced options and a plain cola."""
    mains = models.Category(id=uuid.uuid4(), name="Mains")
    drinks = models.Category(id=uuid.uuid4(), name="Drinks")
    burger = models.MenuItem(
        id=uuid.uuid4(),
        name="Burger",
        price=Decimal("100.00"),
        category_id=mains.id,
        options=[
            {"id": str(uuid.uuid4()), "name": "Cheese", "is_required": False, "price": "15.00"},
            {"id": str(uuid.uuid4()), "name": "Bacon", "is_required": False, "price": "25.00"},
        ],
    )
    cola = models.MenuItem(
        id=uuid.uuid4(), name="Cola", price=Decimal("50.00"), category_id=drinks.id
    )
    async with session_factory() as db:
        db.add_all([mains, drinks])
        await db.flush()
        db.add_all([burger, cola])
        await db.commit()
    return {"mains": mains.id, "drinks": drinks.id, "burger": burger.id, "cola": cola.id}


@pytest.fixture
def place_order(store):
    """Insert an order directly, bypassing the cart."""

    async def _place(device_id, *, status=OrderStatus.PENDING, created_at=1_000, table_number=1):
        item = CartItem(**build_item().model_dump(), quantity=1)
        return await store.add_order(
            OrderCreate(
                device_id=device_id,
                table_number=table_number,
                items=[item],
                total=item.subtotal,
                status=status,
                created_at=created_at,
                payment_method=PaymentMethod.CASH,
            )
        )

    return _place
