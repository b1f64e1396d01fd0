# Import all models here so SQLAlchemy registers them with Base.metadata
from selforder.models.category import Category
from selforder.models.menu_item import MenuItem
from selforder.models.order import Order, OrderStatus, PaymentMethod

__all__ = [
    "Category",
    "MenuItem",
    "Order",
    "OrderStatus",
    "PaymentMethod",
]
