import uuid
from decimal import Decimal

from pydantic import BaseModel, Field


class Category(BaseModel):
    id: uuid.UUID
    name: str

    model_config = {"from_attributes": True, "frozen": True}


class OptionSpec(BaseModel):
    id: uuid.UUID
    name: str
    is_required: bool = False
    max_selections: int | None = None
    price: Decimal = Field(default=Decimal("0.00"), ge=0)


class SelectedOption(BaseModel):
    """Copy of a chosen option taken when the cart line is built."""

    id: uuid.UUID
    name: str
    price: Decimal = Field(default=Decimal("0.00"), ge=0)

    model_config = {"frozen": True}


class MenuItem(BaseModel):
    id: uuid.UUID
    name: str
    price: Decimal = Field(ge=0)
    category: uuid.UUID
    image_url: str = ""
    options: list[OptionSpec] = Field(default_factory=list)


class CartItem(MenuItem):
    quantity: int = Field(default=1, ge=1)
    selected_options: list[SelectedOption] = Field(default_factory=list)

    @property
    def unit_price(self) -> Decimal:
        return self.price + sum((opt.price for opt in self.selected_options), Decimal("0"))

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class Catalog(BaseModel):
    categories: list[Category] = Field(default_factory=list)
    items: list[MenuItem] = Field(default_factory=list)
