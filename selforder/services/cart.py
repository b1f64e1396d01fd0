"""
In-session cart.

A cart line is identified by the menu item id plus the exact set of selected
options. Option sets are normalized (sorted by id, duplicates dropped) before
comparison, so the same choices picked in a different order land on the same
line.
"""

import uuid
from collections.abc import Iterable, Iterator
from decimal import Decimal

from selforder.exceptions import InvalidOptionError
from selforder.schemas.menu_item import CartItem, MenuItem, SelectedOption

LineKey = tuple[uuid.UUID, tuple[tuple[str, str, str], ...]]


def normalize_options(options: Iterable[SelectedOption]) -> list[SelectedOption]:
    unique = {opt.id: opt for opt in options}
    return sorted(unique.values(), key=lambda opt: str(opt.id))


def line_key(item_id: uuid.UUID, options: Iterable[SelectedOption]) -> LineKey:
    return (
        item_id,
        tuple((str(opt.id), opt.name, str(opt.price)) for opt in normalize_options(options)),
    )


def select_options(item: MenuItem, option_ids: Iterable[uuid.UUID]) -> list[SelectedOption]:
    """Snapshot the item's offered options matching ``option_ids``."""
    offered = {opt.id: opt for opt in item.options}
    selected = []
    for option_id in option_ids:
        spec = offered.get(option_id)
        if spec is None:
            raise InvalidOptionError(f"Option {option_id} is not offered for {item.name}")
        selected.append(SelectedOption(id=spec.id, name=spec.name, price=spec.price))
    return normalize_options(selected)


class Cart:
    def __init__(self) -> None:
        self._lines: list[CartItem] = []

    def __iter__(self) -> Iterator[CartItem]:
        return iter(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def lines(self) -> list[CartItem]:
        return list(self._lines)

    def _find(self, key: LineKey) -> CartItem | None:
        for line in self._lines:
            if line_key(line.id, line.selected_options) == key:
                return line
        return None

    def add(self, item: MenuItem, selected_options: Iterable[SelectedOption] = ()) -> CartItem:
        options = normalize_options(selected_options)
        existing = self._find(line_key(item.id, options))
        if existing is not None:
            existing.quantity += 1
            return existing

        line = CartItem(
            **item.model_dump(include=set(MenuItem.model_fields)),
            quantity=1,
            selected_options=options,
        )
        self._lines.append(line)
        return line

    def update_quantity(
        self,
        item_id: uuid.UUID,
        quantity: int,
        selected_options: Iterable[SelectedOption] = (),
    ) -> None:
        key = line_key(item_id, selected_options)
        if quantity < 1:
            self._lines = [
                line for line in self._lines if line_key(line.id, line.selected_options) != key
            ]
            return

        line = self._find(key)
        if line is not None:
            line.quantity = quantity

    def clear(self) -> None:
        self._lines = []

    def total(self) -> Decimal:
        return sum((line.subtotal for line in self._lines), Decimal("0.00"))

    def snapshot(self) -> list[CartItem]:
        return [line.model_copy(deep=True) for line in self._lines]
