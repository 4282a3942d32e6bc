from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

from db.kv import KeyValueStore
from db.models import CartLine
from utils.config import Settings
from utils.errors import ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)


class CartStore:
    """
    Shopping cart keyed by product id. Write-through: every mutation is
    persisted before the coroutine returns, so a reload never loses lines.
    Totals are recomputed on every read.
    """

    def __init__(self, kv: KeyValueStore, settings: Settings):
        self._kv = kv
        self._key = settings.key("cart")
        self._lines: Dict[int, CartLine] = {}

    async def restore(self) -> None:
        lines = await self._kv.load_records(self._key, CartLine.from_record)
        self._lines = {}
        for line in lines:
            prev = self._lines.get(line.product_id)
            if prev:
                line = replace(line, quantity=prev.quantity + line.quantity)
            self._lines[line.product_id] = line
        _logger.debug(f"Restored cart with {len(self._lines)} line(s)")

    async def _persist(self) -> None:
        await self._kv.save_records(self._key, self._lines.values(), CartLine.to_record)

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def get(self, product_id: int) -> Optional[CartLine]:
        return self._lines.get(product_id)

    @property
    def total_item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    @property
    def subtotal(self) -> int:
        return sum((line.line_total for line in self._lines.values()), 0)

    async def add_item(
        self,
        product_id: int,
        product_name: str,
        unit_price: int,
        store_id: int,
        quantity: int = 1,
    ) -> CartLine:
        """Add `quantity` of a product; an existing line has its quantity increased."""
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1.")
        if unit_price < 0:
            raise ValidationError("Price cannot be negative.")

        existing = self._lines.get(product_id)
        if existing:
            line = replace(existing, quantity=existing.quantity + quantity)
        else:
            line = CartLine(
                product_id=product_id,
                product_name=product_name,
                unit_price=unit_price,
                store_id=store_id,
                quantity=quantity,
            )
        self._lines[product_id] = line
        await self._persist()
        return line

    async def remove_item(self, product_id: int) -> None:
        if self._lines.pop(product_id, None) is not None:
            await self._persist()

    async def update_quantity(self, product_id: int, quantity: int) -> None:
        """Set the quantity of a line; zero or less removes it."""
        if quantity <= 0:
            await self.remove_item(product_id)
            return
        existing = self._lines.get(product_id)
        if existing is None:
            return
        self._lines[product_id] = replace(existing, quantity=quantity)
        await self._persist()

    async def clear_cart(self) -> None:
        self._lines = {}
        await self._persist()
