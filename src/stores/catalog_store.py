from __future__ import annotations

from dataclasses import replace
from enum import Enum
from typing import List, NamedTuple, Optional

from db.catalog import CatalogBackend
from db.kv import KeyValueStore
from db.models import Product, Review, Store
from utils.config import Settings
from utils.errors import ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)


class Origin(Enum):
    REMOTE = "remote"
    LOCAL = "local"


class EntityId(NamedTuple):
    """An externally visible integer id tagged with where the entity lives."""

    origin: Origin
    value: int

    @classmethod
    def classify(cls, value: int, floor: int) -> EntityId:
        return cls(Origin.LOCAL if value >= floor else Origin.REMOTE, value)

    @property
    def is_local(self) -> bool:
        return self.origin == Origin.LOCAL


def _next_id(existing: List[int], floor: int) -> int:
    return max(existing) + 1 if existing else floor


class CatalogStore:
    """
    Admin-created stores and products layered over the read-only remote catalog.

    Overlay stores get ids from `store_id_floor` upward and overlay products from
    `product_id_floor` upward; the remote catalog only uses ids below its floors.
    """

    def __init__(self, kv: KeyValueStore, settings: Settings, remote: CatalogBackend):
        self._kv = kv
        self._remote = remote
        self._stores_key = settings.key("local_stores")
        self._products_key = settings.key("local_products")
        self.store_id_floor = settings.store_id_floor
        self.product_id_floor = settings.product_id_floor

    def store_ref(self, store_id: int) -> EntityId:
        return EntityId.classify(store_id, self.store_id_floor)

    def product_ref(self, product_id: int) -> EntityId:
        return EntityId.classify(product_id, self.product_id_floor)

    # ---------------------------
    # Overlay stores
    # ---------------------------

    async def list_local_stores(self) -> List[Store]:
        return await self._kv.load_records(self._stores_key, Store.from_record)

    async def _save_stores(self, stores: List[Store]) -> None:
        await self._kv.save_records(self._stores_key, stores, Store.to_record)

    async def create_store(
        self, name: str, description: str, category: str, image_url: str = ""
    ) -> Store:
        if not (name or "").strip():
            raise ValidationError("Store name is required.")
        stores = await self.list_local_stores()
        store = Store(
            id=_next_id([s.id for s in stores], self.store_id_floor),
            name=name.strip(),
            description=(description or "").strip(),
            category=(category or "").strip(),
            image_url=(image_url or "").strip(),
        )
        await self._save_stores([*stores, store])
        _logger.info(f"Created store {store.id} ({store.name})")
        return store

    async def update_store(
        self,
        store_id: int,
        name: str,
        description: str,
        category: str,
        image_url: str = "",
    ) -> bool:
        """Replace every mutable field. Returns False (no-op) for unknown ids."""
        if not (name or "").strip():
            raise ValidationError("Store name is required.")
        stores = await self.list_local_stores()
        for idx, store in enumerate(stores):
            if store.id == store_id:
                stores[idx] = Store(
                    id=store_id,
                    name=name.strip(),
                    description=(description or "").strip(),
                    category=(category or "").strip(),
                    image_url=(image_url or "").strip(),
                )
                await self._save_stores(stores)
                return True
        return False

    async def delete_store(self, store_id: int) -> None:
        """Products of the store are left in place."""
        stores = await self.list_local_stores()
        remaining = [s for s in stores if s.id != store_id]
        if len(remaining) != len(stores):
            await self._save_stores(remaining)
            _logger.info(f"Deleted store {store_id}")

    # ---------------------------
    # Overlay products
    # ---------------------------

    async def list_local_products(self) -> List[Product]:
        return await self._kv.load_records(self._products_key, Product.from_record)

    async def _save_products(self, products: List[Product]) -> None:
        await self._kv.save_records(self._products_key, products, Product.to_record)

    async def _store_exists(self, store_id: int) -> bool:
        if self.store_ref(store_id).is_local:
            return any(s.id == store_id for s in await self.list_local_stores())
        try:
            return any(s.id == store_id for s in await self._remote.list_stores())
        except Exception as e:
            # cannot verify against the remote catalog; accept ids in its range
            _logger.warning(f"Could not verify store {store_id}: {e}")
            return store_id >= 1

    def _check_product_fields(self, name: str, price: int) -> None:
        if not (name or "").strip():
            raise ValidationError("Product name is required.")
        if price < 0:
            raise ValidationError("Price cannot be negative.")

    async def create_product(
        self,
        store_id: int,
        name: str,
        description: str,
        price: int,
        image_url: str = "",
        out_of_stock: bool = False,
    ) -> Product:
        self._check_product_fields(name, price)
        if not await self._store_exists(store_id):
            raise ValidationError(f"Store {store_id} does not exist.")
        products = await self.list_local_products()
        product = Product(
            id=_next_id([p.id for p in products], self.product_id_floor),
            store_id=store_id,
            name=name.strip(),
            description=(description or "").strip(),
            price=price,
            image_url=(image_url or "").strip(),
            out_of_stock=out_of_stock,
        )
        await self._save_products([*products, product])
        _logger.info(f"Created product {product.id} in store {store_id}")
        return product

    async def update_product(
        self,
        product_id: int,
        store_id: int,
        name: str,
        description: str,
        price: int,
        image_url: str = "",
        out_of_stock: Optional[bool] = None,
    ) -> bool:
        """
        Replace every mutable field. `out_of_stock=None` keeps the current flag.
        Returns False (no-op) for unknown ids. Moving a product to another store
        requires that store to exist.
        """
        self._check_product_fields(name, price)
        products = await self.list_local_products()
        for idx, product in enumerate(products):
            if product.id == product_id:
                if store_id != product.store_id and not await self._store_exists(store_id):
                    raise ValidationError(f"Store {store_id} does not exist.")
                products[idx] = Product(
                    id=product_id,
                    store_id=store_id,
                    name=name.strip(),
                    description=(description or "").strip(),
                    price=price,
                    image_url=(image_url or "").strip(),
                    out_of_stock=(
                        product.out_of_stock if out_of_stock is None else out_of_stock
                    ),
                )
                await self._save_products(products)
                return True
        return False

    async def delete_product(self, product_id: int) -> None:
        products = await self.list_local_products()
        remaining = [p for p in products if p.id != product_id]
        if len(remaining) != len(products):
            await self._save_products(remaining)
            _logger.info(f"Deleted product {product_id}")

    async def toggle_out_of_stock(self, product_id: int) -> bool:
        """Flip the flag and return the new value; False if the product is unknown."""
        products = await self.list_local_products()
        for idx, product in enumerate(products):
            if product.id == product_id:
                flipped = replace(product, out_of_stock=not product.out_of_stock)
                products[idx] = flipped
                await self._save_products(products)
                return flipped.out_of_stock
        return False

    # ---------------------------
    # Composite reads (remote + overlay)
    # ---------------------------

    async def list_all_stores(self) -> List[Store]:
        try:
            remote = await self._remote.list_stores()
        except Exception as e:
            _logger.warning(f"Remote stores unavailable, showing local ones only: {e}")
            remote = []
        return [*remote, *await self.list_local_stores()]

    async def list_products_for_store(self, store_id: int) -> List[Product]:
        remote: List[Product] = []
        if not self.store_ref(store_id).is_local:
            try:
                remote = await self._remote.list_products_by_store(store_id)
            except Exception as e:
                _logger.warning(f"Remote products for store {store_id} unavailable: {e}")
        local = [p for p in await self.list_local_products() if p.store_id == store_id]
        return [*remote, *local]

    async def get_product(self, product_id: int) -> Optional[Product]:
        if self.product_ref(product_id).is_local:
            for product in await self.list_local_products():
                if product.id == product_id:
                    return product
            return None
        try:
            return await self._remote.get_product(product_id)
        except Exception as e:
            _logger.warning(f"Remote product {product_id} unavailable: {e}")
            return None

    async def list_reviews(self, product_id: int) -> List[Review]:
        """
        Reviews only exist remotely. Overlay products have none; for remote
        products a CatalogUnavailableError is raised to the caller.
        """
        if self.product_ref(product_id).is_local:
            return []
        return await self._remote.list_reviews(product_id)
