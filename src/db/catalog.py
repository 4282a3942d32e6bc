# remote catalog collaborator: read-only stores/products/reviews plus an optional order mirror
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, Sequence

import aiosqlite

from db import models
from db.database import connect
from utils.errors import CatalogUnavailableError, ValidationError
from utils.logger import get_logger
from utils.pure import from_epoch_ms, now_utc, to_epoch_ms

_logger = get_logger(__name__)


class CatalogBackend(Protocol):
    """
    The remote catalog as seen by the stores. Every method may raise
    CatalogUnavailableError.
    """

    async def list_stores(self) -> List[models.Store]: ...

    async def list_products_by_store(self, store_id: int) -> List[models.Product]: ...

    async def get_product(self, product_id: int) -> Optional[models.Product]: ...

    async def list_reviews(self, product_id: int) -> List[models.Review]: ...

    async def place_order(
        self,
        user_identifier: str,
        product_ids: Sequence[int],
        quantities: Sequence[int],
        address: str,
    ) -> str: ...

    async def list_orders_by_user(self, identifier: str) -> List[models.Order]: ...

    async def list_all_orders(self) -> List[models.Order]: ...


class OfflineCatalog:
    """No remote backend: every call fails the way an unreachable one would."""

    async def _unavailable(self, *_args, **_kwargs):
        raise CatalogUnavailableError("No catalog backend available.")

    list_stores = _unavailable
    list_products_by_store = _unavailable
    get_product = _unavailable
    list_reviews = _unavailable
    place_order = _unavailable
    list_orders_by_user = _unavailable
    list_all_orders = _unavailable


def _row_to_product(row) -> models.Product:
    return models.Product(
        id=int(row[0]),
        store_id=int(row[1]),
        name=row[2],
        description=row[3],
        price=int(row[4]),
    )


def _order_id(ono: int) -> str:
    return f"ORDER-{ono}"


class SqliteCatalog:
    """
    Catalog backed by its own sqlite file, seeded with sample stores on first use.
    Driver errors surface as CatalogUnavailableError.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def _fetchall(self, sql: str, params: tuple = ()) -> list:
        try:
            async with connect(self.db_path, "catalog") as conn:
                cur = await conn.execute(sql, params)
                rows = await cur.fetchall()
                await cur.close()
        except (aiosqlite.Error, OSError) as e:
            raise CatalogUnavailableError(f"catalog query failed: {e}") from e
        return list(rows)

    async def list_stores(self) -> List[models.Store]:
        rows = await self._fetchall(
            "SELECT id, name, description, category FROM stores ORDER BY id;"
        )
        return [
            models.Store(id=int(r[0]), name=r[1], description=r[2], category=r[3])
            for r in rows
        ]

    async def list_products_by_store(self, store_id: int) -> List[models.Product]:
        rows = await self._fetchall(
            """
            SELECT id, store_id, name, description, price
            FROM products
            WHERE store_id = ?
            ORDER BY id;
            """,
            (store_id,),
        )
        return [_row_to_product(r) for r in rows]

    async def get_product(self, product_id: int) -> Optional[models.Product]:
        rows = await self._fetchall(
            "SELECT id, store_id, name, description, price FROM products WHERE id = ?;",
            (product_id,),
        )
        return _row_to_product(rows[0]) if rows else None

    async def list_reviews(self, product_id: int) -> List[models.Review]:
        rows = await self._fetchall(
            """
            SELECT product_id, comment, rating, reviewer
            FROM reviews
            WHERE product_id = ?
            ORDER BY rid;
            """,
            (product_id,),
        )
        return [
            models.Review(product_id=int(r[0]), comment=r[1], rating=int(r[2]), reviewer=r[3])
            for r in rows
        ]

    async def place_order(
        self,
        user_identifier: str,
        product_ids: Sequence[int],
        quantities: Sequence[int],
        address: str,
        when: Optional[datetime] = None,
    ) -> str:
        """
        Record an order priced from the catalog and return its id ("ORDER-<n>").
        Unknown products are rejected.
        """
        if len(product_ids) != len(quantities):
            raise ValidationError("product_ids and quantities must have the same length")
        when = when or now_utc()
        try:
            async with connect(self.db_path, "catalog") as conn:
                lines = []
                for pid, qty in zip(product_ids, quantities):
                    cur = await conn.execute(
                        "SELECT name, price FROM products WHERE id = ?;", (pid,)
                    )
                    row = await cur.fetchone()
                    await cur.close()
                    if not row:
                        raise CatalogUnavailableError(f"Product {pid} is not in the catalog.")
                    lines.append((pid, row[0], int(qty), int(row[1])))

                total = sum(qty * price for _, _, qty, price in lines)
                cur = await conn.execute(
                    """
                    INSERT INTO orders(user_identifier, status, total, address, created_ms)
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    (
                        user_identifier,
                        models.OrderStatus.PENDING.value,
                        total,
                        address,
                        to_epoch_ms(when),
                    ),
                )
                ono = cur.lastrowid
                await cur.close()

                for line_no, (pid, name, qty, price) in enumerate(lines, start=1):
                    await conn.execute(
                        """
                        INSERT INTO orderlines(ono, line_no, product_id, name, qty, uprice)
                        VALUES (?, ?, ?, ?, ?, ?);
                        """,
                        (ono, line_no, pid, name, qty, price),
                    )
                await conn.commit()
        except (aiosqlite.Error, OSError) as e:
            raise CatalogUnavailableError(f"remote order placement failed: {e}") from e

        _logger.debug(f"Catalog recorded order {_order_id(ono)} for {user_identifier}")
        return _order_id(ono)

    async def _orders(self, where: str, params: tuple) -> List[models.Order]:
        order_rows = await self._fetchall(
            f"""
            SELECT ono, user_identifier, status, total, address, created_ms
            FROM orders
            {where}
            ORDER BY ono;
            """,
            params,
        )
        orders = []
        for r in order_rows:
            line_rows = await self._fetchall(
                """
                SELECT product_id, name, qty, uprice
                FROM orderlines
                WHERE ono = ?
                ORDER BY line_no;
                """,
                (r[0],),
            )
            orders.append(
                models.Order(
                    id=_order_id(int(r[0])),
                    status=models.OrderStatus(r[2]),
                    total_amount=int(r[3]),
                    user_identifier=r[1],
                    delivery_address=r[4],
                    created_at=from_epoch_ms(int(r[5])),
                    line_items=tuple(
                        models.OrderLine(
                            product_id=int(l[0]),
                            product_name=l[1],
                            quantity=int(l[2]),
                            unit_price=int(l[3]),
                        )
                        for l in line_rows
                    ),
                )
            )
        return orders

    async def list_orders_by_user(self, identifier: str) -> List[models.Order]:
        return await self._orders(
            "WHERE LOWER(user_identifier) = LOWER(?)", (identifier,)
        )

    async def list_all_orders(self) -> List[models.Order]:
        return await self._orders("", ())

