from __future__ import annotations

import random
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Union

from db.catalog import CatalogBackend
from db.kv import KeyValueStore
from db.models import Order, OrderLine, OrderStatus
from utils.config import Settings
from utils.errors import ValidationError
from utils.logger import get_logger
from utils.pure import format_price, make_local_order_id, now_utc, sum_line_totals

_logger = get_logger(__name__)

TransitionTable = Mapping[OrderStatus, FrozenSet[OrderStatus]]

# any status may be set to any other
PERMISSIVE_TRANSITIONS: TransitionTable = {
    status: frozenset(OrderStatus) for status in OrderStatus
}

_FLOW = list(OrderStatus)
# only forward moves (or staying put) along Pending -> Processing -> Shipped -> Delivered
FORWARD_ONLY_TRANSITIONS: TransitionTable = {
    status: frozenset(_FLOW[idx:]) for idx, status in enumerate(_FLOW)
}


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    for status in OrderStatus:
        if status.value.lower() == (value or "").strip().lower():
            return status
    allowed = ", ".join(s.value for s in OrderStatus)
    raise ValidationError(f"Unknown order status {value!r}; expected one of {allowed}.")


class RemoteOrderSink:
    """
    Mirrors orders to the remote catalog. Returns the remote id, or None when
    the remote call fails for any reason; failures never propagate.
    """

    def __init__(self, remote: CatalogBackend):
        self._remote = remote

    async def submit(
        self, user_identifier: str, lines: Sequence[OrderLine], address: str
    ) -> Optional[str]:
        try:
            return await self._remote.place_order(
                user_identifier,
                [line.product_id for line in lines],
                [line.quantity for line in lines],
                address,
            )
        except Exception as e:
            # any remote failure; the local ledger stays authoritative
            _logger.warning(f"Remote order mirror failed, keeping local copy only: {e!r}")
            return None


class LocalOrderSink:
    """The authoritative order records, kept in the key-value store."""

    def __init__(self, kv: KeyValueStore, settings: Settings):
        self._kv = kv
        self._key = settings.key("orders")

    async def all(self) -> List[Order]:
        return await self._kv.load_records(self._key, Order.from_record)

    async def _save(self, orders: List[Order]) -> None:
        await self._kv.save_records(self._key, orders, Order.to_record)

    async def record(self, order: Order) -> None:
        """Insert, or replace a record with the same id."""
        orders = await self.all()
        for idx, existing in enumerate(orders):
            if existing.id == order.id:
                orders[idx] = order
                break
        else:
            orders.append(order)
        await self._save(orders)


class OrderLedger:
    """
    Orders placed from this client.

    `place_order` dual-writes: the remote sink is tried first (to obtain its id),
    the local sink always records the order. Status changes go through the
    configured transition table.
    """

    def __init__(
        self,
        local_sink: LocalOrderSink,
        remote_sink: Optional[RemoteOrderSink] = None,
        transitions: TransitionTable = PERMISSIVE_TRANSITIONS,
        clock: Callable[[], datetime] = now_utc,
        rng: Optional[random.Random] = None,
    ):
        self._local = local_sink
        self._remote = remote_sink
        self.transitions = transitions
        self._clock = clock
        self._rng = rng

    @staticmethod
    def _check_lines(lines: Sequence[OrderLine]) -> None:
        if not lines:
            raise ValidationError("An order needs at least one item.")
        for line in lines:
            if line.quantity < 1:
                raise ValidationError(f"Invalid quantity for {line.product_name}.")
            if line.unit_price < 0:
                raise ValidationError(f"Invalid price for {line.product_name}.")

    async def place_order(
        self, user_identifier: str, line_items: Sequence[OrderLine], address: str
    ) -> str:
        """Record a Pending order and return its id."""
        user_identifier = (user_identifier or "").strip()
        address = (address or "").strip()
        if not user_identifier:
            raise ValidationError("Orders must belong to a user.")
        if not address:
            raise ValidationError("Delivery address is required.")
        lines = tuple(line_items)
        self._check_lines(lines)

        total = sum_line_totals((line.unit_price, line.quantity) for line in lines)
        now = self._clock()

        order_id = None
        if self._remote is not None:
            order_id = await self._remote.submit(user_identifier, lines, address)
        if not order_id:
            order_id = make_local_order_id(now, self._rng)

        order = Order(
            id=order_id,
            status=OrderStatus.PENDING,
            total_amount=total,
            user_identifier=user_identifier,
            delivery_address=address,
            created_at=now,
            line_items=lines,
        )
        await self._local.record(order)
        _logger.info(f"Order {order_id} placed by {user_identifier}, total {format_price(total)}")
        return order_id

    async def get_orders_for_user(self, identifier: str) -> List[Order]:
        wanted = (identifier or "").strip().lower()
        return [o for o in await self._local.all() if o.user_identifier.lower() == wanted]

    async def get_all_orders(self) -> List[Order]:
        return await self._local.all()

    async def get_order(self, order_id: str) -> Optional[Order]:
        for order in await self._local.all():
            if order.id == order_id:
                return order
        return None

    async def set_status(self, order_id: str, new_status: Union[str, OrderStatus]) -> bool:
        """
        Overwrite the status of an order. Unknown ids are a no-op (returns False).
        """
        status = parse_status(new_status)
        order = await self.get_order(order_id)
        if order is None:
            return False
        if status not in self.transitions.get(order.status, frozenset()):
            raise ValidationError(
                f"Cannot move order {order_id} from {order.status.value} to {status.value}."
            )
        await self._local.record(replace(order, status=status))
        _logger.info(f"Order {order_id}: {order.status.value} -> {status.value}")
        return True

    async def summary(self) -> Dict[str, object]:
        """Order count, per-status counts and revenue over every local order."""
        orders = await self._local.all()
        by_status = Counter(o.status for o in orders)
        return {
            "total_orders": len(orders),
            "by_status": {s.value: by_status.get(s, 0) for s in OrderStatus},
            "revenue": sum((o.total_amount for o in orders), 0),
            "distinct_customers": len({o.user_identifier.lower() for o in orders}),
        }
