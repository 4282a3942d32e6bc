# provide dataclass models and their persisted record shapes
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from db.kv import int_to_str, str_to_int
from utils.pure import from_epoch_ms, to_epoch_ms


def _read_bool(value) -> bool:
    # only real JSON booleans; "false" would otherwise read as True
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


class InitState(Enum):
    UNINITIALIZED = "uninitialized"
    NO_SESSION = "no_session"
    WITH_SESSION = "with_session"


@dataclass(frozen=True)
class User:
    identifier: str
    display_name: str
    password_digest: str
    phone: Optional[str] = None  # set under the phone identifier policy

    def to_record(self) -> dict:
        rec = {
            "username": self.identifier,
            "displayName": self.display_name,
            "passwordHash": self.password_digest,
        }
        if self.phone is not None:
            rec["phone"] = self.phone
        return rec

    @classmethod
    def from_record(cls, rec: dict) -> User:
        return cls(
            identifier=str(rec["username"]),
            display_name=str(rec["displayName"]),
            password_digest=str(rec["passwordHash"]),
            phone=rec.get("phone"),
        )


@dataclass(frozen=True)
class Session:
    identifier: str
    display_name: str
    phone: Optional[str] = None

    @classmethod
    def for_user(cls, user: User) -> Session:
        return cls(user.identifier, user.display_name, user.phone)

    def to_record(self) -> dict:
        rec = {"username": self.identifier, "displayName": self.display_name}
        if self.phone is not None:
            rec["phone"] = self.phone
        return rec

    @classmethod
    def from_record(cls, rec: dict) -> Session:
        return cls(
            identifier=str(rec["username"]),
            display_name=str(rec["displayName"]),
            phone=rec.get("phone"),
        )


@dataclass(frozen=True)
class CartLine:
    product_id: int
    product_name: str
    unit_price: int  # smallest currency unit
    store_id: int
    quantity: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def to_record(self) -> dict:
        return {
            "productId": int_to_str(self.product_id),
            "productName": self.product_name,
            "price": int_to_str(self.unit_price),
            "storeId": int_to_str(self.store_id),
            "quantity": int_to_str(self.quantity),
        }

    @classmethod
    def from_record(cls, rec: dict) -> CartLine:
        line = cls(
            product_id=str_to_int(rec["productId"]),
            product_name=str(rec["productName"]),
            unit_price=str_to_int(rec["price"]),
            store_id=str_to_int(rec["storeId"]),
            quantity=str_to_int(rec["quantity"]),
        )
        if line.quantity < 1:
            raise ValueError("cart quantity must be positive")
        return line


@dataclass(frozen=True)
class Store:
    id: int
    name: str
    description: str
    category: str
    image_url: str = ""

    def to_record(self) -> dict:
        return {
            "id": int_to_str(self.id),
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "imageUrl": self.image_url,
        }

    @classmethod
    def from_record(cls, rec: dict) -> Store:
        return cls(
            id=str_to_int(rec["id"]),
            name=str(rec["name"]),
            description=str(rec.get("description", "")),
            category=str(rec.get("category", "")),
            image_url=str(rec.get("imageUrl", "")),
        )


@dataclass(frozen=True)
class Product:
    id: int
    store_id: int
    name: str
    description: str
    price: int
    image_url: str = ""
    out_of_stock: bool = False

    def to_record(self) -> dict:
        return {
            "id": int_to_str(self.id),
            "storeId": int_to_str(self.store_id),
            "name": self.name,
            "description": self.description,
            "price": int_to_str(self.price),
            "imageUrl": self.image_url,
            "outOfStock": self.out_of_stock,
        }

    @classmethod
    def from_record(cls, rec: dict) -> Product:
        return cls(
            id=str_to_int(rec["id"]),
            store_id=str_to_int(rec["storeId"]),
            name=str(rec["name"]),
            description=str(rec.get("description", "")),
            price=str_to_int(rec["price"]),
            image_url=str(rec.get("imageUrl", "")),
            out_of_stock=_read_bool(rec.get("outOfStock", False)),
        )


@dataclass(frozen=True)
class Review:
    product_id: int
    comment: str
    rating: int
    reviewer: str


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    product_name: str
    quantity: int
    unit_price: int  # unit price at time of order

    def to_record(self) -> dict:
        return {
            "productId": int_to_str(self.product_id),
            "productName": self.product_name,
            "quantity": int_to_str(self.quantity),
            "price": int_to_str(self.unit_price),
        }

    @classmethod
    def from_record(cls, rec: dict) -> OrderLine:
        return cls(
            product_id=str_to_int(rec["productId"]),
            product_name=str(rec["productName"]),
            quantity=str_to_int(rec["quantity"]),
            unit_price=str_to_int(rec["price"]),
        )


@dataclass(frozen=True)
class Order:
    id: str
    status: OrderStatus
    total_amount: int
    user_identifier: str
    delivery_address: str
    created_at: datetime
    line_items: Tuple[OrderLine, ...] = field(default_factory=tuple)

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "total": int_to_str(self.total_amount),
            "username": self.user_identifier,
            "address": self.delivery_address,
            "timestamp": int_to_str(to_epoch_ms(self.created_at)),
            "items": [line.to_record() for line in self.line_items],
        }

    @classmethod
    def from_record(cls, rec: dict) -> Order:
        return cls(
            id=str(rec["id"]),
            status=OrderStatus(rec["status"]),
            total_amount=str_to_int(rec["total"]),
            user_identifier=str(rec["username"]),
            delivery_address=str(rec.get("address", "")),
            created_at=from_epoch_ms(str_to_int(rec["timestamp"])),
            line_items=tuple(OrderLine.from_record(r) for r in rec.get("items", [])),
        )
