from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from utils.errors import ValidationError


class IdentifierPolicy(str, Enum):
    USERNAME = "username"  # free-form, case-insensitive
    PHONE = "phone"  # exactly 10 digits after stripping formatting


class LoginPolicy(str, Enum):
    AUTO_PROVISION = "auto_provision"  # unknown identifier creates an account
    STRICT = "strict"  # unknown identifier must register first


class HasherKind(str, Enum):
    DEMO = "demo"
    PBKDF2 = "pbkdf2"


KV_DB_PATH = "data/storefront.sqlite"
CATALOG_DB_PATH = "data/catalog.sqlite"
KEY_PREFIX = "storefront_"

# remote catalog ids stay below these floors
STORE_ID_FLOOR = 100
PRODUCT_ID_FLOOR = 10000


def _enum_env(name: str, enum_cls, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed} (got {raw!r})")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer (got {raw!r})")


def _flag_env(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """
    Deployment configuration for the commerce state layer.

    Fields:
      - kv_db_path: sqlite file backing the client key-value store
      - catalog_db_path: sqlite file backing the remote catalog
      - key_prefix: prefix of every persisted key
      - identifier_policy / login_policy / hasher: session behaviour
      - store_id_floor / product_id_floor: first id handed to overlay entities
      - offline: run without a remote catalog
    """

    kv_db_path: str = KV_DB_PATH
    catalog_db_path: str = CATALOG_DB_PATH
    key_prefix: str = KEY_PREFIX
    identifier_policy: IdentifierPolicy = IdentifierPolicy.USERNAME
    login_policy: LoginPolicy = LoginPolicy.AUTO_PROVISION
    hasher: HasherKind = HasherKind.DEMO
    store_id_floor: int = STORE_ID_FLOOR
    product_id_floor: int = PRODUCT_ID_FLOOR
    offline: bool = False

    def __post_init__(self):
        if self.store_id_floor < 1 or self.product_id_floor < 1:
            raise ValidationError("Id floors must be positive.")

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            kv_db_path=os.getenv("STOREFRONT_KV_DB", KV_DB_PATH),
            catalog_db_path=os.getenv("STOREFRONT_CATALOG_DB", CATALOG_DB_PATH),
            key_prefix=os.getenv("STOREFRONT_KEY_PREFIX", KEY_PREFIX),
            identifier_policy=_enum_env(
                "STOREFRONT_IDENTIFIER_POLICY",
                IdentifierPolicy,
                IdentifierPolicy.USERNAME,
            ),
            login_policy=_enum_env(
                "STOREFRONT_LOGIN_POLICY", LoginPolicy, LoginPolicy.AUTO_PROVISION
            ),
            hasher=_enum_env("STOREFRONT_PASSWORD_HASHER", HasherKind, HasherKind.DEMO),
            store_id_floor=_int_env("STOREFRONT_STORE_ID_FLOOR", STORE_ID_FLOOR),
            product_id_floor=_int_env("STOREFRONT_PRODUCT_ID_FLOOR", PRODUCT_ID_FLOOR),
            offline=_flag_env("STOREFRONT_OFFLINE"),
        )

    def key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"
