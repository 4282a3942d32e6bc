# side-effect free helpers shared by the stores

import random
import string
from datetime import datetime, timezone
from typing import Iterable, Optional

_BASE36 = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    """Render an int the way JavaScript's Number.toString(36) does."""
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return sign + "".join(reversed(digits))


def digits_only(raw: str) -> str:
    return "".join(ch for ch in raw if ch.isdigit() and ch.isascii())


def normalize_username(raw: Optional[str]) -> str:
    return (raw or "").strip()


def normalize_phone(raw: Optional[str]) -> str:
    """
    Strip every non-digit, so "(555) 123-4567" and "5551234567" compare equal.
    """
    return digits_only(raw or "")


def line_total(unit_price: int, quantity: int) -> int:
    return unit_price * quantity


def sum_line_totals(pairs: Iterable[tuple]) -> int:
    """Sum of unit_price * quantity over (unit_price, quantity) pairs."""
    return sum((line_total(price, qty) for price, qty in pairs), 0)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(when: datetime) -> int:
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return int(when.timestamp() * 1000)


def from_epoch_ms(ms: int) -> datetime:
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"timestamp {ms} is out of range") from e


def make_local_order_id(when: datetime, rng: Optional[random.Random] = None) -> str:
    """
    Locally issued order ids look like LOCAL-<epoch ms>-<6 base36 chars>.
    Remote ids never start with LOCAL-.
    """
    rng = rng or random
    suffix = "".join(rng.choice(_BASE36) for _ in range(6))
    return f"LOCAL-{to_epoch_ms(when)}-{suffix}"


def is_local_order_id(order_id: str) -> bool:
    return order_id.startswith("LOCAL-")


def format_price(amount: int) -> str:
    """Smallest currency unit to a display string, e.g. 2499 -> "24.99"."""
    sign = "-" if amount < 0 else ""
    whole, cents = divmod(abs(amount), 100)
    return f"{sign}{whole}.{cents:02d}"
