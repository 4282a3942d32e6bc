# persistence adapter: JSON values in an origin-scoped key-value table
from __future__ import annotations

import json
from typing import Any, Callable, List, Optional, TypeVar

import aiosqlite

from db.database import connect
from utils.errors import StorageError
from utils.logger import get_logger

_logger = get_logger(__name__)

T = TypeVar("T")


def int_to_str(value: int) -> str:
    """Integers cross the serialization boundary as decimal strings."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected int, got {type(value).__name__}")
    return str(value)


def str_to_int(value: Any) -> int:
    """Inverse of int_to_str. Plain ints written by older clients are accepted too."""
    if isinstance(value, bool):
        raise ValueError("booleans are not integers here")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip(), 10)
    raise ValueError(f"cannot read an integer from {value!r}")


class KeyValueStore:
    """
    Get/set helpers over the `kv` table.

    Reads fail soft: a missing key, a corrupt payload or an unreadable file all
    yield the caller's default. Writes are best-effort: a failed write is logged
    and dropped, the in-memory state of the caller stays as it is.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def _read(self, key: str) -> Optional[str]:
        try:
            async with connect(self.db_path, "kv") as conn:
                cur = await conn.execute("SELECT value FROM kv WHERE key = ?;", (key,))
                row = await cur.fetchone()
                await cur.close()
        except (aiosqlite.Error, OSError) as e:
            raise StorageError(f"read of {key!r} failed: {e}") from e
        return row[0] if row else None

    async def _write(self, key: str, payload: Optional[str]) -> None:
        try:
            async with connect(self.db_path, "kv") as conn:
                if payload is None:
                    await conn.execute("DELETE FROM kv WHERE key = ?;", (key,))
                else:
                    await conn.execute(
                        """
                        INSERT INTO kv(key, value) VALUES (?, ?)
                        ON CONFLICT(key) DO UPDATE SET value = excluded.value;
                        """,
                        (key, payload),
                    )
                await conn.commit()
        except (aiosqlite.Error, OSError) as e:
            raise StorageError(f"write of {key!r} failed: {e}") from e

    async def load(self, key: str, default: Any = None) -> Any:
        try:
            raw = await self._read(key)
        except StorageError as e:
            _logger.warning(f"{e}; using empty default")
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            _logger.warning(f"Malformed value stored under {key!r}; using empty default")
            return default

    async def save(self, key: str, value: Any) -> None:
        try:
            await self._write(key, json.dumps(value))
        except StorageError as e:
            _logger.warning(f"{e}; change kept in memory only")

    async def remove(self, key: str) -> None:
        try:
            await self._write(key, None)
        except StorageError as e:
            _logger.warning(str(e))

    async def load_records(self, key: str, decode: Callable[[dict], T]) -> List[T]:
        """Load a persisted list, dropping entries that no longer decode."""
        raw = await self.load(key, [])
        if not isinstance(raw, list):
            _logger.warning(f"Expected a list under {key!r}; using empty default")
            return []
        items: List[T] = []
        for entry in raw:
            try:
                items.append(decode(entry))
            except (KeyError, TypeError, ValueError, AttributeError, OverflowError):
                _logger.warning(f"Dropping malformed record under {key!r}: {entry!r}")
        return items

    async def save_records(self, key: str, items, encode: Callable[[T], dict]) -> None:
        await self.save(key, [encode(item) for item in items])
