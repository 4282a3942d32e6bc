# manages connections to the sqlite files, provides helper methods internal to db package
import asyncio
import os.path
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import Dict, List, Set

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)

_SQL_DIR = os.path.dirname(os.path.abspath(__file__))

KV_INIT_SCRIPTS = [os.path.join(_SQL_DIR, "kv-tables.sql")]
CATALOG_INIT_SCRIPTS = [
    os.path.join(_SQL_DIR, "catalog-tables.sql"),
    os.path.join(_SQL_DIR, "catalog-seed.sql"),
]

# table whose presence means the file was already initialized
_SENTINEL_TABLES: Dict[str, str] = {"kv": "kv", "catalog": "stores"}
_SCRIPTS: Dict[str, List[str]] = {"kv": KV_INIT_SCRIPTS, "catalog": CATALOG_INIT_SCRIPTS}

_initialized: Set[str] = set()
_init_lock = asyncio.Lock()


async def _init_db(conn: aiosqlite.Connection, scripts: List[str]) -> None:
    for script in scripts:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing database with script {os.path.basename(script)}...")
        with open(script, "r") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


def reset_initialized() -> None:
    """Forget which files were initialized (tests point paths at temp dirs)."""
    _initialized.clear()


@asynccontextmanager
async def connect(db_path: str, kind: str = "kv") -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    `kind` selects the schema ("kv" or "catalog") created on first use of `db_path`.
    """
    folder = os.path.dirname(db_path)
    if folder and not os.path.isdir(folder):
        os.makedirs(folder, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")

    init_key = f"{kind}:{os.path.abspath(db_path)}"
    try:
        if init_key not in _initialized:
            async with _init_lock:
                if init_key not in _initialized:
                    if not await _table_exists(conn, _SENTINEL_TABLES[kind]):
                        _logger.info(f"Initializing {kind} database at {db_path}...")
                        await _init_db(conn, _SCRIPTS[kind])
                    _initialized.add(init_key)
        yield conn
    finally:
        await conn.close()
