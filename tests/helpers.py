import os
import sys
import tempfile
import unittest
from dataclasses import replace

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import database as db_database
from db.catalog import OfflineCatalog, SqliteCatalog
from db.kv import KeyValueStore
from utils.config import Settings
from utils.errors import CatalogUnavailableError


class StorefrontTestCase(unittest.IsolatedAsyncioTestCase):
    """Points both sqlite files at a fresh temporary directory per test."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.settings = Settings(
            kv_db_path=os.path.join(self.temp_dir.name, "kv.sqlite"),
            catalog_db_path=os.path.join(self.temp_dir.name, "catalog.sqlite"),
        )
        db_database.reset_initialized()
        self.kv = KeyValueStore(self.settings.kv_db_path)
        self.catalog = SqliteCatalog(self.settings.catalog_db_path)

    def tearDown(self):
        self.temp_dir.cleanup()

    def with_settings(self, **changes) -> Settings:
        self.settings = replace(self.settings, **changes)
        return self.settings


class BrokenCatalog(OfflineCatalog):
    """Fails every call with `error`, counting how often it was asked."""

    def __init__(self, error=None):
        self.calls = 0
        self.error = error or CatalogUnavailableError("simulated outage")

    async def _unavailable(self, *_args, **_kwargs):
        self.calls += 1
        raise self.error

    list_stores = _unavailable
    list_products_by_store = _unavailable
    get_product = _unavailable
    list_reviews = _unavailable
    place_order = _unavailable
    list_orders_by_user = _unavailable
    list_all_orders = _unavailable
