import os
import unittest
from unittest import mock

from helpers import BrokenCatalog, StorefrontTestCase

from db.catalog import OfflineCatalog, SqliteCatalog
from db.models import InitState, OrderStatus
from utils.config import HasherKind, IdentifierPolicy, LoginPolicy, Settings
from utils.errors import ValidationError
from utils.pure import is_local_order_id
from utils.state import GlobalState


class SettingsTestCase(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.identifier_policy, IdentifierPolicy.USERNAME)
        self.assertEqual(settings.login_policy, LoginPolicy.AUTO_PROVISION)
        self.assertEqual(settings.hasher, HasherKind.DEMO)
        self.assertEqual(settings.store_id_floor, 100)
        self.assertEqual(settings.product_id_floor, 10000)
        self.assertFalse(settings.offline)
        self.assertEqual(settings.key("cart"), "storefront_cart")

    def test_from_env(self):
        env = {
            "STOREFRONT_IDENTIFIER_POLICY": "Phone",
            "STOREFRONT_LOGIN_POLICY": "strict",
            "STOREFRONT_PASSWORD_HASHER": "pbkdf2",
            "STOREFRONT_STORE_ID_FLOOR": "500",
            "STOREFRONT_KEY_PREFIX": "shop_",
            "STOREFRONT_OFFLINE": "yes",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.identifier_policy, IdentifierPolicy.PHONE)
        self.assertEqual(settings.login_policy, LoginPolicy.STRICT)
        self.assertEqual(settings.hasher, HasherKind.PBKDF2)
        self.assertEqual(settings.store_id_floor, 500)
        self.assertEqual(settings.key("cart"), "shop_cart")
        self.assertTrue(settings.offline)

    def test_invalid_values(self):
        with mock.patch.dict(os.environ, {"STOREFRONT_LOGIN_POLICY": "maybe"}, clear=True):
            with self.assertRaises(ValidationError):
                Settings.from_env()
        with mock.patch.dict(os.environ, {"STOREFRONT_STORE_ID_FLOOR": "ten"}, clear=True):
            with self.assertRaises(ValidationError):
                Settings.from_env()
        with self.assertRaises(ValidationError):
            Settings(product_id_floor=0)


class GlobalStateTestCase(StorefrontTestCase):
    async def asyncSetUp(self):
        self.state = GlobalState.create(self.settings)

    async def test_create_picks_remote_from_settings(self):
        self.assertIsInstance(self.state.catalog._remote, SqliteCatalog)
        offline = GlobalState.create(self.with_settings(offline=True))
        self.assertIsInstance(offline.catalog._remote, OfflineCatalog)

    async def test_start_reports_init_state(self):
        self.assertTrue(self.state.is_initializing)
        self.assertEqual(await self.state.start(), InitState.NO_SESSION)
        self.assertFalse(self.state.is_initializing)
        self.assertIsNone(self.state.current_user)

    async def test_auth_results_never_raise(self):
        await self.state.start()
        result = await self.state.register("", "Alice", "pw")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Username is required.")

        result = await self.state.register("alice", "Alice", "pw")
        self.assertTrue(result.success)
        self.assertEqual(result.session.display_name, "Alice")

        result = await self.state.register("ALICE", "Alice", "pw")
        self.assertFalse(result.success)
        self.assertIn("already exists", result.error)

        await self.state.logout()
        result = await self.state.login("alice", "wrong")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Incorrect password.")
        self.assertIsNone(self.state.current_user)

        result = await self.state.login("alice", "pw")
        self.assertTrue(result.success)
        self.assertEqual(self.state.current_user.identifier, "alice")

    async def test_session_and_cart_survive_restart(self):
        await self.state.start()
        await self.state.register("alice", "Alice", "pw")
        await self.state.cart.add_item(101, "Organic Bananas", 199, 1, quantity=2)

        restarted = GlobalState.create(self.settings)
        self.assertEqual(await restarted.start(), InitState.WITH_SESSION)
        self.assertEqual(restarted.current_user.identifier, "alice")
        self.assertEqual(restarted.cart.subtotal, 398)

    async def test_checkout_places_order_and_clears_cart(self):
        await self.state.start()
        await self.state.register("alice", "Alice", "pw")
        await self.state.cart.add_item(101, "Organic Bananas", 199, 1, quantity=2)
        await self.state.cart.add_item(201, "House Espresso Beans", 2499, 2)

        order_id = await self.state.checkout("1 Main St, Springfield 94102")
        self.assertEqual(order_id, "ORDER-1")
        self.assertEqual(self.state.cart.lines, [])

        orders = await self.state.orders.get_orders_for_user("alice")
        self.assertEqual(len(orders), 1)
        self.assertEqual(orders[0].total_amount, 2897)
        self.assertEqual(orders[0].status, OrderStatus.PENDING)

    async def test_checkout_requires_login_and_items(self):
        await self.state.start()
        with self.assertRaises(ValidationError):
            await self.state.checkout("1 Main St")
        await self.state.login("guest", "pw")
        with self.assertRaises(ValidationError):
            await self.state.checkout("1 Main St")

    async def test_checkout_during_outage(self):
        state = GlobalState.create(self.settings, remote=BrokenCatalog())
        await state.start()
        await state.login("guest", "pw")
        await state.cart.add_item(10000, "Local Lamp", 900, 100)
        order_id = await state.checkout("Home")
        self.assertTrue(is_local_order_id(order_id))
        self.assertEqual(len(await state.orders.get_all_orders()), 1)

    async def test_customers_overview(self):
        await self.state.start()
        await self.state.register("alice", "Alice", "pw")
        await self.state.cart.add_item(101, "Organic Bananas", 199, 1)
        await self.state.checkout("Old Address")
        await self.state.cart.add_item(101, "Organic Bananas", 199, 1)
        await self.state.checkout("New Address")
        await self.state.register("bob", "Bob", "pw")

        overview = {c.identifier: c for c in await self.state.customers_overview()}
        self.assertEqual(overview["alice"].order_count, 2)
        self.assertEqual(overview["alice"].last_address, "New Address")
        self.assertEqual(overview["bob"].order_count, 0)
        self.assertIsNone(overview["bob"].last_address)


if __name__ == "__main__":
    unittest.main()
