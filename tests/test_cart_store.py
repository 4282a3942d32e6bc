import unittest

from helpers import StorefrontTestCase

from stores.cart_store import CartStore
from utils.errors import ValidationError


class CartStoreTestCase(StorefrontTestCase):
    async def asyncSetUp(self):
        self.cart = CartStore(self.kv, self.settings)
        await self.cart.restore()

    async def reloaded(self) -> CartStore:
        cart = CartStore(self.kv, self.settings)
        await cart.restore()
        return cart

    async def test_empty_cart(self):
        self.assertEqual(self.cart.lines, [])
        self.assertEqual(self.cart.total_item_count, 0)
        self.assertEqual(self.cart.subtotal, 0)

    async def test_widget_gadget_scenario(self):
        await self.cart.add_item(1, "Widget", 500, 7, quantity=2)
        await self.cart.add_item(2, "Gadget", 1200, 7)
        self.assertEqual(self.cart.subtotal, 2200)
        self.assertEqual(self.cart.total_item_count, 3)

        await self.cart.add_item(1, "Widget", 500, 7, quantity=3)
        self.assertEqual(self.cart.get(1).quantity, 5)
        self.assertEqual(self.cart.subtotal, 3700)
        self.assertEqual(len(self.cart.lines), 2)

    async def test_add_is_additive(self):
        for qty in (1, 4, 2, 10):
            await self.cart.add_item(9, "Thing", 3, 1, quantity=qty)
        self.assertEqual(self.cart.get(9).quantity, 17)

    async def test_add_rejects_bad_input(self):
        with self.assertRaises(ValidationError):
            await self.cart.add_item(1, "Widget", 500, 7, quantity=0)
        with self.assertRaises(ValidationError):
            await self.cart.add_item(1, "Widget", -1, 7)
        self.assertEqual(self.cart.lines, [])

    async def test_update_to_zero_equals_remove(self):
        await self.cart.add_item(1, "Widget", 500, 7, quantity=2)
        await self.cart.add_item(2, "Gadget", 1200, 7)
        await self.cart.update_quantity(1, 0)
        await self.cart.remove_item(2)
        self.assertIsNone(self.cart.get(1))
        self.assertIsNone(self.cart.get(2))
        self.assertEqual(self.cart.lines, [])

        await self.cart.add_item(3, "Gizmo", 100, 7)
        await self.cart.update_quantity(3, -4)
        self.assertIsNone(self.cart.get(3))

    async def test_update_replaces_quantity(self):
        await self.cart.add_item(1, "Widget", 500, 7, quantity=2)
        await self.cart.update_quantity(1, 7)
        self.assertEqual(self.cart.get(1).quantity, 7)
        self.assertEqual(self.cart.subtotal, 3500)
        # unknown products are ignored
        await self.cart.update_quantity(42, 3)
        self.assertIsNone(self.cart.get(42))

    async def test_remove_missing_is_noop(self):
        await self.cart.remove_item(123)
        self.assertEqual(self.cart.lines, [])

    async def test_clear_cart(self):
        await self.cart.add_item(1, "Widget", 500, 7)
        await self.cart.add_item(2, "Gadget", 1200, 7)
        await self.cart.clear_cart()
        self.assertEqual(self.cart.lines, [])
        self.assertEqual((await self.reloaded()).lines, [])

    async def test_subtotal_tracks_state(self):
        await self.cart.add_item(1, "Widget", 500, 7, quantity=2)
        await self.cart.add_item(2, "Gadget", 1200, 7, quantity=3)
        await self.cart.update_quantity(2, 1)
        await self.cart.add_item(3, "Gizmo", 99, 8)
        await self.cart.remove_item(1)
        expected = sum(l.unit_price * l.quantity for l in self.cart.lines)
        self.assertEqual(self.cart.subtotal, expected)
        self.assertEqual(self.cart.subtotal, 1299)

    async def test_write_through_survives_reload(self):
        await self.cart.add_item(1, "Widget", 999999999999, 7, quantity=3)
        await self.cart.add_item(2, "Gadget", 1200, 8)
        cart = await self.reloaded()
        self.assertEqual(cart.lines, self.cart.lines)
        self.assertEqual(cart.get(1).unit_price, 999999999999)
        self.assertEqual(cart.subtotal, 999999999999 * 3 + 1200)

    async def test_huge_prices_do_not_overflow(self):
        price = 2**70
        await self.cart.add_item(1, "Yacht", price, 7, quantity=2**40)
        self.assertEqual(self.cart.subtotal, 2**110)
        self.assertEqual((await self.reloaded()).subtotal, 2**110)

    async def test_restore_merges_duplicate_lines(self):
        line = {"productId": "1", "productName": "Widget", "price": "500", "storeId": "7"}
        await self.kv.save(
            self.settings.key("cart"),
            [{**line, "quantity": "2"}, {**line, "quantity": "3"}, {**line, "quantity": "-1"}],
        )
        cart = await self.reloaded()
        self.assertEqual(cart.get(1).quantity, 5)


if __name__ == "__main__":
    unittest.main()
