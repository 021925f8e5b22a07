import unittest
from decimal import Decimal

from pos_inventory.core.money import multiply, to_decimal
from pos_inventory.core.pricing_policy import decay, effective_floor, increase, is_noop


class IncreaseTest(unittest.TestCase):
    def test_unbounded_adds_step(self):
        self.assertEqual(increase(Decimal("5"), Decimal("1")), Decimal("6"))

    def test_clamps_to_max(self):
        self.assertEqual(increase("9.5", "1", "10"), Decimal("10"))

    def test_noop_at_and_above_bound(self):
        self.assertEqual(increase("10", "1", "10"), Decimal("10"))
        self.assertEqual(increase("12", "1", "10"), Decimal("12"))

    def test_idempotent_once_bound_reached(self):
        price = Decimal("8")
        for _ in range(5):
            price = increase(price, "1", "10")
        self.assertEqual(price, Decimal("10"))
        self.assertTrue(is_noop(price, increase(price, "1", "10")))

    def test_negative_step_rejected(self):
        with self.assertRaises(ValueError):
            increase("5", "-1")


class DecayTest(unittest.TestCase):
    def test_steps_down_to_min(self):
        self.assertEqual(decay("5", "1", "2"), Decimal("4"))
        self.assertEqual(decay("2.5", "1", "2"), Decimal("2"))

    def test_floor_defaults_to_step(self):
        self.assertEqual(effective_floor(Decimal("1")), Decimal("1"))
        self.assertEqual(decay("1", "1"), Decimal("1"))
        self.assertEqual(decay("1.5", "1"), Decimal("1"))

    def test_never_raises_price_below_floor(self):
        self.assertEqual(decay("0.5", "1"), Decimal("0.5"))
        self.assertEqual(decay("1", "0.5", "3"), Decimal("1"))

    def test_idempotent_at_floor(self):
        price = Decimal("5")
        for _ in range(10):
            price = decay(price, "1", "2")
        self.assertEqual(price, Decimal("2"))
        self.assertTrue(is_noop(price, decay(price, "1", "2")))

    def test_zero_step_is_noop(self):
        self.assertEqual(decay("5", "0", "1"), Decimal("5"))


class MoneyTest(unittest.TestCase):
    def test_to_decimal_quantizes_four_places(self):
        self.assertEqual(str(to_decimal("1.23456")), "1.2346")
        self.assertEqual(str(to_decimal(0.1)), "0.1000")
        self.assertEqual(str(to_decimal(3)), "3.0000")

    def test_to_decimal_rejects_garbage(self):
        for value in ("abc", None, "NaN", "Infinity"):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    to_decimal(value)

    def test_repeated_steps_do_not_drift(self):
        price = Decimal("0")
        for _ in range(1000):
            price = increase(price, "0.1")
        self.assertEqual(price, Decimal("100.0000"))
        self.assertEqual(multiply("3", "0.1"), Decimal("0.3000"))


if __name__ == "__main__":
    unittest.main()
