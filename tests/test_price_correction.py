import unittest
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from pos_inventory.schemas.sale import SaleItemRequest, SaleRequest
from pos_inventory.services import ledger_store
from pos_inventory.services.price_correction import (
    CORRECTION_NOTES,
    PriceCorrectionJob,
    correction_reference,
)
from pos_inventory.services.sales_service import SalesService
from tests._support import (
    FakeClock,
    load_inventory,
    load_transactions,
    make_session_factory,
    race_after_read,
    seed_category,
    seed_inventory,
    seed_organization,
    seed_product,
)


class PriceCorrectionJobTest(unittest.TestCase):
    def setUp(self):
        self.session_factory = make_session_factory()
        self.clock = FakeClock()
        self.org_id = seed_organization(self.session_factory, increase_step="1", decrease_step="1")
        self.beers = seed_category(self.session_factory, self.org_id)
        self.snacks = seed_category(
            self.session_factory, self.org_id, name="Snacks", dynamic_pricing=False
        )
        self.bestseller = seed_product(
            self.session_factory, self.org_id, self.beers, name="Pilsner", base_price="4"
        )
        seed_inventory(self.session_factory, self.org_id, self.bestseller, quantity="100", price="4")
        self.sales = SalesService(self.session_factory, clock=self.clock)
        self.job = PriceCorrectionJob(
            self.session_factory, clock=self.clock, activity_window_seconds=60
        )

    def _sell_bestseller(self):
        self.sales.process_sale(
            SaleRequest(items=[SaleItemRequest(product_id=self.bestseller, quantity=Decimal("1"))]),
            "cashier",
            self.org_id,
        )

    def test_idle_product_steps_down(self):
        idle = seed_product(
            self.session_factory, self.org_id, self.beers, name="Stout", base_price="5", min_price="2"
        )
        seed_inventory(self.session_factory, self.org_id, idle, quantity="10", price="5")
        self._sell_bestseller()
        self.clock.advance(30)

        summary = self.job.adjust_prices()

        self.assertEqual(summary.candidates, 1)
        self.assertEqual(summary.updated, 1)
        inventory = load_inventory(self.session_factory, idle)
        self.assertEqual(inventory.adjusted_price, Decimal("4"))
        self.assertEqual(inventory.quantity, Decimal("10"))

        tx = load_transactions(self.session_factory, inventory.id)[-1]
        self.assertEqual(tx.transaction_type, "ADJUSTMENT")
        self.assertEqual(tx.quantity_change, Decimal("0"))
        self.assertEqual(tx.price_before, Decimal("5"))
        self.assertEqual(tx.price_after, Decimal("4"))
        self.assertEqual(tx.notes, CORRECTION_NOTES)
        self.assertEqual(tx.reference_id, correction_reference(self.clock()))
        self.assertIsNone(tx.created_by)

    def test_floor_defaults_to_step_without_min_price(self):
        idle = seed_product(self.session_factory, self.org_id, self.beers, name="Stout", base_price="1.5")
        seed_inventory(self.session_factory, self.org_id, idle, quantity="1", price="1.5")
        self._sell_bestseller()

        self.job.adjust_prices()
        self.assertEqual(load_inventory(self.session_factory, idle).adjusted_price, Decimal("1"))

        summary = self.job.adjust_prices()
        self.assertEqual(summary.updated, 0)
        self.assertEqual(summary.skipped, 1)
        self.assertEqual(len(load_transactions(self.session_factory, load_inventory(self.session_factory, idle).id)), 1)

    def test_repeat_runs_stop_at_floor(self):
        idle = seed_product(
            self.session_factory, self.org_id, self.beers, name="Stout", base_price="5", min_price="2"
        )
        seed_inventory(self.session_factory, self.org_id, idle, quantity="1", price="5")
        self._sell_bestseller()

        for _ in range(6):
            self.job.adjust_prices()

        inventory = load_inventory(self.session_factory, idle)
        self.assertEqual(inventory.adjusted_price, Decimal("2"))
        self.assertEqual(len(load_transactions(self.session_factory, inventory.id)), 3)

    def test_product_that_sold_is_not_candidate(self):
        self._sell_bestseller()
        before = load_inventory(self.session_factory, self.bestseller).adjusted_price

        summary = self.job.adjust_prices()

        self.assertEqual(summary.candidates, 0)
        self.assertEqual(load_inventory(self.session_factory, self.bestseller).adjusted_price, before)

    def test_no_sales_in_organization_means_no_candidates(self):
        idle = seed_product(self.session_factory, self.org_id, self.beers, name="Stout", base_price="5")
        seed_inventory(self.session_factory, self.org_id, idle, quantity="1", price="5")

        summary = self.job.adjust_prices()

        self.assertEqual(summary.as_dict(), {"candidates": 0, "updated": 0, "skipped": 0, "failed": 0})
        self.assertEqual(load_inventory(self.session_factory, idle).adjusted_price, Decimal("5"))

    def test_sales_outside_window_do_not_count(self):
        idle = seed_product(self.session_factory, self.org_id, self.beers, name="Stout", base_price="5")
        seed_inventory(self.session_factory, self.org_id, idle, quantity="1", price="5")
        self._sell_bestseller()
        self.clock.advance(61)

        self.assertEqual(self.job.find_candidates(self.clock()), [])

    def test_other_organization_activity_is_ignored(self):
        other_org = seed_organization(self.session_factory, name="Quiet")
        other_category = seed_category(self.session_factory, other_org)
        quiet = seed_product(self.session_factory, other_org, other_category, name="Quiet", base_price="5")
        seed_inventory(self.session_factory, other_org, quiet, quantity="1", price="5")
        self._sell_bestseller()

        self.assertNotIn(quiet, self.job.find_candidates(self.clock()))

    def test_static_and_inactive_products_excluded(self):
        peanuts = seed_product(self.session_factory, self.org_id, self.snacks, name="Peanuts", base_price="3")
        retired = seed_product(
            self.session_factory, self.org_id, self.beers, name="Retired", base_price="5", is_active=False
        )
        idle = seed_product(self.session_factory, self.org_id, self.beers, name="Stout", base_price="5")
        self._sell_bestseller()

        candidates = self.job.find_candidates(self.clock())

        self.assertEqual(candidates, [idle])
        self.assertNotIn(peanuts, candidates)
        self.assertNotIn(retired, candidates)

    def test_missing_inventory_is_created_at_base_price(self):
        idle = seed_product(self.session_factory, self.org_id, self.beers, name="Stout", base_price="5")
        self._sell_bestseller()

        self.job.adjust_prices()

        inventory = load_inventory(self.session_factory, idle)
        self.assertIsNotNone(inventory)
        self.assertEqual(inventory.quantity, Decimal("0"))
        self.assertEqual(inventory.adjusted_price, Decimal("4"))

    def test_noop_does_not_create_inventory(self):
        idle = seed_product(self.session_factory, self.org_id, self.beers, name="Stout", base_price="1")
        self._sell_bestseller()

        summary = self.job.adjust_prices()

        self.assertEqual(summary.skipped, 1)
        self.assertIsNone(load_inventory(self.session_factory, idle))

    def test_sale_during_correction_wins_the_row(self):
        idle = seed_product(
            self.session_factory, self.org_id, self.beers, name="Stout", base_price="5", min_price="2"
        )
        seed_inventory(self.session_factory, self.org_id, idle, quantity="10", price="5")
        self._sell_bestseller()

        def sell_idle():
            self.sales.process_sale(
                SaleRequest(items=[SaleItemRequest(product_id=idle, quantity=Decimal("1"))]),
                "cashier",
                self.org_id,
            )

        with race_after_read(ledger_store, "lock_inventory", sell_idle):
            with self.assertLogs("pos_inventory.services.price_correction", level="ERROR"):
                summary = self.job.adjust_prices()

        self.assertEqual(summary.candidates, 1)
        self.assertEqual(summary.failed, 1)
        self.assertEqual(summary.updated, 0)
        inventory = load_inventory(self.session_factory, idle)
        self.assertEqual(inventory.quantity, Decimal("9"))
        self.assertEqual(inventory.adjusted_price, Decimal("6"))
        self.assertEqual(
            [tx.transaction_type for tx in load_transactions(self.session_factory, inventory.id)],
            ["SALE"],
        )

    def test_failure_on_one_product_does_not_stop_others(self):
        first = seed_product(self.session_factory, self.org_id, self.beers, name="Stout", base_price="5")
        second = seed_product(self.session_factory, self.org_id, self.beers, name="Porter", base_price="5")
        seed_inventory(self.session_factory, self.org_id, first, quantity="1", price="5")
        seed_inventory(self.session_factory, self.org_id, second, quantity="1", price="5")
        self._sell_bestseller()

        real_correct = self.job._correct_product

        def flaky_correct(product_id, now):
            if product_id == first:
                raise OperationalError("UPDATE inventory", {}, Exception("database is locked"))
            return real_correct(product_id, now)

        with patch.object(self.job, "_correct_product", side_effect=flaky_correct):
            with self.assertLogs("pos_inventory.services.price_correction", level="ERROR"):
                summary = self.job.adjust_prices()

        self.assertEqual(summary.candidates, 2)
        self.assertEqual(summary.failed, 1)
        self.assertEqual(summary.updated, 1)
        self.assertEqual(load_inventory(self.session_factory, first).adjusted_price, Decimal("5"))
        self.assertEqual(load_inventory(self.session_factory, second).adjusted_price, Decimal("4"))


if __name__ == "__main__":
    unittest.main()
