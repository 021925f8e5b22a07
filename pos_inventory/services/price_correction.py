from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos_inventory.config import get_settings
from pos_inventory.core import pricing_policy
from pos_inventory.core.dates import epoch_millis, utc_now, window_start
from pos_inventory.core.exceptions import InventoryError, NotFoundError
from pos_inventory.core.logging import log_context
from pos_inventory.database.session import SessionLocal
from pos_inventory.models.inventory_transaction import TRANSACTION_ADJUSTMENT
from pos_inventory.services import ledger_store

logger = logging.getLogger(__name__)

CORRECTION_NOTES = "PriceCorrectionJob"

_PRODUCT_FAILURES = (SQLAlchemyError, InventoryError)


@dataclass
class PriceCorrectionSummary:
    candidates: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def correction_reference(now: datetime) -> str:
    return "REDUCE-{}".format(epoch_millis(now))


class PriceCorrectionJob:
    """Decays prices of idle products in organizations that are selling.

    A product is a candidate when its organization recorded at least one sale
    inside the activity window, its category uses dynamic pricing, and the
    product itself did not sell in that window. Each candidate is corrected in
    its own transaction; a failure is logged and counted, never raised.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        *,
        clock: Callable = utc_now,
        activity_window_seconds: Optional[int] = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._clock = clock
        if activity_window_seconds is None:
            activity_window_seconds = get_settings().PRICE_ACTIVITY_WINDOW_SECONDS
        self._window_seconds = int(activity_window_seconds)

    def find_candidates(self, now: datetime) -> list[int]:
        since = window_start(now, self._window_seconds)
        db = self._session_factory()
        try:
            organization_ids = ledger_store.organizations_with_sales_between(db, since, now)
            if not organization_ids:
                return []
            return ledger_store.idle_dynamic_products(db, organization_ids, since, now)
        finally:
            db.close()

    def adjust_prices(self) -> PriceCorrectionSummary:
        now = self._clock()
        summary = PriceCorrectionSummary()
        logger.info("Running price correction job")

        product_ids = self.find_candidates(now)
        summary.candidates = len(product_ids)
        if not product_ids:
            logger.info("No product prices to update automatically")
            return summary

        for product_id in product_ids:
            try:
                changed = self._correct_product(product_id, now)
            except _PRODUCT_FAILURES:
                logger.exception(
                    "Price correction failed for product %s",
                    product_id,
                    extra=log_context(product_id=product_id),
                )
                summary.failed += 1
                continue
            if changed:
                summary.updated += 1
            else:
                summary.skipped += 1

        logger.info(
            "Updated prices of %d product(s) (%d at floor, %d failed).",
            summary.updated,
            summary.skipped,
            summary.failed,
        )
        return summary

    def _correct_product(self, product_id: int, now: datetime) -> bool:
        db = self._session_factory()
        try:
            product = ledger_store.get_product(db, product_id)
            if product is None:
                raise NotFoundError("Product not found: {}".format(product_id), product_id=product_id)

            organization = ledger_store.get_organization(db, product.organization_id)
            _, decrease_step = ledger_store.price_steps(organization)
            min_price, _ = ledger_store.product_bounds(product)

            inventory = ledger_store.lock_inventory(db, product.id)
            if inventory is None:
                inventory = ledger_store.create_inventory(db, product, now)

            price_before = ledger_store.current_price(inventory, product)
            price_after = pricing_policy.decay(price_before, decrease_step, min_price)
            if pricing_policy.is_noop(price_before, price_after):
                # Already at the floor.
                db.rollback()
                return False

            quantity = ledger_store.current_quantity(inventory)
            inventory.adjusted_price = price_after
            inventory.updated_at = now
            ledger_store.append_transaction(
                db,
                inventory=inventory,
                transaction_type=TRANSACTION_ADJUSTMENT,
                quantity_before=quantity,
                quantity_after=quantity,
                price_before=price_before,
                price_after=price_after,
                reference_id=correction_reference(now),
                notes=CORRECTION_NOTES,
                created_by=None,
                created_at=now,
            )
            db.commit()
            logger.debug(
                "Product %s price %s -> %s",
                product.id,
                price_before,
                price_after,
                extra=log_context(organization_id=product.organization_id, product_id=product.id),
            )
            return True
        except _PRODUCT_FAILURES:
            db.rollback()
            raise
        finally:
            db.close()


def run_price_correction() -> dict:
    return PriceCorrectionJob().adjust_prices().as_dict()


__all__ = [
    "CORRECTION_NOTES",
    "PriceCorrectionJob",
    "PriceCorrectionSummary",
    "correction_reference",
    "run_price_correction",
]
