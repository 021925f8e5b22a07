from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pos_inventory.core import pricing_policy
from pos_inventory.core.dates import utc_now
from pos_inventory.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InsufficientStockError,
    InvalidArgumentError,
    InventoryError,
    NotFoundError,
)
from pos_inventory.core.logging import log_context
from pos_inventory.core.money import ZERO, multiply, to_decimal
from pos_inventory.database.session import SessionLocal
from pos_inventory.models.category import Category
from pos_inventory.models.inventory import Inventory
from pos_inventory.models.inventory_transaction import TRANSACTION_SALE
from pos_inventory.models.product import Product
from pos_inventory.models.station import Station
from pos_inventory.schemas.sale import SaleItemResponse, SaleRequest, SaleResponse
from pos_inventory.services import ledger_store

logger = logging.getLogger(__name__)


@dataclass
class _SaleLine:
    index: int
    product: Product
    quantity: Decimal
    dynamic_pricing: bool
    inventory: Optional[Inventory] = None


def new_sale_id() -> str:
    return "SALE-{}".format(uuid.uuid4())


class SalesService:
    """Processes multi-line sales as a single all-or-nothing unit.

    Every line is validated (ownership, activity, stock) before any row is
    touched. Mutations then run inside one database transaction, so a failure
    on any line, or a lost version race on any row, leaves the store exactly
    as it was.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        *,
        clock: Callable = utc_now,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._clock = clock

    def process_sale(self, request: SaleRequest, actor_id, organization_id: int) -> SaleResponse:
        quantities = self._line_quantities(request)
        sale_id = new_sale_id()

        db = self._session_factory()
        try:
            now = self._clock()
            self._check_station(db, request.station_id, organization_id)
            lines = self._load_lines(db, request, quantities, organization_id)
            self._lock_and_check_stock(db, lines)

            organization = ledger_store.get_organization(db, organization_id)
            increase_step, _ = ledger_store.price_steps(organization)

            items = []
            total_amount = ZERO
            for line in lines:
                item = self._apply_line(
                    db,
                    line,
                    increase_step=increase_step,
                    sale_id=sale_id,
                    request=request,
                    actor_id=actor_id,
                    now=now,
                )
                items.append(item)
                total_amount = to_decimal(total_amount + item.total_price)

            db.commit()
        except StaleDataError as exc:
            db.rollback()
            raise ConflictError("Sale {} lost a concurrent inventory update".format(sale_id)) from exc
        except (SQLAlchemyError, InventoryError):
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(
            "Sale %s processed for org %s: %d line(s), total %s.",
            sale_id,
            organization_id,
            len(items),
            total_amount,
            extra=log_context(organization_id=organization_id, sale_id=sale_id, actor_id=actor_id),
        )
        return SaleResponse(
            sale_id=sale_id,
            items=items,
            total_amount=total_amount,
            notes=request.notes,
            station_id=request.station_id,
            timestamp=now,
        )

    @staticmethod
    def _line_quantities(request: SaleRequest) -> list[Decimal]:
        if not request.items:
            raise InvalidArgumentError("Sale must contain at least one item")

        quantities = []
        for index, item in enumerate(request.items):
            try:
                quantity = to_decimal(item.quantity)
            except ValueError as exc:
                raise InvalidArgumentError(
                    "Quantity is not a valid amount",
                    product_id=item.product_id,
                    line_index=index,
                ) from exc
            if quantity <= 0:
                raise InvalidArgumentError(
                    "Quantity must be greater than 0",
                    product_id=item.product_id,
                    line_index=index,
                )
            quantities.append(quantity)
        return quantities

    @staticmethod
    def _check_station(db: Session, station_id: Optional[int], organization_id: int) -> None:
        if station_id is None:
            return
        station = db.get(Station, station_id)
        if station is None:
            raise NotFoundError("Station not found: {}".format(station_id))
        if station.organization_id != organization_id:
            raise ForbiddenError(
                "Station {} does not belong to organization {}".format(station_id, organization_id)
            )

    @staticmethod
    def _load_lines(
        db: Session,
        request: SaleRequest,
        quantities: list[Decimal],
        organization_id: int,
    ) -> list[_SaleLine]:
        categories: dict[int, Optional[Category]] = {}
        lines = []
        for index, (item, quantity) in enumerate(zip(request.items, quantities)):
            product = ledger_store.require_owned_product(
                db, item.product_id, organization_id, line_index=index
            )
            if not product.is_active:
                raise InvalidArgumentError(
                    "Product {} is not active".format(product.id),
                    product_id=product.id,
                    line_index=index,
                )
            if product.category_id not in categories:
                categories[product.category_id] = ledger_store.get_category(db, product.category_id)
            category = categories[product.category_id]
            lines.append(
                _SaleLine(
                    index=index,
                    product=product,
                    quantity=quantity,
                    dynamic_pricing=bool(category is not None and category.dynamic_pricing),
                )
            )
        return lines

    @staticmethod
    def _lock_and_check_stock(db: Session, lines: list[_SaleLine]) -> None:
        inventories = ledger_store.lock_inventories(db, (line.product.id for line in lines))
        requested = defaultdict(lambda: ZERO)
        for line in lines:
            inventory = inventories.get(line.product.id)
            if inventory is None:
                raise NotFoundError(
                    "No inventory found for product {}".format(line.product.id),
                    product_id=line.product.id,
                    line_index=line.index,
                )
            line.inventory = inventory

            requested[line.product.id] = requested[line.product.id] + line.quantity
            available = ledger_store.current_quantity(inventory)
            if requested[line.product.id] > available:
                raise InsufficientStockError(
                    line.product.id,
                    requested[line.product.id],
                    available,
                    line_index=line.index,
                )

    @staticmethod
    def _apply_line(
        db: Session,
        line: _SaleLine,
        *,
        increase_step: Decimal,
        sale_id: str,
        request: SaleRequest,
        actor_id,
        now,
    ) -> SaleItemResponse:
        inventory = line.inventory
        product = line.product

        quantity_before = ledger_store.current_quantity(inventory)
        quantity_after = quantity_before - line.quantity
        price_before = ledger_store.current_price(inventory, product)
        price_after = price_before
        if line.dynamic_pricing:
            _, max_price = ledger_store.product_bounds(product)
            price_after = pricing_policy.increase(price_before, increase_step, max_price)

        inventory.quantity = quantity_after
        inventory.adjusted_price = price_after
        inventory.updated_at = now
        ledger_store.append_transaction(
            db,
            inventory=inventory,
            transaction_type=TRANSACTION_SALE,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            price_before=price_before,
            price_after=price_after,
            reference_id=sale_id,
            notes=request.notes,
            created_by=actor_id,
            station_id=request.station_id,
            created_at=now,
        )

        return SaleItemResponse(
            product_id=product.id,
            product_name=product.name,
            quantity=line.quantity,
            unit_price=price_before,
            total_price=multiply(line.quantity, price_before),
        )


__all__ = ["SalesService", "new_sale_id"]
