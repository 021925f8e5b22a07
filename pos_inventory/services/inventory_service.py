from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pos_inventory.config import get_settings
from pos_inventory.core.dates import utc_now
from pos_inventory.core.exceptions import (
    ConflictError,
    InsufficientStockError,
    InvalidArgumentError,
    InventoryError,
    NotFoundError,
)
from pos_inventory.core.logging import log_context
from pos_inventory.core.money import ZERO, to_decimal
from pos_inventory.database.session import SessionLocal
from pos_inventory.models.inventory import Inventory
from pos_inventory.models.inventory_transaction import (
    TRANSACTION_ADD,
    TRANSACTION_ADJUSTMENT,
    TRANSACTION_REMOVE,
    InventoryTransaction,
)
from pos_inventory.models.product import Product
from pos_inventory.models.station import Station
from pos_inventory.schemas.inventory import (
    AddStockRequest,
    AdjustStockRequest,
    InventoryResponse,
    InventoryTransactionResponse,
    RemoveStockRequest,
)
from pos_inventory.schemas.stats import StationSalesStats, UserSalesStats
from pos_inventory.services import ledger_store

logger = logging.getLogger(__name__)


def build_inventory_response(inventory: Inventory, product: Product) -> InventoryResponse:
    return InventoryResponse(
        id=inventory.id,
        organization_id=product.organization_id,
        product_id=product.id,
        product_name=product.name,
        quantity=to_decimal(inventory.quantity),
        unit_price=ledger_store.current_price(inventory, product),
        description=product.description,
        base_price=to_decimal(product.base_price),
        min_price=product.min_price,
        max_price=product.max_price,
        is_active=product.is_active,
        updated_at=inventory.updated_at,
    )


def _positive_quantity(value, field_name: str = "quantity") -> Decimal:
    try:
        quantity = to_decimal(value)
    except ValueError as exc:
        raise InvalidArgumentError("{} is not a valid amount".format(field_name)) from exc
    if quantity <= 0:
        raise InvalidArgumentError("{} must be greater than 0".format(field_name))
    return quantity


def _sale_revenue(transaction: InventoryTransaction) -> Decimal:
    return to_decimal(-to_decimal(transaction.quantity_change) * to_decimal(transaction.price_before))


class InventoryService:
    """Stock mutations and inventory queries for one organization at a time.

    Each mutation runs in its own database transaction: the inventory row is
    read under a row lock, rewritten with an optimistic version check and
    paired with exactly one ``InventoryTransaction``. A lost version race
    retries the whole operation; after ``max_retries`` attempts it surfaces as
    ``ConflictError``.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        *,
        clock: Callable = utc_now,
        max_retries: Optional[int] = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._clock = clock
        if max_retries is None:
            max_retries = get_settings().INVENTORY_WRITE_RETRIES
        self._max_retries = max(1, int(max_retries))

    def _run_atomic(self, operation: str, func):
        attempt = 0
        while True:
            attempt += 1
            db = self._session_factory()
            try:
                result = func(db)
                db.commit()
                return result
            except StaleDataError as exc:
                db.rollback()
                if attempt >= self._max_retries:
                    raise ConflictError(
                        "{} lost a concurrent update after {} attempt(s)".format(operation, attempt)
                    ) from exc
                logger.warning("%s hit a concurrent update, retrying (attempt %d).", operation, attempt)
            except (SQLAlchemyError, InventoryError):
                db.rollback()
                raise
            finally:
                db.close()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_stock(self, request: AddStockRequest, actor_id, organization_id: int) -> InventoryResponse:
        quantity = _positive_quantity(request.quantity)

        def _apply(db: Session) -> InventoryResponse:
            product = ledger_store.require_owned_product(db, request.product_id, organization_id)
            now = self._clock()
            inventory = ledger_store.lock_inventory(db, product.id)
            if inventory is None:
                inventory = ledger_store.create_inventory(db, product, now)

            quantity_before = ledger_store.current_quantity(inventory)
            quantity_after = quantity_before + quantity
            price = ledger_store.current_price(inventory, product)

            inventory.quantity = quantity_after
            inventory.updated_at = now
            ledger_store.append_transaction(
                db,
                inventory=inventory,
                transaction_type=TRANSACTION_ADD,
                quantity_before=quantity_before,
                quantity_after=quantity_after,
                price_before=price,
                price_after=price,
                notes=request.notes,
                created_by=actor_id,
                created_at=now,
            )
            db.flush()
            return build_inventory_response(inventory, product)

        response = self._run_atomic("add_stock", _apply)
        logger.info(
            "Added %s to product %s (org %s), now %s.",
            quantity,
            request.product_id,
            organization_id,
            response.quantity,
            extra=log_context(
                organization_id=organization_id, product_id=request.product_id, actor_id=actor_id
            ),
        )
        return response

    def remove_stock(self, request: RemoveStockRequest, actor_id, organization_id: int) -> InventoryResponse:
        quantity = _positive_quantity(request.quantity)

        def _apply(db: Session) -> InventoryResponse:
            product = ledger_store.require_owned_product(db, request.product_id, organization_id)
            now = self._clock()
            inventory = ledger_store.lock_inventory(db, product.id)
            if inventory is None:
                raise NotFoundError(
                    "No inventory found for product {}".format(product.id),
                    product_id=product.id,
                )

            quantity_before = ledger_store.current_quantity(inventory)
            if quantity > quantity_before:
                raise InsufficientStockError(product.id, quantity, quantity_before)
            quantity_after = quantity_before - quantity
            price = ledger_store.current_price(inventory, product)

            inventory.quantity = quantity_after
            inventory.updated_at = now
            ledger_store.append_transaction(
                db,
                inventory=inventory,
                transaction_type=TRANSACTION_REMOVE,
                quantity_before=quantity_before,
                quantity_after=quantity_after,
                price_before=price,
                price_after=price,
                reference_id=request.reference_id,
                notes=request.notes,
                created_by=actor_id,
                created_at=now,
            )
            db.flush()
            return build_inventory_response(inventory, product)

        response = self._run_atomic("remove_stock", _apply)
        logger.info(
            "Removed %s from product %s (org %s), now %s.",
            quantity,
            request.product_id,
            organization_id,
            response.quantity,
            extra=log_context(
                organization_id=organization_id, product_id=request.product_id, actor_id=actor_id
            ),
        )
        return response

    def adjust_stock(self, request: AdjustStockRequest, actor_id, organization_id: int) -> InventoryResponse:
        try:
            new_quantity = to_decimal(request.new_quantity)
        except ValueError as exc:
            raise InvalidArgumentError("new_quantity is not a valid amount") from exc
        if new_quantity < 0:
            raise InvalidArgumentError("new_quantity cannot be negative")

        def _apply(db: Session) -> InventoryResponse:
            product = ledger_store.require_owned_product(db, request.product_id, organization_id)
            now = self._clock()
            inventory = ledger_store.lock_inventory(db, product.id)
            if inventory is None:
                inventory = ledger_store.create_inventory(db, product, now)

            quantity_before = ledger_store.current_quantity(inventory)
            price = ledger_store.current_price(inventory, product)

            inventory.quantity = new_quantity
            inventory.updated_at = now
            ledger_store.append_transaction(
                db,
                inventory=inventory,
                transaction_type=TRANSACTION_ADJUSTMENT,
                quantity_before=quantity_before,
                quantity_after=new_quantity,
                price_before=price,
                price_after=price,
                notes=request.notes,
                created_by=actor_id,
                created_at=now,
            )
            db.flush()
            return build_inventory_response(inventory, product)

        response = self._run_atomic("adjust_stock", _apply)
        logger.info(
            "Adjusted product %s (org %s) to %s.",
            request.product_id,
            organization_id,
            new_quantity,
            extra=log_context(
                organization_id=organization_id, product_id=request.product_id, actor_id=actor_id
            ),
        )
        return response

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_organization(
        self,
        organization_id: int,
        category_id: Optional[int] = None,
    ) -> list[InventoryResponse]:
        stmt = (
            select(Inventory, Product)
            .join(Product, Product.id == Inventory.product_id)
            .where(Product.organization_id == organization_id)
            .order_by(Product.name, Product.id)
        )
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)

        db = self._session_factory()
        try:
            rows = db.execute(stmt).all()
            return [build_inventory_response(row.Inventory, row.Product) for row in rows]
        finally:
            db.close()

    def get_by_product(self, product_id: int, organization_id: int) -> InventoryResponse:
        db = self._session_factory()
        try:
            product = ledger_store.require_owned_product(db, product_id, organization_id)
            inventory = ledger_store.find_inventory(db, product.id)
            if inventory is None:
                raise NotFoundError(
                    "No inventory found for product {}".format(product.id),
                    product_id=product.id,
                )
            return build_inventory_response(inventory, product)
        finally:
            db.close()

    def get_transaction_history(
        self,
        product_id: int,
        organization_id: int,
    ) -> list[InventoryTransactionResponse]:
        db = self._session_factory()
        try:
            product = ledger_store.require_owned_product(db, product_id, organization_id)
            inventory = ledger_store.find_inventory(db, product.id)
            if inventory is None:
                raise NotFoundError(
                    "No inventory found for product {}".format(product.id),
                    product_id=product.id,
                )
            history = ledger_store.load_transaction_history(db, inventory.id)
            return [InventoryTransactionResponse.model_validate(row) for row in history]
        finally:
            db.close()

    def get_user_sales_stats(self, organization_id: int) -> list[UserSalesStats]:
        db = self._session_factory()
        try:
            transactions = ledger_store.load_sale_transactions(db, organization_id)
        finally:
            db.close()

        sales = defaultdict(set)
        revenue = defaultdict(lambda: ZERO)
        for transaction in transactions:
            key = transaction.created_by
            sales[key].add(transaction.reference_id)
            revenue[key] = revenue[key] + _sale_revenue(transaction)

        stats = [
            UserSalesStats(user_id=key, sales_count=len(sales[key]), total_revenue=revenue[key])
            for key in sales
        ]
        stats.sort(key=lambda item: (-item.total_revenue, item.user_id or ""))
        return stats

    def get_station_sales_stats(self, organization_id: int) -> list[StationSalesStats]:
        db = self._session_factory()
        try:
            transactions = ledger_store.load_sale_transactions(db, organization_id)
            station_ids = {row.station_id for row in transactions if row.station_id is not None}
            names = {}
            if station_ids:
                names = {
                    station.id: station.name
                    for station in db.execute(
                        select(Station).where(Station.id.in_(station_ids))
                    ).scalars()
                }
        finally:
            db.close()

        sales = defaultdict(set)
        revenue = defaultdict(lambda: ZERO)
        for transaction in transactions:
            key = transaction.station_id
            sales[key].add(transaction.reference_id)
            revenue[key] = revenue[key] + _sale_revenue(transaction)

        stats = [
            StationSalesStats(
                station_id=key,
                station_name=names.get(key),
                sales_count=len(sales[key]),
                total_revenue=revenue[key],
            )
            for key in sales
        ]
        stats.sort(key=lambda item: (-item.total_revenue, item.station_id or 0))
        return stats


__all__ = ["InventoryService", "build_inventory_response"]
