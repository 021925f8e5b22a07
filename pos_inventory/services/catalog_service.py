from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pos_inventory.core.dates import utc_now
from pos_inventory.core.exceptions import (
    ConflictError,
    InvalidArgumentError,
    InventoryError,
    NotFoundError,
)
from pos_inventory.core.money import optional_decimal, to_decimal
from pos_inventory.database.session import SessionLocal
from pos_inventory.models.category import Category
from pos_inventory.models.product import Product
from pos_inventory.schemas.product import CategoryRead, ProductCreateRequest, ProductRead
from pos_inventory.services import ledger_store

logger = logging.getLogger(__name__)


def _normalize_name(value: Optional[str], label: str) -> str:
    name = (value or "").strip()
    if not name:
        raise InvalidArgumentError("{} name must not be blank".format(label))
    return name


def category_name_taken(db: Session, organization_id: int, name: str) -> bool:
    stmt = (
        select(Category.id)
        .where(
            Category.organization_id == organization_id,
            func.lower(Category.name) == name.lower(),
        )
        .limit(1)
    )
    return db.execute(stmt).first() is not None


def product_name_taken(db: Session, organization_id: int, name: str) -> bool:
    stmt = (
        select(Product.id)
        .where(
            Product.organization_id == organization_id,
            func.lower(Product.name) == name.lower(),
        )
        .limit(1)
    )
    return db.execute(stmt).first() is not None


class CatalogService:
    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        *,
        clock: Callable = utc_now,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._clock = clock

    def _commit_new(self, db: Session, row, conflict_message: str):
        db.add(row)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError(conflict_message) from exc
        db.refresh(row)
        return row

    def create_category(
        self,
        organization_id: int,
        name: str,
        dynamic_pricing: Optional[bool] = True,
    ) -> CategoryRead:
        name = _normalize_name(name, "Category")
        db = self._session_factory()
        try:
            if category_name_taken(db, organization_id, name):
                raise ConflictError("Category '{}' already exists".format(name))
            category = Category(
                organization_id=organization_id,
                name=name,
                dynamic_pricing=True if dynamic_pricing is None else bool(dynamic_pricing),
            )
            category = self._commit_new(db, category, "Category '{}' already exists".format(name))
            return CategoryRead.model_validate(category)
        except (SQLAlchemyError, InventoryError):
            db.rollback()
            raise
        finally:
            db.close()

    def list_categories(self, organization_id: int) -> list[CategoryRead]:
        db = self._session_factory()
        try:
            rows = db.execute(
                select(Category)
                .where(Category.organization_id == organization_id)
                .order_by(Category.name, Category.id)
            ).scalars().all()
            return [CategoryRead.model_validate(row) for row in rows]
        finally:
            db.close()

    @staticmethod
    def _owned_category(db: Session, category_id: int, organization_id: int) -> Category:
        # Other tenants' categories are reported as missing.
        category = ledger_store.get_category(db, category_id)
        if category is None or category.organization_id != organization_id:
            raise NotFoundError("Category not found: {}".format(category_id))
        return category

    def get_category(self, category_id: int, organization_id: int) -> CategoryRead:
        db = self._session_factory()
        try:
            return CategoryRead.model_validate(self._owned_category(db, category_id, organization_id))
        finally:
            db.close()

    def delete_category(self, category_id: int, organization_id: int) -> CategoryRead:
        """Delete an empty category and return what was removed.

        Categories still referenced by a product, active or not, are kept so
        product history stays attached to a category.
        """
        db = self._session_factory()
        try:
            category = self._owned_category(db, category_id, organization_id)
            in_use = db.execute(
                select(Product.id).where(Product.category_id == category.id).limit(1)
            ).first()
            if in_use is not None:
                raise ConflictError("Category '{}' still has products".format(category.name))
            removed = CategoryRead.model_validate(category)
            db.delete(category)
            db.commit()
            logger.info("Deleted category %s for org %s.", category_id, organization_id)
            return removed
        except (SQLAlchemyError, InventoryError):
            db.rollback()
            raise
        finally:
            db.close()

    def list_products(self, organization_id: int, category_id: Optional[int] = None) -> list[ProductRead]:
        stmt = (
            select(Product)
            .where(Product.organization_id == organization_id)
            .order_by(Product.name, Product.id)
        )
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)

        db = self._session_factory()
        try:
            return [ProductRead.model_validate(row) for row in db.execute(stmt).scalars().all()]
        finally:
            db.close()

    def get_product(self, product_id: int, organization_id: int) -> ProductRead:
        db = self._session_factory()
        try:
            return ProductRead.model_validate(
                ledger_store.require_owned_product(db, product_id, organization_id)
            )
        finally:
            db.close()

    def create_product(self, request: ProductCreateRequest, organization_id: int) -> ProductRead:
        name = _normalize_name(request.name, "Product")
        base_price = to_decimal(request.base_price)
        min_price = optional_decimal(request.min_price)
        max_price = optional_decimal(request.max_price)
        for label, value in (("base_price", base_price), ("min_price", min_price), ("max_price", max_price)):
            if value is not None and value <= 0:
                raise InvalidArgumentError("{} must be greater than 0".format(label))
        if min_price is not None and max_price is not None and min_price > max_price:
            raise InvalidArgumentError("min_price must not exceed max_price")
        if min_price is not None and base_price < min_price:
            raise InvalidArgumentError("base_price must not be below min_price")
        if max_price is not None and base_price > max_price:
            raise InvalidArgumentError("base_price must not exceed max_price")

        db = self._session_factory()
        try:
            category = ledger_store.get_category(db, request.category_id)
            if category is None or category.organization_id != organization_id:
                raise InvalidArgumentError("Invalid category: {}".format(request.category_id))
            if product_name_taken(db, organization_id, name):
                raise ConflictError("Product '{}' already exists".format(name))

            now = self._clock()
            product = Product(
                organization_id=organization_id,
                category_id=category.id,
                name=name,
                description=request.description,
                base_price=base_price,
                min_price=min_price,
                max_price=max_price,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            product = self._commit_new(db, product, "Product '{}' already exists".format(name))
            logger.info("Created product %s '%s' for org %s.", product.id, name, organization_id)
            return ProductRead.model_validate(product)
        except (SQLAlchemyError, InventoryError):
            db.rollback()
            raise
        finally:
            db.close()

    def deactivate_product(self, product_id: int, organization_id: int) -> ProductRead:
        db = self._session_factory()
        try:
            product = ledger_store.require_owned_product(db, product_id, organization_id)
            product.is_active = False
            product.updated_at = self._clock()
            db.commit()
            logger.info("Deactivated product %s for org %s.", product_id, organization_id)
            return ProductRead.model_validate(product)
        except (SQLAlchemyError, InventoryError):
            db.rollback()
            raise
        finally:
            db.close()


__all__ = ["CatalogService", "category_name_taken", "product_name_taken"]
