"""Row-level reads and appends shared by the ledger services.

All functions take an open ``Session`` and never commit; the calling service
owns the transaction boundary so a row update and its transaction record land
together or not at all.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import distinct, exists, select
from sqlalchemy.orm import Session

from pos_inventory.config import get_settings
from pos_inventory.core.exceptions import ForbiddenError, NotFoundError
from pos_inventory.core.money import ZERO, optional_decimal, to_decimal
from pos_inventory.models.category import Category
from pos_inventory.models.inventory import Inventory
from pos_inventory.models.inventory_transaction import TRANSACTION_SALE, InventoryTransaction
from pos_inventory.models.organization import Organization
from pos_inventory.models.product import Product


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.get(Product, product_id)


def require_owned_product(
    db: Session,
    product_id: int,
    organization_id: int,
    *,
    line_index: Optional[int] = None,
) -> Product:
    product = get_product(db, product_id)
    if product is None:
        raise NotFoundError(
            "Product not found: {}".format(product_id),
            product_id=product_id,
            line_index=line_index,
        )
    if product.organization_id != organization_id:
        raise ForbiddenError(
            "Product {} does not belong to organization {}".format(product_id, organization_id),
            product_id=product_id,
            line_index=line_index,
        )
    return product


def get_organization(db: Session, organization_id: int) -> Optional[Organization]:
    return db.get(Organization, organization_id)


def get_category(db: Session, category_id: int) -> Optional[Category]:
    return db.get(Category, category_id)


def price_steps(organization: Optional[Organization]) -> tuple[Decimal, Decimal]:
    settings = get_settings()
    increase_step = settings.DEFAULT_PRICE_INCREASE_STEP
    decrease_step = settings.DEFAULT_PRICE_DECREASE_STEP
    if organization is not None:
        if organization.price_increase_step is not None:
            increase_step = organization.price_increase_step
        if organization.price_decrease_step is not None:
            decrease_step = organization.price_decrease_step
    return to_decimal(increase_step), to_decimal(decrease_step)


def find_inventory(db: Session, product_id: int) -> Optional[Inventory]:
    return db.execute(
        select(Inventory).where(Inventory.product_id == product_id)
    ).scalars().first()


def lock_inventory(db: Session, product_id: int) -> Optional[Inventory]:
    return db.execute(
        select(Inventory)
        .where(Inventory.product_id == product_id)
        .with_for_update()
    ).scalars().first()


def lock_inventories(db: Session, product_ids: Iterable[int]) -> dict[int, Inventory]:
    ordered_ids = sorted(set(product_ids))
    if not ordered_ids:
        return {}
    rows = db.execute(
        select(Inventory)
        .where(Inventory.product_id.in_(ordered_ids))
        .order_by(Inventory.product_id)
        .with_for_update()
    ).scalars().all()
    return {row.product_id: row for row in rows}


def create_inventory(db: Session, product: Product, now: datetime) -> Inventory:
    inventory = Inventory(
        organization_id=product.organization_id,
        product_id=product.id,
        quantity=ZERO,
        adjusted_price=to_decimal(product.base_price),
        created_at=now,
        updated_at=now,
    )
    db.add(inventory)
    db.flush()
    return inventory


def current_price(inventory: Optional[Inventory], product: Product) -> Decimal:
    if inventory is not None and inventory.adjusted_price is not None:
        return to_decimal(inventory.adjusted_price)
    return to_decimal(product.base_price)


def current_quantity(inventory: Inventory) -> Decimal:
    return to_decimal(inventory.quantity)


def append_transaction(
    db: Session,
    *,
    inventory: Inventory,
    transaction_type: str,
    quantity_before: Decimal,
    quantity_after: Decimal,
    price_before: Decimal,
    price_after: Decimal,
    created_at: datetime,
    reference_id: Optional[str] = None,
    notes: Optional[str] = None,
    created_by: Optional[str] = None,
    station_id: Optional[int] = None,
) -> InventoryTransaction:
    quantity_before = to_decimal(quantity_before)
    quantity_after = to_decimal(quantity_after)
    transaction = InventoryTransaction(
        inventory_id=inventory.id,
        transaction_type=transaction_type,
        quantity_change=quantity_after - quantity_before,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        price_before=to_decimal(price_before),
        price_after=to_decimal(price_after),
        reference_id=reference_id,
        notes=notes,
        created_by=str(created_by) if created_by is not None else None,
        station_id=station_id,
        created_at=created_at,
    )
    db.add(transaction)
    return transaction


def load_transaction_history(db: Session, inventory_id: int) -> list[InventoryTransaction]:
    return list(
        db.execute(
            select(InventoryTransaction)
            .where(InventoryTransaction.inventory_id == inventory_id)
            .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        ).scalars().all()
    )


def load_sale_transactions(db: Session, organization_id: int) -> list[InventoryTransaction]:
    return list(
        db.execute(
            select(InventoryTransaction)
            .join(Inventory, Inventory.id == InventoryTransaction.inventory_id)
            .join(Product, Product.id == Inventory.product_id)
            .where(
                Product.organization_id == organization_id,
                InventoryTransaction.transaction_type == TRANSACTION_SALE,
            )
            .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        ).scalars().all()
    )


def organizations_with_sales_between(db: Session, since: datetime, until: datetime) -> list[int]:
    rows = db.execute(
        select(distinct(Product.organization_id))
        .select_from(InventoryTransaction)
        .join(Inventory, Inventory.id == InventoryTransaction.inventory_id)
        .join(Product, Product.id == Inventory.product_id)
        .where(
            InventoryTransaction.transaction_type == TRANSACTION_SALE,
            InventoryTransaction.created_at >= since,
            InventoryTransaction.created_at <= until,
        )
    ).scalars().all()
    return sorted(rows)


def idle_dynamic_products(
    db: Session,
    organization_ids: Iterable[int],
    since: datetime,
    until: datetime,
) -> list[int]:
    organization_ids = list(organization_ids)
    if not organization_ids:
        return []

    sold_recently = exists().where(
        InventoryTransaction.inventory_id == Inventory.id,
        InventoryTransaction.transaction_type == TRANSACTION_SALE,
        InventoryTransaction.created_at >= since,
        InventoryTransaction.created_at <= until,
    )
    rows = db.execute(
        select(Product.id)
        .join(Category, Category.id == Product.category_id)
        .outerjoin(Inventory, Inventory.product_id == Product.id)
        .where(
            Product.organization_id.in_(organization_ids),
            Product.is_active.is_(True),
            Category.dynamic_pricing.is_(True),
            ~sold_recently,
        )
        .order_by(Product.id)
    ).scalars().all()
    return list(rows)


def product_bounds(product: Product) -> tuple[Optional[Decimal], Optional[Decimal]]:
    return optional_decimal(product.min_price), optional_decimal(product.max_price)
