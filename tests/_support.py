from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from pos_inventory.database import init_db
from pos_inventory.database.engine import build_engine
from pos_inventory.models import (
    Category,
    Inventory,
    InventoryTransaction,
    Organization,
    Product,
    Station,
)

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def make_session_factory():
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def _insert(session_factory, row):
    db = session_factory()
    try:
        db.add(row)
        db.commit()
        return row.id
    finally:
        db.close()


def seed_organization(session_factory, *, increase_step="1", decrease_step="1", name="Org"):
    return _insert(
        session_factory,
        Organization(
            name=name,
            price_increase_step=Decimal(increase_step) if increase_step is not None else None,
            price_decrease_step=Decimal(decrease_step) if decrease_step is not None else None,
        ),
    )


def seed_category(session_factory, organization_id, *, name="Beers", dynamic_pricing=True):
    return _insert(
        session_factory,
        Category(organization_id=organization_id, name=name, dynamic_pricing=dynamic_pricing),
    )


def seed_station(session_factory, organization_id, *, name="Main Bar"):
    return _insert(session_factory, Station(organization_id=organization_id, name=name))


def seed_product(
    session_factory,
    organization_id,
    category_id,
    *,
    name="Pilsner",
    base_price="10",
    min_price=None,
    max_price=None,
    is_active=True,
):
    return _insert(
        session_factory,
        Product(
            organization_id=organization_id,
            category_id=category_id,
            name=name,
            base_price=Decimal(base_price),
            min_price=Decimal(min_price) if min_price is not None else None,
            max_price=Decimal(max_price) if max_price is not None else None,
            is_active=is_active,
            created_at=START,
            updated_at=START,
        ),
    )


def seed_inventory(session_factory, organization_id, product_id, *, quantity="0", price=None):
    return _insert(
        session_factory,
        Inventory(
            organization_id=organization_id,
            product_id=product_id,
            quantity=Decimal(quantity),
            adjusted_price=Decimal(price) if price is not None else None,
            created_at=START,
            updated_at=START,
        ),
    )


def load_inventory(session_factory, product_id):
    db = session_factory()
    try:
        return db.execute(
            select(Inventory).where(Inventory.product_id == product_id)
        ).scalars().first()
    finally:
        db.close()


def load_transactions(session_factory, inventory_id=None):
    db = session_factory()
    try:
        stmt = select(InventoryTransaction).order_by(InventoryTransaction.id)
        if inventory_id is not None:
            stmt = stmt.where(InventoryTransaction.inventory_id == inventory_id)
        return list(db.execute(stmt).scalars().all())
    finally:
        db.close()


def inventory_snapshot(session_factory, product_id):
    inventory = load_inventory(session_factory, product_id)
    if inventory is None:
        return None
    return (
        inventory.quantity,
        inventory.adjusted_price,
        inventory.version,
        inventory.updated_at,
    )


def race_after_read(module, attr, rival, times=1):
    """Patch ``module.attr`` so ``rival`` commits right after the wrapped read.

    The wrapped call has already loaded the row into its own session, so its
    later flush carries a stale version. Reads made by ``rival`` itself pass
    straight through.
    """
    real = getattr(module, attr)
    state = {"remaining": times, "active": False}

    def racing(*args, **kwargs):
        loaded = real(*args, **kwargs)
        if state["remaining"] and not state["active"]:
            state["remaining"] -= 1
            state["active"] = True
            try:
                rival()
            finally:
                state["active"] = False
        return loaded

    return patch.object(module, attr, side_effect=racing)
