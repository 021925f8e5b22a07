import argparse
from decimal import Decimal

from sqlalchemy import select

from pos_inventory.core.logging import setup_logging
from pos_inventory.database import SessionLocal, init_db
from pos_inventory.models.organization import Organization
from pos_inventory.models.station import Station
from pos_inventory.schemas.inventory import AddStockRequest
from pos_inventory.schemas.product import ProductCreateRequest
from pos_inventory.services import CatalogService, InventoryService

SEED_ACTOR = "seed-script"


def parse_args():
    parser = argparse.ArgumentParser(description="Seed a sample organization with stock.")
    parser.add_argument(
        "--organization-name",
        default="Demo Bar",
        help="Name of the organization to create.",
    )
    return parser.parse_args()


def main():
    setup_logging()
    args = parse_args()
    init_db()

    db = SessionLocal()
    try:
        existing = db.execute(
            select(Organization.id).where(Organization.name == args.organization_name).limit(1)
        ).first()
        if existing:
            print("Seed skipped: organization already exists.")
            return

        organization = Organization(
            name=args.organization_name,
            price_increase_step=Decimal("0.2500"),
            price_decrease_step=Decimal("0.1000"),
        )
        db.add(organization)
        db.flush()
        db.add(Station(organization_id=organization.id, name="Main Bar"))
        db.commit()
        organization_id = organization.id
    finally:
        db.close()

    catalog = CatalogService()
    inventory = InventoryService()

    beers = catalog.create_category(organization_id, "Beers", dynamic_pricing=True)
    snacks = catalog.create_category(organization_id, "Snacks", dynamic_pricing=False)

    products = [
        (ProductCreateRequest(
            name="Pilsner",
            category_id=beers.id,
            base_price=Decimal("4.5000"),
            min_price=Decimal("3.0000"),
            max_price=Decimal("7.0000"),
        ), Decimal("48")),
        (ProductCreateRequest(
            name="Stout",
            category_id=beers.id,
            base_price=Decimal("5.5000"),
            min_price=Decimal("4.0000"),
            max_price=Decimal("8.5000"),
        ), Decimal("24")),
        (ProductCreateRequest(
            name="Peanuts",
            category_id=snacks.id,
            base_price=Decimal("2.0000"),
        ), Decimal("30")),
    ]
    for request, quantity in products:
        product = catalog.create_product(request, organization_id)
        inventory.add_stock(
            AddStockRequest(product_id=product.id, quantity=quantity, notes="Initial stock"),
            SEED_ACTOR,
            organization_id,
        )

    print("Seed data created for organization {}.".format(organization_id))


if __name__ == "__main__":
    main()
