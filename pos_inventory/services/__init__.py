from pos_inventory.services.catalog_service import CatalogService
from pos_inventory.services.inventory_service import InventoryService
from pos_inventory.services.price_correction import (
    PriceCorrectionJob,
    PriceCorrectionSummary,
    run_price_correction,
)
from pos_inventory.services.sales_service import SalesService

__all__ = [
    "CatalogService",
    "InventoryService",
    "PriceCorrectionJob",
    "PriceCorrectionSummary",
    "SalesService",
    "run_price_correction",
]
