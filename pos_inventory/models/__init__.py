import importlib

from pos_inventory.models.category import Category
from pos_inventory.models.inventory import Inventory
from pos_inventory.models.inventory_transaction import (
    TRANSACTION_ADD,
    TRANSACTION_ADJUSTMENT,
    TRANSACTION_REMOVE,
    TRANSACTION_SALE,
    InventoryTransaction,
)
from pos_inventory.models.job_log import JobLog
from pos_inventory.models.organization import Organization
from pos_inventory.models.product import Product
from pos_inventory.models.station import Station


def import_all_models() -> None:
    for module_name in (
        "pos_inventory.models.category",
        "pos_inventory.models.inventory",
        "pos_inventory.models.inventory_transaction",
        "pos_inventory.models.job_log",
        "pos_inventory.models.organization",
        "pos_inventory.models.product",
        "pos_inventory.models.station",
    ):
        importlib.import_module(module_name)


__all__ = [
    "Category",
    "Inventory",
    "InventoryTransaction",
    "JobLog",
    "Organization",
    "Product",
    "Station",
    "TRANSACTION_ADD",
    "TRANSACTION_ADJUSTMENT",
    "TRANSACTION_REMOVE",
    "TRANSACTION_SALE",
    "import_all_models",
]
