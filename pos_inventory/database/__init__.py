from pos_inventory.database.base import Base
from pos_inventory.database.engine import engine
from pos_inventory.database.schema import init_db
from pos_inventory.database.session import SessionLocal

__all__ = ["Base", "SessionLocal", "engine", "init_db"]
