import logging

from pos_inventory.database.base import Base

logger = logging.getLogger(__name__)


def init_db(bind=None) -> None:
    from pos_inventory.models import import_all_models

    if bind is None:
        from pos_inventory.database.engine import engine as bind

    import_all_models()
    Base.metadata.create_all(bind=bind)
    logger.info("Database schema ready (%d tables).", len(Base.metadata.tables))


__all__ = ["init_db"]
