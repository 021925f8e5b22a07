import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from pos_inventory.config import Settings, get_settings


app_settings: Settings = get_settings()
logger = logging.getLogger(__name__)

_SQLITE_BUSY_TIMEOUT_SECONDS = 30
_SQLITE_BUSY_TIMEOUT_MS = _SQLITE_BUSY_TIMEOUT_SECONDS * 1000


def _is_sqlite_memory(url) -> bool:
    database = url.database
    if database in (None, "", ":memory:"):
        return True
    return url.query.get("mode") == "memory"


def _set_sqlite_pragmas(dbapi_connection, _connection_record):
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={_SQLITE_BUSY_TIMEOUT_MS}")
    finally:
        cursor.close()


def build_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    connect_args = {}
    engine_kwargs: dict[str, object] = dict(pool_pre_ping=True)

    is_sqlite = url.get_backend_name() == "sqlite"
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": _SQLITE_BUSY_TIMEOUT_SECONDS}
        if _is_sqlite_memory(url):
            engine_kwargs.update(poolclass=StaticPool)

    built = create_engine(
        database_url,
        connect_args=connect_args,
        **engine_kwargs,
    )
    if is_sqlite:
        event.listen(built, "connect", _set_sqlite_pragmas)
        logger.debug("SQLite engine configured for %s", url.database or ":memory:")
    return built


engine = build_engine(app_settings.DATABASE_URL)


__all__ = ["build_engine", "engine"]
