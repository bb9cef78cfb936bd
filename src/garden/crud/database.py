"""Engine construction, schema creation, and session helpers"""

import logging
import os

from sqlalchemy import event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from garden.crud.tables import REQUIRED_TABLES
from garden.errors import SchemaError


logger = logging.getLogger(__name__)

DEFAULT_URL = "sqlite:///garden.db"


def get_url(explicit: str = None) -> str:
    """Resolve the database URL: explicit arg, then GARDEN_DB_URL, then the SQLite default."""
    return explicit or os.getenv("GARDEN_DB_URL") or DEFAULT_URL


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def _enable_foreign_keys(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, echo: bool = False) -> Engine:
    """Build an engine; SQLite connections get foreign keys enforced."""
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_memory_sqlite(url):
            # in-memory databases live on a single shared connection
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_foreign_keys)
    logger.debug("engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def verify_schema(engine: Engine) -> None:
    """Raise SchemaError if any required table is missing."""
    existing = set(inspect(engine).get_table_names())
    missing = [name for name in REQUIRED_TABLES if name not in existing]
    if missing:
        raise SchemaError(f"missing tables: {', '.join(missing)}")


def init_db(engine: Engine) -> None:
    """Create all tables that do not already exist, then check the schema."""
    SQLModel.metadata.create_all(engine)
    verify_schema(engine)
    logger.info("database schema ready")


def get_session(engine: Engine):
    with Session(engine) as session:
        yield session
