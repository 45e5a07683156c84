"""Engine, session and schema helpers for the world database.

Everything that touches SQLAlchemy connection setup lives here: SQLite
pragmas, the process-wide engine, session factories, schema creation with
optional catalog seeding, and a couple of small checks used by the CLI and
the integration tests.
"""

from typing import Any

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from travia.config import get_settings
from travia.models import Base, seed_all_catalog_data

SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)


def _configure_sqlite_wal(
    dbapi_connection: Any, connection_record: Any  # noqa: ARG001
) -> None:
    """Apply ``SQLITE_PRAGMAS`` to a freshly opened SQLite connection.

    Hooked to the engine's ``connect`` event. WAL lets the tick's worker
    threads keep reading while one of them commits.
    """
    cursor = dbapi_connection.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_db_engine(url: str | None = None, *, echo: bool | None = None) -> Engine:
    """Build an engine for ``url``, falling back to the configured settings.

    Args:
        url: SQLAlchemy database URL
        echo: Whether to log every SQL statement

    SQLite engines may be shared across the tick's thread pool, so the
    same-thread check is switched off and the pragmas are installed.
    """
    settings = get_settings()
    if url is None:
        url = settings.database_url
    if echo is None:
        echo = settings.database_echo

    if not _is_sqlite(url):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    engine = create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _configure_sqlite_wal)
    return engine


_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Sessions for ``engine`` that keep loaded rows usable after commit."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine | None = None, *, seed: bool = False) -> None:
    """Create any missing tables, optionally loading the bundled catalog.

    Args:
        engine: Target engine; the process-wide one when omitted
        seed: Insert the default unit and building rows that are not present yet
    """
    target = engine if engine is not None else get_engine()
    Base.metadata.create_all(bind=target)
    if not seed:
        return
    with Session(target) as session:
        seed_all_catalog_data(session)


def check_database_health(engine: Engine | None = None) -> bool:
    """Run a trivial query; False if the database cannot be reached."""
    target = engine if engine is not None else get_engine()
    try:
        with target.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return False
    return True


def get_table_names(engine: Engine | None = None) -> list[str]:
    """Names of the tables that currently exist in the database."""
    target = engine if engine is not None else get_engine()
    return inspect(target).get_table_names()
