"""Integration tests for database functionality.

Tests schema creation, SQLite pragmas, health checks and catalog seeding
against a throwaway SQLite file.
"""

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from travia.database import (
    check_database_health,
    create_db_engine,
    get_table_names,
    init_db,
)
from travia.domain.catalog import DEFAULT_BUILDING_ROWS, DEFAULT_UNIT_ROWS
from travia.models import BuildingType, UnitType, seed_all_catalog_data


@pytest.fixture
def db_engine(tmp_path):
    """Create a fresh database file with the full schema."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'travia.db'}", echo=False)
    init_db(engine)
    yield engine
    engine.dispose()


def test_all_tables_exist(db_engine):
    """Test that every world table is created."""
    tables = set(get_table_names(db_engine))

    assert {
        "villages",
        "village_resources",
        "buildings",
        "troop_stacks",
        "queue_jobs",
        "movements",
        "battles",
        "spy_reports",
        "unit_types",
        "building_types",
    } <= tables


def test_database_health(db_engine):
    """Test that a reachable database reports healthy."""
    assert check_database_health(db_engine)


def test_sqlite_pragmas_are_applied(db_engine):
    """Test that connections use WAL and enforce foreign keys."""
    with db_engine.connect() as conn:
        assert conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1


def test_seeding_is_idempotent(db_engine):
    """Test that seeding twice leaves one copy of each catalog row."""
    with Session(db_engine) as session:
        seed_all_catalog_data(session)
        seed_all_catalog_data(session)

        units = session.scalar(select(func.count()).select_from(UnitType))
        buildings = session.scalar(select(func.count()).select_from(BuildingType))

    assert units == len(DEFAULT_UNIT_ROWS)
    assert buildings == len(DEFAULT_BUILDING_ROWS)
