"""Bundled catalog rows for a fresh database.

The rows come from :mod:`travia.domain.catalog`, so the in-memory default
catalog and a seeded database always agree.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from travia.domain.catalog import DEFAULT_BUILDING_ROWS, DEFAULT_UNIT_ROWS

from .catalog import BuildingType, UnitType


def _is_empty(session: Session, model: type) -> bool:
    return session.scalars(select(model).limit(1)).first() is None


def seed_unit_types(session: Session) -> None:
    """Insert the default unit rows into an empty ``unit_types`` table."""
    if _is_empty(session, UnitType):
        session.add_all(UnitType(**row) for row in DEFAULT_UNIT_ROWS)
        session.flush()


def seed_building_types(session: Session) -> None:
    """Insert the default building rows into an empty ``building_types`` table.

    Rows without a ``production`` entry get an empty mapping.
    """
    if _is_empty(session, BuildingType):
        session.add_all(BuildingType(**{"production": {}, **row}) for row in DEFAULT_BUILDING_ROWS)
        session.flush()


def seed_all_catalog_data(session: Session) -> None:
    """Seed both catalog tables and commit. Safe to call repeatedly."""
    seed_unit_types(session)
    seed_building_types(session)
    session.commit()
