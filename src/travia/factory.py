"""Engine factory for Travia.

This module wires the simulation engine to its production dependencies: the
configured database, the SQL world store and the rules derived from settings.

For testing, build ``SimulationEngine`` directly around an
``InMemoryWorldStore`` instead.

Example:
    from travia.factory import create_simulation_engine
    engine = create_simulation_engine()
    report = engine.tick(datetime.now(UTC))
"""

from travia.config import Settings, get_settings
from travia.database import create_db_engine, create_session_factory, init_db
from travia.repository import SqlWorldStore
from travia.services.tick_service import SimulationEngine


def create_world_store(
    database_url: str | None = None,
    *,
    settings: Settings | None = None,
    seed: bool = False,
) -> SqlWorldStore:
    """Create a SQL world store, creating the schema if needed.

    Args:
        database_url: Overrides the configured database URL
        settings: Settings to read defaults from
        seed: Fill empty catalog tables with the bundled reference data

    Returns:
        SqlWorldStore bound to a fresh engine
    """
    settings = settings or get_settings()
    engine = create_db_engine(
        database_url or settings.database_url, echo=settings.database_echo
    )
    init_db(engine, seed=seed)
    return SqlWorldStore(create_session_factory(engine))


def create_simulation_engine(
    database_url: str | None = None,
    *,
    settings: Settings | None = None,
    seed: bool = False,
) -> SimulationEngine:
    """Create a SimulationEngine backed by the SQL world store.

    Args:
        database_url: Overrides the configured database URL
        settings: Settings to read defaults from
        seed: Fill empty catalog tables with the bundled reference data

    Returns:
        SimulationEngine configured from settings
    """
    settings = settings or get_settings()
    store = create_world_store(database_url, settings=settings, seed=seed)
    return SimulationEngine.from_settings(store, settings)
