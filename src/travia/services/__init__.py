"""Service layer for the Travia simulation.

The tick service drives the pure rules in ``travia.domain`` over a world store
(see ``travia.interfaces.store``):

    - SimulationEngine: loads due villages, jobs and movements, resolves them
      and persists every entity as its own unit of work

Production Usage:
    from travia.factory import create_simulation_engine
    engine = create_simulation_engine()
    report = engine.tick(now)

Testing Usage:
    from travia.repository import InMemoryWorldStore
    from travia.services import SimulationEngine

    engine = SimulationEngine(InMemoryWorldStore(), max_workers=1)
"""

from travia.services.tick_service import SimulationEngine, TickError, TickReport

__all__ = ["SimulationEngine", "TickError", "TickReport"]
