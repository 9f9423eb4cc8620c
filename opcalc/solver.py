"""High-level entry points: enumerate constrained paths for one or many demands.

The base matrix of a graph is built once and shared read-only by every run.
A failing run (pool exhausted, cancelled) aborts with its error after its own
records were returned to the pool; no run is retried here. Retrying with a
larger ``capacity`` is left to the caller.
"""

from __future__ import annotations

import threading
from typing import Iterable, List, Optional

from opcalc.algorithms.offline import PathGrowthEngine, PathSearchResult
from opcalc.config import EngineConfig, PoolConfig
from opcalc.demand import Demand
from opcalc.logging import get_logger
from opcalc.psi.matrix import PathMatrix
from opcalc.psi.pool import PathRecordPool
from opcalc.types import GraphStore

logger = get_logger(__name__)


def build_pool(graph: GraphStore, capacity: Optional[int] = None) -> PathRecordPool:
    """Create a pool whose record geometry fits ``graph``.

    Args:
        graph: Graph the pool will serve.
        capacity: Number of record slots; see :meth:`PoolConfig.for_graph` for
            the default.
    """
    return PathRecordPool.from_config(PoolConfig.for_graph(graph, capacity))


def _check_demand(graph: GraphStore, demand: Demand) -> None:
    vertices = {graph.vertex_at(i) for i in range(graph.vertex_count())}
    for role, vertex in (("source", demand.source), ("destination", demand.destination)):
        if vertex not in vertices:
            raise ValueError(f"Demand {role} '{vertex}' is not a vertex of the graph")


def enumerate_paths(
    graph: GraphStore,
    demand: Demand,
    *,
    pool: Optional[PathRecordPool] = None,
    base: Optional[PathMatrix] = None,
    config: Optional[EngineConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> PathSearchResult:
    """Enumerate every feasible simple path for a single demand.

    Args:
        graph: Graph to search.
        demand: Source, destination and constraints.
        pool: Record pool; one sized for ``graph`` is created when omitted.
        base: Prebuilt base matrix of ``graph``; built from ``pool`` when omitted
            and released again before returning.
        config: Engine options.
        cancel_event: Event that stops the run when set.

    Returns:
        The run's result.

    Raises:
        ValueError: If the demand's vertices are not in the graph.
        InvalidDimension: If dimensions of demand, graph and pool disagree.
        ResourceExhausted: If the pool is too small for the run.
        ComputationCancelled: If the deadline passed or the event was set.
    """
    _check_demand(graph, demand)
    if pool is None:
        pool = base.pool if base is not None else build_pool(graph)

    owns_base = base is None
    if base is None:
        base = PathMatrix.from_graph(graph, pool)
    try:
        engine = PathGrowthEngine(
            base, demand, pool=pool, config=config, cancel_event=cancel_event
        )
        result = engine.run()
    finally:
        if owns_base:
            base.clear()

    logger.info(
        "%s: %d path(s) found in %d iteration(s)%s",
        demand,
        len(result.paths),
        result.iterations,
        " (saturated)" if result.saturated else "",
    )
    return result


def solve_demands(
    graph: GraphStore,
    demands: Iterable[Demand],
    *,
    capacity: Optional[int] = None,
    config: Optional[EngineConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[PathSearchResult]:
    """Run the engine once per demand against a shared base matrix.

    Args:
        graph: Graph to search.
        demands: Demands, processed in order.
        capacity: Pool capacity; defaults to the graph-derived size.
        config: Engine options applied to every run.
        cancel_event: Event that stops the current run when set.

    Returns:
        One result per demand, in input order.
    """
    demand_list = list(demands)
    for demand in demand_list:
        _check_demand(graph, demand)

    pool = build_pool(graph, capacity)
    base = PathMatrix.from_graph(graph, pool)
    logger.info(
        "Solving %d demand(s) on %d vertices (pool capacity %d)",
        len(demand_list),
        graph.vertex_count(),
        pool.capacity,
    )
    try:
        return [
            enumerate_paths(
                graph,
                demand,
                pool=pool,
                base=base,
                config=config,
                cancel_event=cancel_event,
            )
            for demand in demand_list
        ]
    finally:
        base.clear()
