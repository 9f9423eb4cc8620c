"""opcalc: multi-constrained path enumeration by operator calculus.

opcalc enumerates, offline, every simple path between a source and a
destination of a directed graph whose edges carry multi-dimensional
non-negative weights, keeping only paths whose cumulative weight stays within
a per-dimension bound. Paths of increasing hop length are grown by
multiplying path matrices.

Primary API:
    solve_demands() - Enumerate paths for a list of demands on one graph
    enumerate_paths() - Enumerate paths for a single demand
    PathGrowthEngine - The iterative matrix growth algorithm
    PathMatrix, PathRecordPool - Path matrices and their record pool
    StrictWeightedDiGraph, Demand - Inputs

Example:
    from opcalc import Demand, StrictWeightedDiGraph, enumerate_paths

    g = StrictWeightedDiGraph()
    g.add_nodes_from(["A", "B", "C"])
    g.add_edge("A", "B", (1.0,))
    g.add_edge("B", "C", (1.0,))

    result = enumerate_paths(g, Demand("A", "C", (5.0,)))
    [p.nodes for p in result.paths]  # [("A", "B", "C")]
"""

from __future__ import annotations

from opcalc import logging
from opcalc._version import __version__
from opcalc.algorithms import FoundPath, PathGrowthEngine, PathSearchResult
from opcalc.config import EngineConfig, PoolConfig
from opcalc.demand import Demand
from opcalc.errors import (
    ComputationCancelled,
    InvalidDimension,
    MalformedInput,
    OpCalcError,
    ResourceExhausted,
    UnknownHandle,
)
from opcalc.graph import StrictWeightedDiGraph
from opcalc.io import edgelist_to_graph, lines_to_demands, load_demands, load_graph
from opcalc.psi import MatrixCell, PathMatrix, PathRecord, PathRecordPool, PathValue
from opcalc.solver import build_pool, enumerate_paths, solve_demands

__all__ = [
    "__version__",
    # Inputs
    "StrictWeightedDiGraph",
    "Demand",
    "edgelist_to_graph",
    "lines_to_demands",
    "load_graph",
    "load_demands",
    # Core
    "PathRecord",
    "PathValue",
    "PathRecordPool",
    "MatrixCell",
    "PathMatrix",
    "PathGrowthEngine",
    "FoundPath",
    "PathSearchResult",
    # Entry points
    "build_pool",
    "enumerate_paths",
    "solve_demands",
    # Configuration
    "PoolConfig",
    "EngineConfig",
    # Errors
    "OpCalcError",
    "InvalidDimension",
    "ResourceExhausted",
    "UnknownHandle",
    "MalformedInput",
    "ComputationCancelled",
    # Utilities
    "logging",
]
