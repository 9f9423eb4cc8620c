"""Path growth algorithms over path matrices."""

from opcalc.algorithms.offline import (
    FoundPath,
    PathGrowthEngine,
    PathSearchResult,
    RunStats,
    concatenate,
)

__all__ = [
    "FoundPath",
    "PathGrowthEngine",
    "PathSearchResult",
    "RunStats",
    "concatenate",
]
