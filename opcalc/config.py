"""Configuration classes for opcalc components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from opcalc.errors import InvalidDimension
from opcalc.types import GraphStore

#: Pool capacity floor used when sizing a pool from a small graph.
DEFAULT_POOL_CAPACITY = 100

#: Geometry used by a pool built without explicit arguments.
DEFAULT_WEIGHT_DIMENSION = 3
DEFAULT_MAX_HOPS = 10


@dataclass(frozen=True)
class PoolConfig:
    """Geometry and capacity of a path record pool.

    Attributes:
        max_hops: Maximum number of vertices a record can hold. A simple path
            never visits more vertices than the graph has, so this is normally
            the graph's vertex count.
        weight_dim: Number of weight dimensions of every record.
        capacity: Number of record slots; the hard ceiling on live records.
    """

    max_hops: int = DEFAULT_MAX_HOPS
    weight_dim: int = DEFAULT_WEIGHT_DIMENSION
    capacity: int = DEFAULT_MAX_HOPS**3

    def __post_init__(self) -> None:
        for name in ("max_hops", "weight_dim", "capacity"):
            value = getattr(self, name)
            if value < 1:
                raise InvalidDimension(f"{name} must be at least 1, got {value}")

    @classmethod
    def for_graph(
        cls, graph: GraphStore, capacity: Optional[int] = None
    ) -> PoolConfig:
        """Size a pool for ``graph``.

        The default capacity is the cube of the vertex count (one growth step
        touches N^3 cell pairs), never less than ``DEFAULT_POOL_CAPACITY``.
        """
        n = graph.vertex_count()
        if capacity is None:
            capacity = max(n**3, DEFAULT_POOL_CAPACITY)
        return cls(max_hops=n, weight_dim=graph.weight_dimension(), capacity=capacity)


@dataclass(frozen=True)
class EngineConfig:
    """Run-time options of the path growth engine.

    Attributes:
        workers: Threads used to compute the cells of one iteration; 1 runs
            serially.
        deadline: Wall-clock budget of a run in seconds, checked at every
            iteration and cell.
        hop_limit: Optional cap on path length in hops, below the default of
            ``size - 1``.
        include_direct: Also report a direct source-to-destination edge as a
            1-hop path.
    """

    workers: int = 1
    deadline: Optional[float] = None
    hop_limit: Optional[int] = None
    include_direct: bool = False

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.deadline is not None and self.deadline <= 0:
            raise ValueError(f"deadline must be positive, got {self.deadline}")
        if self.hop_limit is not None and self.hop_limit < 1:
            raise ValueError(f"hop_limit must be at least 1, got {self.hop_limit}")


DEFAULT_ENGINE_CONFIG = EngineConfig()
