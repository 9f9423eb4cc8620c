"""Offline multi-constrained path enumeration by operator calculus.

Paths of hop length ``k`` are held in a :class:`~opcalc.psi.PathMatrix`.
Multiplying that "work" matrix by the fixed base (adjacency) matrix yields
the paths of hop length ``k + 1``: the product of two cells is the set of
concatenations of their records, and the sum over the intermediate vertex is
the union of those sets. Only candidates rooted at the demand source, simple
(cycle-free) and within the demand's constraints survive. Iteration stops when
a product is entirely zero (saturation) or after ``size - 1`` products, since
a simple path visits at most ``size`` vertices.

Example:
    pool = PathRecordPool.from_config(PoolConfig.for_graph(graph))
    base = PathMatrix.from_graph(graph, pool)
    for found in PathGrowthEngine(base, Demand("A", "C", (5,))).iter_paths():
        print(found.nodes, found.weight)
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from opcalc.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from opcalc.demand import Demand
from opcalc.errors import ComputationCancelled, InvalidDimension
from opcalc.logging import get_logger
from opcalc.psi.matrix import PathMatrix
from opcalc.psi.pool import PathRecordPool
from opcalc.psi.record import PathRecord
from opcalc.types import VertexId, WeightTuple

logger = get_logger(__name__)


def concatenate(
    left: PathRecord,
    right: PathRecord,
    constraints: np.ndarray,
    source: VertexId,
    pool: PathRecordPool,
    scratch: Optional[np.ndarray] = None,
) -> Optional[PathRecord]:
    """Concatenate ``left`` and ``right`` if the result is a feasible path.

    The candidate is accepted only if neither record is zero, ``left`` starts
    at ``source``, ``left`` ends where ``right`` starts, no vertex of
    ``right`` after the junction already occurs on ``left``, and the summed
    weight is at most ``constraints`` in every dimension.

    Args:
        left: Path of the work matrix.
        right: Path of the base matrix.
        constraints: Inclusive per-dimension weight bound.
        source: Vertex every grown path must start from.
        pool: Pool the accepted record is acquired from.
        scratch: Optional buffer of the weight dimension reused for the sum.

    Returns:
        A new record owned by the caller, or ``None`` if the pair is rejected.

    Raises:
        ResourceExhausted: If the candidate is feasible but ``pool`` is full.
    """
    if left.is_zero or right.is_zero:
        return None
    left_nodes = left.nodes
    if left_nodes[0] != source:
        return None
    right_nodes = right.nodes
    if left_nodes[-1] != right_nodes[0]:
        return None

    tail = right_nodes[1:]
    seen = set(left_nodes)
    for node in tail:
        if node in seen:
            return None
        seen.add(node)

    if scratch is None:
        scratch = np.empty(constraints.shape, dtype=np.float64)
    np.add(left.weight_view, right.weight_view, out=scratch)
    if not np.all(scratch <= constraints):
        return None

    record = pool.acquire()
    try:
        record.set_path(left_nodes + tail, scratch)
    except Exception:
        pool.release(record)
        raise
    return record


@dataclass(frozen=True)
class FoundPath:
    """A feasible simple path reaching the demand destination.

    Attributes:
        nodes: Vertices of the path, source first.
        weight: Cumulative weight of the path.
        iteration: Growth iteration that produced the path (0 for a direct
            edge, ``k`` for a path of ``k + 1`` hops).
        row: Matrix row of the cell holding the path.
        col: Matrix column of the cell holding the path.
        seq: Discovery order inside the cell.
    """

    nodes: Tuple[VertexId, ...]
    weight: WeightTuple
    iteration: int
    row: int = field(default=0, compare=False)
    col: int = field(default=0, compare=False)
    seq: int = field(default=0, compare=False)

    @property
    def hops(self) -> int:
        return len(self.nodes) - 1

    @property
    def sort_key(self) -> Tuple[int, int, int, int]:
        return (self.iteration, self.row, self.col, self.seq)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": list(self.nodes),
            "weight": list(self.weight),
            "hops": self.hops,
            "iteration": self.iteration,
        }

    def __str__(self) -> str:
        weight = ";".join(f"{w:g}" for w in self.weight)
        return f"({weight})[{'->'.join(str(n) for n in self.nodes)}]"


@dataclass
class RunStats:
    """Counters collected while a run progresses."""

    iterations: int = 0
    saturated: bool = False
    records_per_iteration: List[int] = field(default_factory=list)
    found: int = 0
    elapsed: float = 0.0


@dataclass
class PathSearchResult:
    """Outcome of one engine run for one demand.

    Attributes:
        demand: The demand that was searched.
        paths: Found paths in iteration order, sorted by cell within an iteration.
        iterations: Number of matrix products computed.
        saturated: True if the run stopped because a product was entirely zero.
        records_per_iteration: Number of live paths after each product.
        elapsed: Wall-clock duration of the run in seconds.
    """

    demand: Demand
    paths: List[FoundPath]
    iterations: int
    saturated: bool
    records_per_iteration: List[int] = field(default_factory=list)
    elapsed: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "demand": self.demand.to_dict(),
            "paths": [p.to_dict() for p in self.paths],
            "iterations": self.iterations,
            "saturated": self.saturated,
            "records_per_iteration": list(self.records_per_iteration),
            "elapsed": self.elapsed,
        }


class PathGrowthEngine:
    """Grows paths of increasing hop length until saturation.

    The base matrix is only read, so one base matrix can serve many engines,
    sequentially or concurrently. Work and destination matrices take their
    records from ``pool`` (the base matrix's pool by default) and are released
    when the run ends, however it ends.

    Attributes:
        base: Fixed adjacency matrix (hop length 1).
        demand: Source, destination and constraints of the run.
        pool: Pool used for work and destination records.
        config: Engine options.
        stats: Counters of the current or finished run.
    """

    def __init__(
        self,
        base: PathMatrix,
        demand: Demand,
        pool: Optional[PathRecordPool] = None,
        config: Optional[EngineConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Prepare a run.

        Args:
            base: Base matrix built from the graph.
            demand: Demand to enumerate paths for.
            pool: Pool for the run's records; defaults to ``base.pool``.
            config: Engine options; defaults to a serial run without deadline.
            cancel_event: Event that stops the run when set.

        Raises:
            InvalidDimension: If the demand's constraint dimension differs from
                the base matrix weight dimension, or the pool's records cannot
                hold the longest possible path.
        """
        self.base = base
        self.demand = demand
        self.pool = pool if pool is not None else base.pool
        self.config = config if config is not None else DEFAULT_ENGINE_CONFIG
        self.cancel_event = cancel_event
        self.stats = RunStats()

        if demand.dimension != base.weight_dim:
            raise InvalidDimension(
                f"Demand has {demand.dimension} constraints, "
                f"graph weight dimension is {base.weight_dim}"
            )
        if self.pool.weight_dim != base.weight_dim:
            raise InvalidDimension(
                f"Pool weight dimension {self.pool.weight_dim} does not match "
                f"base matrix weight dimension {base.weight_dim}"
            )
        self._max_iterations = base.size - 1
        if self.config.hop_limit is not None:
            self._max_iterations = min(self._max_iterations, self.config.hop_limit - 1)
        longest = min(self._max_iterations + 2, base.size)
        if self.pool.max_hops < longest:
            raise InvalidDimension(
                f"Pool records hold {self.pool.max_hops} vertices, paths may "
                f"need {longest}"
            )

        self._constraints = np.asarray(demand.constraints, dtype=np.float64)
        self._started = False
        self._deadline_at: Optional[float] = None

    def iter_paths(self) -> Iterator[FoundPath]:
        """Return the lazy sequence of found paths.

        Paths of one iteration are yielded once that iteration is complete.
        The sequence is finite and cannot be restarted.

        Raises:
            RuntimeError: If the engine was already started.
        """
        if self._started:
            raise RuntimeError("PathGrowthEngine runs cannot be restarted")
        self._started = True
        return self._grow()

    def run(self) -> PathSearchResult:
        """Run to saturation or the hop bound and collect every found path."""
        paths = list(self.iter_paths())
        return PathSearchResult(
            demand=self.demand,
            paths=paths,
            iterations=self.stats.iterations,
            saturated=self.stats.saturated,
            records_per_iteration=list(self.stats.records_per_iteration),
            elapsed=self.stats.elapsed,
        )

    #
    # Growth loop
    #
    def _grow(self) -> Iterator[FoundPath]:
        started = time.monotonic()
        if self.config.deadline is not None:
            self._deadline_at = started + self.config.deadline

        workers = self.config.workers
        executor = ThreadPoolExecutor(max_workers=workers) if workers > 1 else None
        work: Optional[PathMatrix] = None
        dest: Optional[PathMatrix] = None
        try:
            if self.config.include_direct:
                for found in self._direct_paths():
                    self.stats.found += 1
                    yield found

            work = self.base.deep_clone(self._new_matrix())
            iteration = 1
            while iteration <= self._max_iterations:
                self._check_cancelled()
                logger.debug(
                    "Performing iteration (matrix multiplication) %d of at most %d",
                    iteration,
                    self._max_iterations,
                )
                dest = self._new_matrix()
                found_paths = self._multiply(work, dest, iteration, executor)

                live = dest.record_count()
                self.stats.iterations = iteration
                self.stats.records_per_iteration.append(live)
                if live == 0:
                    logger.debug(
                        "Obtained a zero matrix at iteration %d: stopping", iteration
                    )
                    self.stats.saturated = True
                    dest = None
                    break

                work.clear()
                work, dest = dest, None
                self.stats.found += len(found_paths)
                for found in found_paths:
                    yield found
                iteration += 1
        finally:
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)
            if dest is not None:
                dest.clear()
            if work is not None:
                work.clear()
            self.stats.elapsed = time.monotonic() - started
            logger.debug(
                "Run %s finished: %d iterations, %d paths found, pool high water %d",
                self.demand,
                self.stats.iterations,
                self.stats.found,
                self.pool.high_water,
            )

    def _new_matrix(self) -> PathMatrix:
        matrix = PathMatrix(self.base.size, self.base.weight_dim, self.pool)
        matrix.vertices = self.base.vertices
        return matrix

    def _direct_paths(self) -> List[FoundPath]:
        source, destination = self.demand.source, self.demand.destination
        found: List[FoundPath] = []
        for row, col, record in self.base.iter_records():
            if record.origin != source or record.terminus != destination:
                continue
            if np.all(record.weight_view <= self._constraints):
                found.append(
                    FoundPath(record.nodes, record.weight, 0, row, col, len(found))  # type: ignore[arg-type]
                )
        return found

    def _multiply(
        self,
        work: PathMatrix,
        dest: PathMatrix,
        iteration: int,
        executor: Optional[ThreadPoolExecutor],
    ) -> List[FoundPath]:
        """Compute ``dest = work x base`` cell by cell; return the found paths."""
        size = self.base.size
        cells = [(row, col) for row in range(size) for col in range(size)]

        if executor is None:
            found: List[FoundPath] = []
            for row, col in cells:
                found.extend(self._grow_cell(work, dest, row, col, iteration))
            return found

        futures = [
            executor.submit(self._grow_cell, work, dest, row, col, iteration)
            for row, col in cells
        ]
        _, pending = wait(futures, return_when=FIRST_EXCEPTION)
        if pending:
            for future in pending:
                future.cancel()
            wait(pending)
        for future in futures:
            if not future.cancelled() and future.exception() is not None:
                raise future.exception()  # type: ignore[misc]

        found = [path for future in futures for path in future.result()]
        found.sort(key=attrgetter("sort_key"))
        return found

    def _grow_cell(
        self,
        work: PathMatrix,
        dest: PathMatrix,
        row: int,
        col: int,
        iteration: int,
    ) -> List[FoundPath]:
        """Fill ``dest[row, col]``; only this cell of ``dest`` is written."""
        self._check_cancelled()
        source = self.demand.source
        scratch = np.empty(self.base.weight_dim, dtype=np.float64)
        accepted: List[PathRecord] = []
        try:
            for mid in range(self.base.size):
                right_cell = self.base.cell(mid, col)
                if right_cell.is_zero():
                    continue
                lefts = [rec for rec in work.cell(row, mid) if rec.origin == source]
                for left in lefts:
                    for right in right_cell:
                        record = concatenate(
                            left, right, self._constraints, source, self.pool, scratch
                        )
                        if record is not None:
                            accepted.append(record)
        except BaseException:
            self.pool.release_all(accepted)
            raise
        dest.cell(row, col).extend(accepted)

        destination = self.demand.destination
        found: List[FoundPath] = []
        for record in accepted:
            if record.terminus == destination:
                path = FoundPath(
                    record.nodes, record.weight, iteration, row, col, len(found)  # type: ignore[arg-type]
                )
                logger.debug("Path found %s", path)
                found.append(path)
        return found

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ComputationCancelled(f"Run for {self.demand} was cancelled")
        if self._deadline_at is not None and time.monotonic() > self._deadline_at:
            raise ComputationCancelled(
                f"Run for {self.demand} exceeded its deadline of "
                f"{self.config.deadline} s"
            )
