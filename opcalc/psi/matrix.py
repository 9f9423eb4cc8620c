"""Path matrices used by the operator-calculus path search.

A :class:`PathMatrix` is a square grid indexed by vertex position. Cell
``(i, j)`` is a bag of path records, every distinct feasible path of the
current hop length from vertex ``i`` to vertex ``j``. The matrix built from
graph adjacency (hop length 1) is the fixed "base" matrix.

Cells own their records: clearing a cell (or the matrix) releases the records
back to the pool they came from.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Tuple

from opcalc.errors import InvalidDimension, UnknownHandle
from opcalc.logging import get_logger
from opcalc.psi.pool import PathRecordPool
from opcalc.psi.record import PathRecord, PathValue
from opcalc.types import GraphStore, VertexId

logger = get_logger(__name__)

ZERO_CELL = " -- zero -- "


class MatrixCell:
    """Bag of path records for one ordered vertex pair."""

    __slots__ = ("_pool", "_records")

    def __init__(self, pool: PathRecordPool) -> None:
        self._pool = pool
        self._records: List[PathRecord] = []

    def add(self, record: PathRecord) -> None:
        """Take ownership of ``record``.

        Raises:
            ValueError: If ``record`` is zero.
            UnknownHandle: If ``record`` was not issued by the cell's pool.
        """
        if record.is_zero:
            raise ValueError("Cannot add a zero record to a matrix cell")
        if not self._pool.owns(record):
            raise UnknownHandle("Record was not allocated from this matrix's pool")
        self._records.append(record)

    def extend(self, records: Iterable[PathRecord]) -> None:
        for record in records:
            self.add(record)

    def clear(self) -> None:
        """Release every owned record; the cell becomes zero."""
        records, self._records = self._records, []
        self._pool.release_all(records)

    def is_zero(self) -> bool:
        return not self._records

    def records(self) -> Tuple[PathRecord, ...]:
        """Read-only view of the owned records, in insertion order."""
        return tuple(self._records)

    def values(self) -> List[PathValue]:
        return [record.value() for record in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[PathRecord]:
        return iter(self._records)

    def __str__(self) -> str:
        if not self._records:
            return ZERO_CELL
        return " + ".join(str(record) for record in self._records)


class PathMatrix:
    """Square matrix of :class:`MatrixCell` with fixed size and weight dimension.

    Attributes:
        size: Side length (the vertex count of the graph).
        weight_dim: Weight dimension shared by every record.
        pool: Pool supplying and reclaiming the records.
        vertices: Vertex labels per index once built from a graph, else empty.
    """

    def __init__(self, size: int, weight_dim: int, pool: PathRecordPool) -> None:
        """Create an all-zero matrix.

        Raises:
            InvalidDimension: If ``size`` or ``weight_dim`` is less than 1, or
                ``weight_dim`` differs from the pool's record geometry.
        """
        if size < 1:
            raise InvalidDimension(f"Matrix size must be at least 1, got {size}")
        if weight_dim < 1:
            raise InvalidDimension(
                f"Weight dimension must be at least 1, got {weight_dim}"
            )
        if weight_dim != pool.weight_dim:
            raise InvalidDimension(
                f"Matrix weight dimension {weight_dim} does not match "
                f"pool weight dimension {pool.weight_dim}"
            )
        self.size = size
        self.weight_dim = weight_dim
        self.pool = pool
        self.vertices: Tuple[VertexId, ...] = ()
        self._cells: List[List[MatrixCell]] = [
            [MatrixCell(pool) for _ in range(size)] for _ in range(size)
        ]

    @classmethod
    def from_graph(cls, graph: GraphStore, pool: PathRecordPool) -> PathMatrix:
        """Build the base (adjacency) matrix of ``graph``."""
        matrix = cls(graph.vertex_count(), graph.weight_dimension(), pool)
        matrix.build_from_graph(graph)
        return matrix

    def cell(self, row: int, col: int) -> MatrixCell:
        return self._cells[row][col]

    def __getitem__(self, index: Tuple[int, int]) -> MatrixCell:
        row, col = index
        return self._cells[row][col]

    def build_from_graph(self, graph: GraphStore) -> None:
        """Fill the matrix from graph adjacency.

        Cell ``(i, j)`` receives the single record ``[v_i, v_j]`` carrying the
        edge weight when the edge exists; every other cell is zero. Existing
        content is released first.

        Raises:
            InvalidDimension: If the graph's vertex count or weight dimension
                does not match the matrix.
            ResourceExhausted: If the pool cannot hold one record per edge;
                records placed so far are released.
        """
        if graph.vertex_count() != self.size:
            raise InvalidDimension(
                f"Graph has {graph.vertex_count()} vertices, matrix size is {self.size}"
            )
        if graph.weight_dimension() != self.weight_dim:
            raise InvalidDimension(
                f"Graph weight dimension {graph.weight_dimension()} does not match "
                f"matrix weight dimension {self.weight_dim}"
            )
        self.clear()
        self.vertices = tuple(graph.vertex_at(i) for i in range(self.size))

        edges = 0
        try:
            for row, src in enumerate(self.vertices):
                for col, dst in enumerate(self.vertices):
                    weight = graph.edge_weight(src, dst)
                    if weight is None:
                        continue
                    record = self.pool.acquire()
                    try:
                        record.set_path((src, dst), weight)
                    except ValueError:
                        self.pool.release(record)
                        raise
                    self._cells[row][col].add(record)
                    edges += 1
        except Exception:
            self.clear()
            raise
        logger.debug("Built %dx%d base matrix with %d edges", self.size, self.size, edges)

    def deep_clone(self, target: Optional[PathMatrix] = None) -> PathMatrix:
        """Copy every record into ``target`` (a new matrix by default).

        The copies are fresh pool records, so clearing or mutating either
        matrix never affects the other.

        Raises:
            InvalidDimension: If ``target`` has a different size or weight
                dimension.
            ResourceExhausted: If the pool runs out; ``target`` is cleared.
        """
        if target is None:
            target = PathMatrix(self.size, self.weight_dim, self.pool)
        else:
            if target.size != self.size:
                raise InvalidDimension(
                    "Cannot clone between path matrices with different sizes "
                    f"(src={self.size}, dst={target.size})"
                )
            if target.weight_dim != self.weight_dim:
                raise InvalidDimension(
                    "Cannot clone between path matrices with different weight "
                    f"dimensions (src={self.weight_dim}, dst={target.weight_dim})"
                )
            target.clear()

        target.vertices = self.vertices
        try:
            for row in range(self.size):
                for col in range(self.size):
                    dst_cell = target._cells[row][col]
                    for record in self._cells[row][col]:
                        dst_cell.add(target.pool.acquire_copy(record))
        except Exception:
            target.clear()
            raise
        return target

    def is_zero(self) -> bool:
        """True if every cell is zero."""
        return all(cell.is_zero() for row in self._cells for cell in row)

    def clear(self) -> None:
        """Release every record of every cell."""
        for row in self._cells:
            for cell in row:
                cell.clear()

    def record_count(self) -> int:
        return sum(len(cell) for row in self._cells for cell in row)

    def iter_records(self) -> Iterator[Tuple[int, int, PathRecord]]:
        """Yield ``(row, col, record)`` for every record, row-major."""
        for row_idx, row in enumerate(self._cells):
            for col_idx, cell in enumerate(row):
                for record in cell:
                    yield row_idx, col_idx, record

    def label(self, index: int) -> VertexId:
        return self.vertices[index] if self.vertices else index

    def to_values(self) -> List[List[List[PathValue]]]:
        """Nested ``[row][col]`` lists of record snapshots."""
        return [[cell.values() for cell in row] for row in self._cells]

    def __str__(self) -> str:
        lines = [
            f"Path matrix {self.size}x{self.size} (weight dimension = {self.weight_dim}):",
            "=" * 20,
        ]
        for row in self._cells:
            lines.append("\t".join(str(cell) for cell in row))
        return "\n".join(lines) + "\n"

    def __repr__(self) -> str:
        return (
            f"PathMatrix(size={self.size}, weight_dim={self.weight_dim}, "
            f"records={self.record_count()})"
        )
