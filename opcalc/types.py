"""Shared type aliases and the graph collaborator protocol."""

from __future__ import annotations

from typing import Hashable, Optional, Protocol, Sequence, Tuple, runtime_checkable

#: Graph-unique vertex identifier (usually a string read from an edge list).
VertexId = Hashable

#: Fixed-length sequence of non-negative reals, one entry per weight dimension.
WeightVector = Sequence[float]

#: Immutable form of a weight vector as reported in results.
WeightTuple = Tuple[float, ...]


@runtime_checkable
class GraphStore(Protocol):
    """Read-only view of a graph needed to build a base path matrix.

    Vertices are addressed by a dense index ``0 .. vertex_count() - 1``;
    that index is the row/column of the vertex in a path matrix.
    """

    def vertex_count(self) -> int: ...

    def weight_dimension(self) -> int: ...

    def vertex_at(self, index: int) -> VertexId: ...

    def edge_weight(self, src: VertexId, dst: VertexId) -> Optional[WeightTuple]: ...
