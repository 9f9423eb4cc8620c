"""Strict directed graph with multi-dimensional edge weights.

`StrictWeightedDiGraph` extends `networkx.DiGraph` with explicit vertex
management, at most one edge per ordered vertex pair, and a weight vector of
fixed dimension on every edge. It implements the read-only
:class:`~opcalc.types.GraphStore` protocol consumed by path matrices: vertices
get a dense index in insertion order, which becomes their row/column.
"""

from __future__ import annotations

import math
from pickle import dumps, loads
from typing import Any, Dict, Iterator, List, Optional, Tuple

import networkx as nx

from opcalc.types import VertexId, WeightTuple, WeightVector

#: Edge attribute holding the weight tuple.
WEIGHT_ATTR = "weight"

WeightedEdge = Tuple[VertexId, VertexId, WeightTuple]


class StrictWeightedDiGraph(nx.DiGraph):
    """A directed graph with strict rules and vector edge weights.

    This class enforces:
      - No automatic creation of missing vertices when adding an edge.
      - No duplicate vertices (raises ValueError on duplicates).
      - No redefinition of an existing edge and no self-loops.
      - Every edge weight is a tuple of finite, non-negative floats of the
        graph's weight dimension. The dimension is fixed at construction or
        taken from the first edge added.
      - Removing non-existent vertices or edges raises ValueError.

    Inherits from:
        networkx.DiGraph
    """

    def __init__(self, weight_dim: Optional[int] = None, **attr: Any) -> None:
        """Initialize an empty graph.

        Args:
            weight_dim: Weight dimension of every edge; inferred from the first
                edge when omitted.
            **attr: Graph attributes forwarded to networkx.

        Raises:
            ValueError: If ``weight_dim`` is less than 1.
        """
        if weight_dim is not None and weight_dim < 1:
            raise ValueError(f"Weight dimension must be at least 1, got {weight_dim}")
        super().__init__(**attr)
        self._declared_weight_dim: Optional[int] = weight_dim
        self._weight_dim: Optional[int] = weight_dim
        self._order: List[VertexId] = []
        self._index: Dict[VertexId, int] = {}

    def copy(self, as_view: bool = False, pickle: bool = True) -> StrictWeightedDiGraph:
        """Create a copy of this graph (pickle-based deep copy by default).

        With ``pickle=False`` the networkx copy is used; a view shares the
        vertex index of this graph.
        """
        if not pickle:
            graph = super().copy(as_view=as_view)
            if as_view:
                graph._order = self._order
                graph._index = self._index
            graph._declared_weight_dim = self._declared_weight_dim
            graph._weight_dim = self._weight_dim
            return graph  # type: ignore[return-value]
        return loads(dumps(self))

    def clear(self) -> None:
        """Remove every vertex and edge; an inferred weight dimension is forgotten."""
        super().clear()
        self._order.clear()
        self._index.clear()
        self._weight_dim = self._declared_weight_dim

    #
    # Vertex management
    #
    def add_node(self, node_for_adding: VertexId, **attr: Any) -> None:
        """Add a single vertex, disallowing duplicates.

        Raises:
            ValueError: If the vertex already exists in the graph.
        """
        if node_for_adding in self:
            raise ValueError(f"Vertex '{node_for_adding}' already exists in this graph.")
        super().add_node(node_for_adding, **attr)
        self._index[node_for_adding] = len(self._order)
        self._order.append(node_for_adding)

    add_vertex = add_node

    def add_nodes_from(self, nodes_for_adding: Any, **attr: Any) -> None:
        """Add vertices given as ids or ``(id, attr_dict)`` pairs."""
        for item in nodes_for_adding:
            if isinstance(item, tuple) and len(item) == 2 and isinstance(item[1], dict):
                node, data = item
                self.add_node(node, **{**attr, **data})
            else:
                self.add_node(item, **attr)

    def remove_node(self, n: VertexId) -> None:
        """Remove a vertex and its incident edges; later vertices shift down one index.

        Raises:
            ValueError: If the vertex does not exist in the graph.
        """
        if n not in self:
            raise ValueError(f"Vertex '{n}' does not exist.")
        super().remove_node(n)
        self._order.remove(n)
        self._index.clear()
        self._index.update((v, i) for i, v in enumerate(self._order))

    def remove_nodes_from(self, nodes: Any) -> None:
        for node in list(nodes):
            self.remove_node(node)

    #
    # Edge management
    #
    def add_edge(  # pyright: ignore[reportIncompatibleMethodOverride]
        self,
        u_of_edge: VertexId,
        v_of_edge: VertexId,
        weight: Optional[WeightVector] = None,
        **attr: Any,
    ) -> None:
        """Add the directed edge ``u_of_edge -> v_of_edge``.

        Args:
            u_of_edge: Source vertex. Must exist in the graph.
            v_of_edge: Target vertex. Must exist in the graph.
            weight: Weight vector of the edge.
            **attr: Additional edge attributes.

        Raises:
            ValueError: If either vertex is missing, the edge already exists,
                the edge is a self-loop, or the weight is invalid.
        """
        if u_of_edge not in self:
            raise ValueError(f"Source vertex '{u_of_edge}' does not exist.")
        if v_of_edge not in self:
            raise ValueError(f"Target vertex '{v_of_edge}' does not exist.")
        checked = self.check_edge(u_of_edge, v_of_edge, weight)
        if self._weight_dim is None:
            self._weight_dim = len(checked)
        super().add_edge(u_of_edge, v_of_edge, **{WEIGHT_ATTR: checked}, **attr)

    add_weighted_edge = add_edge

    def check_edge(
        self, u: VertexId, v: VertexId, weight: Optional[WeightVector]
    ) -> WeightTuple:
        """Validate a prospective edge ``u -> v`` without adding it.

        The vertices need not exist yet, so callers can reject an edge before
        creating its endpoints.

        Returns:
            The weight as a tuple of floats.

        Raises:
            ValueError: If the edge is a self-loop, already exists, or its
                weight is missing or invalid.
        """
        if u == v:
            raise ValueError(f"Self-loop on vertex '{u}' is not allowed.")
        if self.has_edge(u, v):
            raise ValueError(f"Edge '{u}' -> '{v}' already exists.")
        if weight is None:
            raise ValueError("Cannot create an edge without a weight.")
        return self._check_weight(weight)

    def add_edges_from(self, ebunch_to_add: Any, **attr: Any) -> None:
        """Add ``(u, v, weight)`` triples.

        A ``(u, v, data_dict)`` triple, as networkx passes when copying or
        reversing, takes its weight from ``data_dict[WEIGHT_ATTR]``.
        """
        for u, v, weight in ebunch_to_add:
            if isinstance(weight, dict):
                data = dict(weight)
                weight = data.pop(WEIGHT_ATTR, None)
                self.add_edge(u, v, weight, **{**attr, **data})
            else:
                self.add_edge(u, v, weight, **attr)

    def remove_edge(self, u: VertexId, v: VertexId) -> None:
        """Remove the edge ``u -> v``.

        Raises:
            ValueError: If the edge does not exist.
        """
        if not self.has_edge(u, v):
            raise ValueError(f"No edge from '{u}' to '{v}' to remove.")
        super().remove_edge(u, v)

    #
    # GraphStore protocol
    #
    def vertex_count(self) -> int:
        return len(self._order)

    def weight_dimension(self) -> int:
        """Weight dimension, 0 while unknown (no edge yet and none declared)."""
        return self._weight_dim or 0

    def vertex_at(self, index: int) -> VertexId:
        """Return the vertex with dense index ``index`` (insertion order).

        Raises:
            IndexError: If ``index`` is out of range.
        """
        if index < 0:
            raise IndexError(f"Vertex index {index} out of range")
        return self._order[index]

    def edge_weight(self, src: VertexId, dst: VertexId) -> Optional[WeightTuple]:
        """Weight of the edge ``src -> dst``, or ``None`` if there is no such edge."""
        data = self.succ.get(src, {}).get(dst)
        if data is None:
            return None
        return data[WEIGHT_ATTR]

    #
    # Convenience methods
    #
    def has_vertex(self, vertex: VertexId) -> bool:
        return vertex in self

    def index_of(self, vertex: VertexId) -> int:
        """Dense index of ``vertex``.

        Raises:
            ValueError: If the vertex does not exist.
        """
        try:
            return self._index[vertex]
        except KeyError:
            raise ValueError(f"Vertex '{vertex}' does not exist.") from None

    def vertices(self) -> Tuple[VertexId, ...]:
        """All vertices in index order."""
        return tuple(self._order)

    def edges_with_weights(self) -> Iterator[WeightedEdge]:
        """Yield ``(src, dst, weight)`` in vertex index order of the source."""
        for src in self._order:
            for dst, data in self.succ[src].items():
                yield src, dst, data[WEIGHT_ATTR]

    def to_dict(self) -> Dict[str, Any]:
        """Node-link dictionary suitable for JSON serialization."""
        return {
            "graph": dict(self.graph),
            "weight_dim": self.weight_dimension(),
            "nodes": [{"id": v, "attr": dict(self.nodes[v])} for v in self._order],
            "links": [
                {"source": self._index[u], "target": self._index[v], "weight": list(w)}
                for u, v, w in self.edges_with_weights()
            ],
        }

    def _check_weight(self, weight: WeightVector) -> WeightTuple:
        try:
            values = tuple(float(w) for w in weight)
        except (TypeError, ValueError):
            raise ValueError(f"Edge weight must be a sequence of numbers, got {weight!r}") from None
        if not values:
            raise ValueError("Edge weight must have at least one dimension.")
        if self._weight_dim is not None and len(values) != self._weight_dim:
            raise ValueError(
                f"Edge weight has dimension {len(values)}, graph weight "
                f"dimension is {self._weight_dim}."
            )
        for value in values:
            if not math.isfinite(value) or value < 0:
                raise ValueError(
                    f"Edge weights must be finite and non-negative, got {weight!r}"
                )
        return values
