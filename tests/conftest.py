"""Shared graph fixtures for the path enumeration tests."""

from __future__ import annotations

from typing import Callable, Iterable, Sequence, Tuple

import pytest

from opcalc.graph import StrictWeightedDiGraph

EdgeSpec = Tuple[str, str, Sequence[float]]


def _make_graph(
    edges: Iterable[EdgeSpec], vertices: Sequence[str] = ()
) -> StrictWeightedDiGraph:
    """Build a graph; vertices are indexed in the order given, then first mention."""
    g = StrictWeightedDiGraph()
    for v in vertices:
        g.add_node(v)
    for src, dst, weight in edges:
        for v in (src, dst):
            if v not in g:
                g.add_node(v)
        g.add_edge(src, dst, weight)
    return g


@pytest.fixture
def make_graph() -> Callable[..., StrictWeightedDiGraph]:
    return _make_graph


@pytest.fixture
def chain_abc() -> StrictWeightedDiGraph:
    #     [1]      [1]
    #  A ─────► B ─────► C
    return _make_graph([("A", "B", (1,)), ("B", "C", (1,))])


@pytest.fixture
def back_and_forth() -> StrictWeightedDiGraph:
    #     [1]
    #  A ◄────► B
    #  │
    #  └──────► C
    #     [1]
    return _make_graph([("A", "B", (1,)), ("B", "A", (1,)), ("A", "C", (1,))])


@pytest.fixture
def diamond() -> StrictWeightedDiGraph:
    # Two-dimensional weights (delay, loss):
    #        [1,4]     [1,4]
    #    ┌────────► B ────────┐
    #    │                    ▼
    #    A                    D
    #    │                    ▲
    #    └────────► C ────────┘
    #        [2,1]     [2,1]
    return _make_graph(
        [
            ("A", "B", (1, 4)),
            ("A", "C", (2, 1)),
            ("B", "D", (1, 4)),
            ("C", "D", (2, 1)),
        ]
    )


@pytest.fixture
def complete4() -> StrictWeightedDiGraph:
    # Every ordered pair of A, B, C, D is an edge of weight [1].
    names = ["A", "B", "C", "D"]
    return _make_graph([(u, v, (1,)) for u in names for v in names if u != v])
