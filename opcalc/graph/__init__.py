"""Graph collaborator: the strict weighted digraph the path matrices are built from."""

from opcalc.graph.weighted_digraph import WEIGHT_ATTR, StrictWeightedDiGraph

__all__ = ["StrictWeightedDiGraph", "WEIGHT_ATTR"]
