"""Path demands: a source, a destination and per-dimension weight bounds."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict

from opcalc.types import VertexId, WeightTuple, WeightVector


@dataclass(frozen=True)
class Demand:
    """Request for every simple path from ``source`` to ``destination``.

    Attributes:
        source: Vertex every reported path starts from.
        destination: Vertex every reported path ends at.
        constraints: Inclusive upper bound on the cumulative weight, one entry
            per weight dimension. ``inf`` leaves a dimension unbounded.
    """

    source: VertexId
    destination: VertexId
    constraints: WeightTuple

    def __post_init__(self) -> None:
        values = tuple(float(c) for c in self.constraints)
        if not values:
            raise ValueError("A demand needs at least one constraint")
        for value in values:
            if math.isnan(value) or value < 0:
                raise ValueError(
                    f"Constraints must be non-negative numbers, got {self.constraints}"
                )
        object.__setattr__(self, "constraints", values)

    @property
    def dimension(self) -> int:
        return len(self.constraints)

    def accepts(self, weight: WeightVector) -> bool:
        """True if ``weight`` is within the bound in every dimension (equality passes).

        Raises:
            ValueError: If ``weight`` has a different dimension.
        """
        if len(weight) != self.dimension:
            raise ValueError(
                f"Weight dimension {len(weight)} does not match demand "
                f"dimension {self.dimension}"
            )
        return all(bound >= w for bound, w in zip(self.constraints, weight))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "destination": self.destination,
            "constraints": list(self.constraints),
        }

    def __str__(self) -> str:
        bounds = ", ".join(f"{c:g}" for c in self.constraints)
        return f"Demand: [{self.source} -> {self.destination}] [{bounds}]"
