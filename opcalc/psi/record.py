"""Path records: the values held by path matrix cells.

A ``PathRecord`` is a reusable slot. It either describes one path, an ordered
sequence of vertices plus its cumulative multi-dimensional weight, or it is
"zero" (no path). Records are normally issued by a
:class:`~opcalc.psi.pool.PathRecordPool`, in which case the weight lives in a
row of the pool's numpy slab and the node buffer is preallocated to the pool's
``max_hops``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

import numpy as np

from opcalc.errors import InvalidDimension, UnknownHandle
from opcalc.types import VertexId, WeightTuple, WeightVector

if TYPE_CHECKING:
    from opcalc.psi.pool import PathRecordPool


@dataclass(frozen=True)
class PathValue:
    """Immutable snapshot of a non-zero path record.

    Attributes:
        nodes: Vertices of the path, origin first.
        weight: Cumulative weight, one entry per dimension.
    """

    nodes: Tuple[VertexId, ...]
    weight: WeightTuple

    @property
    def hops(self) -> int:
        return len(self.nodes) - 1


class PathRecord:
    """A path (or "zero") with fixed node capacity and weight dimension.

    Invariant: ``is_zero`` holds exactly when the node sequence is empty and
    the weight is undefined.
    """

    __slots__ = (
        "_pool",
        "_slot",
        "_max_hops",
        "_weight_dim",
        "_nodes",
        "_length",
        "_weight",
        "_zero",
        "_detached",
    )

    def __init__(
        self,
        max_hops: int,
        weight_dim: int,
        *,
        pool: Optional[PathRecordPool] = None,
        slot: int = -1,
        weight_row: Optional[np.ndarray] = None,
    ) -> None:
        """Create a zero record.

        Args:
            max_hops: Maximum number of vertices the record can hold.
            weight_dim: Weight dimension.
            pool: Issuing pool, if any.
            slot: Slot index inside ``pool``.
            weight_row: Storage for the weight (a row of the pool's slab).
                A private buffer is allocated when omitted.

        Raises:
            InvalidDimension: If ``max_hops`` or ``weight_dim`` is less than 1.
        """
        if max_hops < 1:
            raise InvalidDimension(f"max_hops must be at least 1, got {max_hops}")
        if weight_dim < 1:
            raise InvalidDimension(f"weight_dim must be at least 1, got {weight_dim}")
        if weight_row is None:
            weight_row = np.zeros(weight_dim, dtype=np.float64)
        elif weight_row.shape != (weight_dim,):
            raise InvalidDimension(
                f"weight storage has shape {weight_row.shape}, expected ({weight_dim},)"
            )
        self._pool = pool
        self._slot = slot
        self._max_hops = max_hops
        self._weight_dim = weight_dim
        self._nodes: list = [None] * max_hops
        self._length = 0
        self._weight = weight_row
        self._zero = True
        self._detached = False

    # Geometry and ownership

    @property
    def max_hops(self) -> int:
        return self._max_hops

    @property
    def weight_dim(self) -> int:
        return self._weight_dim

    @property
    def pool(self) -> Optional[PathRecordPool]:
        """Pool that issued this record, ``None`` for standalone or detached records."""
        return self._pool

    @property
    def slot(self) -> int:
        return self._slot

    @property
    def detached(self) -> bool:
        """True once the issuing pool was reconfigured under this record."""
        return self._detached

    # Content

    @property
    def is_zero(self) -> bool:
        return self._zero

    @property
    def nodes(self) -> Tuple[VertexId, ...]:
        """Vertices of the path; empty for a zero record."""
        return tuple(self._nodes[: self._length])

    @property
    def weight(self) -> Optional[WeightTuple]:
        """Cumulative weight, or ``None`` for a zero record."""
        if self._zero:
            return None
        return tuple(float(w) for w in self._weight)

    @property
    def weight_view(self) -> np.ndarray:
        """Read-only numpy view of the weight storage (meaningless when zero)."""
        view = self._weight.view()
        view.flags.writeable = False
        return view

    @property
    def origin(self) -> Optional[VertexId]:
        return None if self._zero else self._nodes[0]

    @property
    def terminus(self) -> Optional[VertexId]:
        return None if self._zero else self._nodes[self._length - 1]

    @property
    def hop_count(self) -> int:
        return 0 if self._zero else self._length - 1

    def __len__(self) -> int:
        return self._length

    def value(self) -> PathValue:
        """Return an immutable snapshot of this record.

        Raises:
            ValueError: If the record is zero.
        """
        if self._zero:
            raise ValueError("A zero record does not describe a path")
        return PathValue(self.nodes, self.weight)  # type: ignore[arg-type]

    # Mutation

    def set_zero(self) -> None:
        """Reset to the zero value."""
        self._check_attached()
        self._reset()

    def set_nodes(self, nodes: Iterable[VertexId]) -> None:
        """Replace the node sequence.

        Raises:
            InvalidDimension: If ``nodes`` is empty or longer than ``max_hops``.
        """
        self._check_attached()
        node_list = self._checked_nodes(nodes)
        self._write_nodes(node_list)
        self._zero = False

    def set_weight(self, weight: WeightVector) -> None:
        """Copy ``weight`` into the record's weight storage.

        Raises:
            InvalidDimension: If ``weight`` has the wrong dimension.
            ValueError: If any component is negative or not finite.
        """
        self._check_attached()
        arr = self._checked_weight(weight)
        self._weight[:] = arr
        self._zero = False

    def set_path(self, nodes: Iterable[VertexId], weight: WeightVector) -> None:
        """Set nodes and weight together; nothing is written if either is invalid."""
        self._check_attached()
        node_list = self._checked_nodes(nodes)
        arr = self._checked_weight(weight)
        self._write_nodes(node_list)
        self._weight[:] = arr
        self._zero = False

    def copy_from(self, source: PathRecord) -> None:
        """Make this record a deep copy of ``source``.

        Raises:
            InvalidDimension: If ``source`` holds more nodes than fit here or
                has a different weight dimension.
        """
        self._check_attached()
        if source.is_zero:
            self._reset()
            return
        if source._weight_dim != self._weight_dim:
            raise InvalidDimension(
                f"Bad weight dimension (is {source._weight_dim}, "
                f"should be {self._weight_dim})"
            )
        if source._length > self._max_hops:
            raise InvalidDimension(
                f"Too many nodes for the path (is {source._length}, "
                f"should be at most {self._max_hops})"
            )
        self._write_nodes(source._nodes[: source._length])
        np.copyto(self._weight, source._weight)
        self._zero = False

    # Pool hooks

    def _reset(self) -> None:
        for i in range(self._length):
            self._nodes[i] = None
        self._length = 0
        self._weight.fill(0.0)
        self._zero = True

    def _detach(self) -> None:
        """Invalidate the record; called by the pool on reconfiguration."""
        self._reset()
        self._pool = None
        self._slot = -1
        self._detached = True

    # Internals

    def _check_attached(self) -> None:
        if self._detached:
            raise UnknownHandle(
                "Record belongs to a pool configuration that no longer exists"
            )

    def _checked_nodes(self, nodes: Iterable[VertexId]) -> list:
        node_list = list(nodes)
        if not node_list:
            raise InvalidDimension("A path needs at least one node")
        if len(node_list) > self._max_hops:
            raise InvalidDimension(
                f"Too many nodes for the path (is {len(node_list)}, "
                f"should be at most {self._max_hops})"
            )
        return node_list

    def _checked_weight(self, weight: WeightVector) -> np.ndarray:
        arr = np.asarray(weight, dtype=np.float64)
        if arr.shape != (self._weight_dim,):
            raise InvalidDimension(
                f"Bad weight dimension (is {arr.size}, should be {self._weight_dim})"
            )
        if not np.all(np.isfinite(arr)) or np.any(arr < 0):
            raise ValueError(f"Weights must be finite and non-negative, got {weight}")
        return arr

    def _write_nodes(self, node_list: list) -> None:
        new_len = len(node_list)
        self._nodes[:new_len] = node_list
        for i in range(new_len, self._length):
            self._nodes[i] = None
        self._length = new_len

    def __str__(self) -> str:
        if self._zero:
            return ""
        weights = ";".join(f"{w:f}" for w in self._weight)
        path = "->".join(str(n) for n in self._nodes[: self._length])
        return f"({weights})[{path}]"

    def __repr__(self) -> str:
        if self._zero:
            return f"PathRecord(slot={self._slot}, zero)"
        return f"PathRecord(slot={self._slot}, {self})"
