"""Path records, their pool, and the path matrices built from them."""

from opcalc.psi.matrix import MatrixCell, PathMatrix
from opcalc.psi.pool import PathRecordPool
from opcalc.psi.record import PathRecord, PathValue

__all__ = ["MatrixCell", "PathMatrix", "PathRecord", "PathRecordPool", "PathValue"]
