"""Error taxonomy for path enumeration.

Each class also derives from the builtin it refines, so callers that only
care about ``ValueError``/``RuntimeError`` keep working.
"""

from __future__ import annotations


class OpCalcError(Exception):
    """Base class for all opcalc errors."""


class InvalidDimension(OpCalcError, ValueError):
    """Matrix size, weight dimension or record geometry is invalid or mismatched."""


class ResourceExhausted(OpCalcError, RuntimeError):
    """The record pool has no free slot left.

    Attributes:
        capacity: Capacity of the pool that ran out.
    """

    def __init__(self, capacity: int) -> None:
        super().__init__(
            f"Path record pool (capacity={capacity}) exhausted; "
            "retry with a larger capacity"
        )
        self.capacity = capacity


class UnknownHandle(OpCalcError, ValueError):
    """A record was not issued by this pool (or by its current configuration)."""


class MalformedInput(OpCalcError, ValueError):
    """Graph or demand input could not be parsed.

    Attributes:
        line_no: 1-based line number of the offending record, if known.
    """

    def __init__(self, message: str, line_no: int | None = None) -> None:
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)
        self.line_no = line_no


class ComputationCancelled(OpCalcError, RuntimeError):
    """A run was stopped by its deadline or cancel event."""
