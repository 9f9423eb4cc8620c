"""Fixed-capacity pool of reusable path records.

The pool owns one numpy slab of shape ``(capacity, weight_dim)`` holding the
weights of every slot. Slots are handed out by a bump pointer until the slab
has been walked once, then from a LIFO free list of released slots, so both
``acquire`` and ``release`` are O(1). Record objects are created lazily the
first time their slot is handed out and reused afterwards.

Each computation holds its own pool; there is no process-wide instance.
"""

from __future__ import annotations

import threading
from typing import Iterable, List, Optional

import numpy as np

from opcalc.config import PoolConfig
from opcalc.errors import InvalidDimension, ResourceExhausted, UnknownHandle
from opcalc.logging import get_logger
from opcalc.psi.record import PathRecord

logger = get_logger(__name__)


class PathRecordPool:
    """Arena of :class:`PathRecord` slots with a hard capacity.

    ``acquire``/``release`` are serialized by a lock so cells of one growth
    iteration can be computed from several threads.
    """

    def __init__(self, max_hops: int, weight_dim: int, capacity: int) -> None:
        """Create a pool.

        Args:
            max_hops: Maximum number of vertices per record.
            weight_dim: Weight dimension of every record.
            capacity: Number of slots.

        Raises:
            InvalidDimension: If any argument is less than 1.
        """
        self._lock = threading.Lock()
        self._generation = 0
        self._records: List[Optional[PathRecord]] = []
        self._in_use: np.ndarray = np.zeros(0, dtype=bool)
        self._weights: np.ndarray = np.zeros((0, 1), dtype=np.float64)
        self._free: List[int] = []
        self._next = 0
        self._used = 0
        self._high_water = 0
        self._max_hops = 0
        self._weight_dim = 0
        self.configure(max_hops, weight_dim, capacity)

    @classmethod
    def from_config(cls, config: PoolConfig) -> PathRecordPool:
        return cls(config.max_hops, config.weight_dim, config.capacity)

    def configure(self, max_hops: int, weight_dim: int, capacity: int) -> None:
        """(Re)initialize the slab.

        Every record issued under the previous configuration is detached:
        it reads as zero and can no longer be mutated or released.

        Raises:
            InvalidDimension: If any argument is less than 1.
        """
        for name, value in (
            ("max_hops", max_hops),
            ("weight_dim", weight_dim),
            ("capacity", capacity),
        ):
            if value < 1:
                raise InvalidDimension(f"{name} must be at least 1, got {value}")

        with self._lock:
            stale = [rec for rec in self._records if rec is not None]
            for rec in stale:
                rec._detach()
            if self._used:
                logger.warning(
                    "Reconfiguring pool with %d records still in use; "
                    "they are now invalid",
                    self._used,
                )
            self._generation += 1
            self._max_hops = max_hops
            self._weight_dim = weight_dim
            self._weights = np.zeros((capacity, weight_dim), dtype=np.float64)
            self._records = [None] * capacity
            self._in_use = np.zeros(capacity, dtype=bool)
            self._free = []
            self._next = 0
            self._used = 0
            self._high_water = 0

        logger.debug(
            "Configured record pool: max_hops=%d, weight_dim=%d, capacity=%d",
            max_hops,
            weight_dim,
            capacity,
        )

    @property
    def config(self) -> PoolConfig:
        return PoolConfig(self._max_hops, self._weight_dim, self.capacity)

    @property
    def max_hops(self) -> int:
        return self._max_hops

    @property
    def weight_dim(self) -> int:
        return self._weight_dim

    @property
    def capacity(self) -> int:
        return len(self._records)

    @property
    def in_use(self) -> int:
        return self._used

    @property
    def available(self) -> int:
        return self.capacity - self._used

    @property
    def high_water(self) -> int:
        """Largest number of records simultaneously in use since configuration."""
        return self._high_water

    @property
    def generation(self) -> int:
        """Incremented by every call to :meth:`configure`."""
        return self._generation

    def owns(self, record: PathRecord) -> bool:
        """True if ``record`` was issued by this pool's current configuration."""
        slot = record.slot
        return (
            record.pool is self
            and 0 <= slot < len(self._records)
            and self._records[slot] is record
        )

    def acquire(self) -> PathRecord:
        """Hand out a zero record for exclusive use by the caller.

        Raises:
            ResourceExhausted: If every slot is in use.
        """
        with self._lock:
            if self._free:
                slot = self._free.pop()
            elif self._next < len(self._records):
                slot = self._next
                self._next += 1
            else:
                logger.error("Record pool exhausted (capacity=%d)", self.capacity)
                raise ResourceExhausted(self.capacity)

            record = self._records[slot]
            if record is None:
                record = PathRecord(
                    self._max_hops,
                    self._weight_dim,
                    pool=self,
                    slot=slot,
                    weight_row=self._weights[slot],
                )
                self._records[slot] = record
            self._in_use[slot] = True
            self._used += 1
            if self._used > self._high_water:
                self._high_water = self._used
            return record

    def release(self, record: PathRecord) -> None:
        """Zero ``record`` and return its slot to the pool.

        Releasing a record that is already free does nothing.

        Raises:
            UnknownHandle: If ``record`` was not issued by this pool under its
                current configuration.
        """
        with self._lock:
            if not self.owns(record):
                raise UnknownHandle(
                    f"Path record {id(record):#x} was not allocated from this pool"
                )
            slot = record.slot
            if not self._in_use[slot]:
                return
            record._reset()
            self._in_use[slot] = False
            self._free.append(slot)
            self._used -= 1

    def release_all(self, records: Iterable[PathRecord]) -> None:
        """Release every record of ``records``."""
        for record in records:
            self.release(record)

    def acquire_copy(self, source: PathRecord) -> PathRecord:
        """Acquire a record and deep-copy ``source`` into it.

        Raises:
            ResourceExhausted: If every slot is in use.
            InvalidDimension: If ``source`` does not fit this pool's geometry;
                the acquired slot is released first.
        """
        record = self.acquire()
        try:
            record.copy_from(source)
        except InvalidDimension:
            self.release(record)
            raise
        return record

    def __repr__(self) -> str:
        return (
            f"PathRecordPool(max_hops={self._max_hops}, weight_dim={self._weight_dim}, "
            f"capacity={self.capacity}, in_use={self._used})"
        )
