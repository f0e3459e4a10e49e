"""
HistoryBuffer - Bounded FIFO of the most recent generated samples

Eviction is strict FIFO: when full, the oldest sample is removed before the
new one is appended. A zero-capacity buffer never holds anything.
"""

from collections import deque
from typing import Deque, Optional

import numpy as np


class HistoryBuffer:
    """
    Fixed-capacity rolling window over samples (oldest first).

    Only the generation loop pushes; resize/clear happen while the loop
    is paused, so no locking is needed here.
    """

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._capacity = capacity
        self._samples: Deque[float] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return len(self._samples) >= self._capacity

    def __len__(self) -> int:
        return len(self._samples)

    def push(self, value: float) -> None:
        """Append a sample, evicting the oldest first if at capacity."""
        if len(self._samples) == self._capacity:
            if self._capacity == 0:
                return
            self._samples.popleft()
        self._samples.append(value)

    def clear(self) -> None:
        """Drop all samples, keep capacity."""
        self._samples.clear()

    def resize(self, new_capacity: int) -> None:
        """Reallocate at a new capacity. Existing samples are discarded."""
        if new_capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {new_capacity}")
        self._capacity = new_capacity
        self._samples = deque()

    def latest(self) -> Optional[float]:
        return self._samples[-1] if self._samples else None

    def snapshot(self) -> np.ndarray:
        """
        Copy of the held samples as float64, oldest first.

        The returned array is owned by the caller; later pushes do not touch it.
        """
        return np.fromiter(self._samples, dtype=np.float64, count=len(self._samples))

    def __repr__(self) -> str:
        return f"HistoryBuffer({len(self._samples)}/{self._capacity})"
