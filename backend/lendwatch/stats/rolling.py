"""
Fixed-capacity rolling window with incremental mean and standard deviation.
"""
from __future__ import annotations

from collections import deque
from decimal import Decimal
from typing import Deque, List

from ..core.exceptions import ConfigurationError, EmptyWindowError
from .numeric import Numeric, numeric_context, to_decimal


class RollingWindow:
    """
    Sliding window over the most recent `capacity` observations.

    Keeps a running sum and sum of squares so every update and read is O(1).
    The standard deviation is the population one, over the retained buffer
    only. Reading the average or standard deviation of an empty window raises
    EmptyWindowError; callers gate on num_elements first.
    """

    def __init__(self, capacity: int):
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ConfigurationError(
                f"Window capacity must be a positive integer, got {capacity!r}",
                details={"capacity": repr(capacity)},
            )
        self.capacity = capacity
        self._buffer: Deque[Decimal] = deque()
        self._sum = Decimal(0)
        self._sum_sq = Decimal(0)
        self.count = 0

    def add_element(self, value: Numeric) -> None:
        value = to_decimal(value)
        with numeric_context():
            if len(self._buffer) == self.capacity:
                oldest = self._buffer.popleft()
                self._sum -= oldest
                self._sum_sq -= oldest * oldest

            self._buffer.append(value)
            self._sum += value
            self._sum_sq += value * value
        self.count += 1

    @property
    def num_elements(self) -> int:
        """Current occupancy, at most capacity."""
        return len(self._buffer)

    def values(self) -> List[Decimal]:
        return list(self._buffer)

    def average(self) -> Decimal:
        n = self._require_elements()
        with numeric_context():
            return self._sum / n

    def variance(self) -> Decimal:
        n = self._require_elements()
        with numeric_context():
            variance = (n * self._sum_sq - self._sum * self._sum) / (n * n)
        return max(variance, Decimal(0))

    def standard_deviation(self) -> Decimal:
        variance = self.variance()
        with numeric_context():
            return variance.sqrt()

    def _require_elements(self) -> int:
        n = len(self._buffer)
        if n == 0:
            raise EmptyWindowError("Rolling window has no observations")
        return n

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        return f"RollingWindow(capacity={self.capacity}, num_elements={self.num_elements})"
