"""
Per-key registry of statistics objects, created lazily on first observation.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Generic, Hashable, Iterator, Optional, Protocol, Tuple, TypeVar

from .numeric import Numeric


class Statistic(Protocol):
    """Read/update interface shared by RollingWindow and IncrementalAccumulator."""

    @property
    def num_elements(self) -> int: ...

    def add_element(self, value: Numeric) -> None: ...

    def average(self) -> Decimal: ...

    def standard_deviation(self) -> Decimal: ...


S = TypeVar("S", bound=Statistic)


@dataclass(frozen=True)
class StatsSnapshot:
    """Count, average and standard deviation of one key at a point in time."""

    count: int
    average: Optional[Decimal] = None
    standard_deviation: Optional[Decimal] = None

    @classmethod
    def of(cls, stats: Statistic) -> "StatsSnapshot":
        count = stats.num_elements
        if count == 0:
            return cls(count=0)
        return cls(
            count=count,
            average=stats.average(),
            standard_deviation=stats.standard_deviation(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "average": None if self.average is None else str(self.average),
            "standard_deviation": (
                None if self.standard_deviation is None else str(self.standard_deviation)
            ),
        }


class StatsRegistry(Generic[S]):
    """
    Maps a tracked key (reserve address, symbol, (reserve, field) pair) to its
    own statistics object. Keys never share state.
    """

    def __init__(self, factory: Callable[[], S]):
        self._factory = factory
        self._entries: Dict[Hashable, S] = {}

    def get(self, key: Hashable) -> Optional[S]:
        return self._entries.get(key)

    def get_or_create(self, key: Hashable) -> Tuple[S, bool]:
        """Return (stats, created)."""
        stats = self._entries.get(key)
        if stats is not None:
            return stats, False
        stats = self._factory()
        self._entries[key] = stats
        return stats, True

    def seed(self, key: Hashable, stats: S) -> None:
        """Install a pre-built statistics object, e.g. one bootstrapped from history."""
        self._entries[key] = stats

    def keys(self):
        return self._entries.keys()

    def items(self):
        return self._entries.items()

    def snapshot(self) -> Dict[Hashable, StatsSnapshot]:
        return {key: StatsSnapshot.of(stats) for key, stats in self._entries.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._entries)
