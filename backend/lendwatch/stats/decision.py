"""
Anomaly decision rule applied per key before folding each observation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Hashable, Optional

from ..core.exceptions import ConfigurationError
from .numeric import Numeric, numeric_context, to_decimal
from .registry import StatsRegistry, StatsSnapshot

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    """Which side of the average counts as anomalous."""

    BOTH = "both"
    ABOVE = "above"


@dataclass(frozen=True)
class AnomalyRule:
    """
    Alert when a value lies more than `deviation_multiplier` standard
    deviations from the average of at least `minimum_samples` prior values.

    The comparison is strict: a delta equal to the limit is not anomalous.
    """

    deviation_multiplier: Decimal
    minimum_samples: int = 0
    direction: Direction = Direction.BOTH

    def __post_init__(self) -> None:
        try:
            multiplier = to_decimal(self.deviation_multiplier)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if multiplier <= 0:
            raise ConfigurationError(
                f"Deviation multiplier must be positive, got {self.deviation_multiplier}"
            )
        if (
            isinstance(self.minimum_samples, bool)
            or not isinstance(self.minimum_samples, int)
            or self.minimum_samples < 0
        ):
            raise ConfigurationError(
                f"Minimum samples must be a non-negative integer, got {self.minimum_samples!r}"
            )
        object.__setattr__(self, "deviation_multiplier", multiplier)
        object.__setattr__(self, "direction", Direction(self.direction))

    def limit(self, snapshot: StatsSnapshot) -> Decimal:
        with numeric_context():
            return snapshot.standard_deviation * self.deviation_multiplier

    def delta(self, value: Decimal, snapshot: StatsSnapshot) -> Decimal:
        with numeric_context():
            difference = value - snapshot.average
        if self.direction is Direction.ABOVE:
            return difference
        return abs(difference)

    def has_enough_history(self, snapshot: StatsSnapshot) -> bool:
        return snapshot.count > 0 and snapshot.count >= self.minimum_samples


@dataclass(frozen=True)
class Evaluation:
    """Outcome of evaluating one observation against its key's history."""

    key: Hashable
    value: Decimal
    is_anomalous: bool
    snapshot: StatsSnapshot
    limit: Optional[Decimal] = None
    delta: Optional[Decimal] = None


def evaluate(
    key: Hashable,
    value: Numeric,
    registry: StatsRegistry,
    rule: AnomalyRule,
) -> Evaluation:
    """
    Decide whether value is anomalous for key, then fold it into key's statistics.

    The first observation of a key creates its statistics object and is never
    anomalous. The check always uses the statistics from before the fold, and
    the fold happens whether or not the value is anomalous.
    """
    value = to_decimal(value)
    stats, created = registry.get_or_create(key)
    snapshot = StatsSnapshot(count=0) if created else StatsSnapshot.of(stats)

    is_anomalous = False
    limit: Optional[Decimal] = None
    delta: Optional[Decimal] = None

    if not created and rule.has_enough_history(snapshot):
        limit = rule.limit(snapshot)
        delta = rule.delta(value, snapshot)
        is_anomalous = delta > limit

    stats.add_element(value)

    if is_anomalous:
        logger.debug(
            f"Anomalous observation for {key}",
            extra={'extra_data': {
                'series': str(key),
                'value': str(value),
                'average': str(snapshot.average),
                'limit': str(limit),
                'delta': str(delta),
            }}
        )

    return Evaluation(
        key=key,
        value=value,
        is_anomalous=is_anomalous,
        snapshot=snapshot,
        limit=limit,
        delta=delta,
    )
