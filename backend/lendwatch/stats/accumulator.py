"""
Unbounded running mean and variance (Welford-style recurrence).
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..core.exceptions import EmptyWindowError
from .numeric import Numeric, numeric_context, to_decimal


@dataclass(frozen=True)
class AccumulatorState:
    """Population mean, variance and standard deviation of every value folded so far."""

    mean: Decimal = Decimal(0)
    variance: Decimal = Decimal(0)
    std_dev: Decimal = Decimal(0)
    count: int = 0


EMPTY_STATE = AccumulatorState()


def fold(state: AccumulatorState, value: Numeric) -> AccumulatorState:
    """
    Fold one value into the state and return the next state.

    Pure: the input state is never modified.
    """
    value = to_decimal(value)
    if state.count == 0:
        return AccumulatorState(mean=value, variance=Decimal(0), std_dev=Decimal(0), count=1)

    new_count = state.count + 1
    with numeric_context():
        new_mean = (state.mean * state.count + value) / new_count
        new_variance = (
            state.variance * state.count + (value - new_mean) * (value - state.mean)
        ) / new_count
        new_variance = max(new_variance, Decimal(0))
        new_std_dev = new_variance.sqrt()

    return AccumulatorState(
        mean=new_mean, variance=new_variance, std_dev=new_std_dev, count=new_count
    )


def accumulate(values: Iterable[Numeric], state: AccumulatorState = EMPTY_STATE) -> AccumulatorState:
    """Replay a historical series through fold, e.g. to bootstrap from a dataset."""
    for value in values:
        state = fold(state, value)
    return state


class IncrementalAccumulator:
    """Mutable holder of an AccumulatorState with the RollingWindow read interface."""

    def __init__(self, state: AccumulatorState = EMPTY_STATE):
        self.state = state

    def add_element(self, value: Numeric) -> None:
        self.state = fold(self.state, value)

    @property
    def num_elements(self) -> int:
        return self.state.count

    @property
    def count(self) -> int:
        return self.state.count

    def average(self) -> Decimal:
        self._require_elements()
        return self.state.mean

    def variance(self) -> Decimal:
        self._require_elements()
        return self.state.variance

    def standard_deviation(self) -> Decimal:
        self._require_elements()
        return self.state.std_dev

    def _require_elements(self) -> None:
        if self.state.count == 0:
            raise EmptyWindowError("Accumulator has no observations")

    def __repr__(self) -> str:
        return f"IncrementalAccumulator(count={self.state.count})"
