"""
Rolling and incremental statistics shared by every bot.
"""
from .accumulator import AccumulatorState, IncrementalAccumulator, accumulate, fold
from .decision import AnomalyRule, Direction, Evaluation, evaluate
from .numeric import format_units, scale_amount, to_decimal
from .registry import StatsRegistry, StatsSnapshot
from .rolling import RollingWindow

__all__ = [
    "AccumulatorState",
    "AnomalyRule",
    "Direction",
    "Evaluation",
    "IncrementalAccumulator",
    "RollingWindow",
    "StatsRegistry",
    "StatsSnapshot",
    "accumulate",
    "evaluate",
    "fold",
    "format_units",
    "scale_amount",
    "to_decimal",
]
