"""
Structured concurrent map with per-item failure isolation.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

from .exceptions import create_safe_error_dict

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Settled(Generic[T, R]):
    """Outcome of one item of a fan-out: either a value or an error."""

    item: T
    value: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_settled(
    items: Iterable[T],
    func: Callable[[T], Awaitable[R]],
    label: Callable[[T], str] = str,
) -> List[Settled[T, R]]:
    """
    Run func over every item concurrently and collect one outcome per item.

    A failing item never cancels its siblings. Results keep the input order so
    callers can fold them back sequentially.

    Args:
        items: Items to process
        func: Coroutine function applied to each item
        label: Renders an item for the failure log line

    Returns:
        One Settled record per item, in input order
    """
    items = list(items)
    results = await asyncio.gather(
        *(func(item) for item in items), return_exceptions=True
    )

    settled: List[Settled[T, R]] = []
    for item, result in zip(items, results):
        if isinstance(result, Exception):
            logger.warning(
                f"Skipping {label(item)}: {result}",
                extra={'extra_data': create_safe_error_dict(result)}
            )
            settled.append(Settled(item=item, error=result))
        elif isinstance(result, BaseException):
            raise result
        else:
            settled.append(Settled(item=item, value=result))

    return settled


def successes(settled: Iterable[Settled[T, R]]) -> List[Settled[T, R]]:
    """Keep only the successful outcomes, preserving order."""
    return [outcome for outcome in settled if outcome.ok]
