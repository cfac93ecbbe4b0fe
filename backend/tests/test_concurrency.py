"""
Tests for the settled fan-out helper.

File: backend/tests/test_concurrency.py
"""
from __future__ import annotations

import asyncio

import pytest

from lendwatch.core.concurrency import gather_settled, successes
from lendwatch.core.exceptions import ObservationFetchError


class TestGatherSettled:
    """Test suite for gather_settled."""

    @pytest.mark.asyncio
    async def test_failures_are_isolated_and_order_is_kept(self):
        async def fetch(item: int) -> int:
            await asyncio.sleep(0.01 * (5 - item))
            if item == 2:
                raise ObservationFetchError("node timeout")
            return item * 10

        settled = await gather_settled([1, 2, 3, 4], fetch)

        assert [s.item for s in settled] == [1, 2, 3, 4]
        assert [s.ok for s in settled] == [True, False, True, True]
        assert isinstance(settled[1].error, ObservationFetchError)
        assert [s.value for s in successes(settled)] == [10, 30, 40]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        async def fetch(item):
            return item

        assert await gather_settled([], fetch) == []
