"""
Tests for the reserve price watch bot.

File: backend/tests/test_reserve_watch.py
"""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from conftest import DAI, USDC
from lendwatch.bots import reserve_watch
from lendwatch.chains.events import BlockEvent
from lendwatch.chains.evm_client import ReserveToken
from lendwatch.core.exceptions import ObservationFetchError
from lendwatch.core.settings import load_settings


@pytest.fixture
def prices():
    """Oracle prices in wei, per block and asset."""
    return {}


@pytest.fixture
def mock_client(prices):
    client = AsyncMock()
    client.get_all_reserves_tokens.return_value = [
        ReserveToken("DAI", DAI),
        ReserveToken("USDC", USDC),
    ]

    async def get_asset_price(asset, block=None):
        price = prices[block][asset]
        if isinstance(price, Exception):
            raise price
        return price

    client.get_asset_price.side_effect = get_asset_price
    return client


def make_state(client, **config):
    settings = load_settings(_env_file=None, reserve_watch=config)
    return reserve_watch.initialize(settings, client)


class TestReserveWatchBot:
    """Test suite for the reserve watch bot."""

    @pytest.mark.asyncio
    async def test_price_jump_is_flagged(self, mock_client, prices):
        state = make_state(mock_client, window_size=10, min_elements=1)
        prices.update({
            1: {DAI: 10**15, USDC: 10**15},
            2: {DAI: 10**15, USDC: 10**15},
            3: {DAI: 5 * 10**15, USDC: 10**15},
        })

        assert await reserve_watch.handle_block(BlockEvent(1), state) == []
        assert await reserve_watch.handle_block(BlockEvent(2), state) == []
        findings = await reserve_watch.handle_block(BlockEvent(3), state)

        assert len(findings) == 1
        finding = findings[0]
        assert finding.name == "High Aave DAI Reserve Price Change"
        assert finding.description == "DAI Price: 0.005 ether"
        assert finding.alert_id == "AE-AAVE-RESERVE-PRICE"
        assert finding.addresses == [DAI.lower()]

    @pytest.mark.asyncio
    async def test_failed_price_skips_only_that_asset(self, mock_client, prices):
        state = make_state(mock_client, window_size=10, min_elements=1)
        prices.update({
            1: {DAI: 10**15, USDC: 10**15},
            2: {DAI: 2 * 10**15, USDC: ObservationFetchError("reverted")},
        })

        await reserve_watch.handle_block(BlockEvent(1), state)
        findings = await reserve_watch.handle_block(BlockEvent(2), state)

        assert [f.metadata["symbol"] for f in findings] == ["DAI"]
        assert state.registry.get("USDC").num_elements == 1
        assert state.registry.get("DAI").num_elements == 2

    @pytest.mark.asyncio
    async def test_reserve_list_failure_yields_no_findings(self, mock_client):
        state = make_state(mock_client)
        mock_client.get_all_reserves_tokens.side_effect = ObservationFetchError("node down")

        assert await reserve_watch.handle_block(BlockEvent(7), state) == []
        assert len(state.registry) == 0

    @pytest.mark.asyncio
    async def test_prices_are_read_at_the_block(self, mock_client, prices):
        state = make_state(mock_client)
        prices[42] = {DAI: 1, USDC: 1}

        await reserve_watch.handle_block(BlockEvent(42), state)

        mock_client.get_all_reserves_tokens.assert_awaited_once_with(block=42)
        mock_client.get_asset_price.assert_any_await(DAI, block=42)
