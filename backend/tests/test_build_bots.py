"""
Tests for bot construction.

File: backend/tests/test_build_bots.py
"""
from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import pytest

from conftest import LENDING_POOL
from lendwatch.bots import build_bots
from lendwatch.core.exceptions import ConfigurationError, ObservationFetchError
from lendwatch.core.settings import load_settings


@pytest.fixture
def mock_client():
    client = AsyncMock()
    client.get_lending_pool_address.return_value = LENDING_POOL
    client.get_price_oracle_address.return_value = "0x3333333333333333333333333333333333333333"
    client.with_price_oracle = Mock(return_value=client)
    client.get_all_reserves_tokens.return_value = []
    return client


class TestBuildBots:
    """Test suite for build_bots."""

    @pytest.mark.asyncio
    async def test_all_bots_enabled_by_default(self, settings, mock_client):
        bots = await build_bots(settings, mock_client)

        assert [bot.name for bot in bots] == [
            "anomalous-value",
            "reserve-watch",
            "total-value-and-liquidity",
            "treasury-fees-monitor",
        ]
        assert [bot.handles_blocks for bot in bots] == [False, True, True, False]
        assert [bot.handles_transactions for bot in bots] == [True, False, False, True]

    @pytest.mark.asyncio
    async def test_disabled_bots_are_skipped(self, mock_client):
        settings = load_settings(
            _env_file=None,
            reserve_watch={"enabled": False},
            treasury_fees={"enabled": False},
        )
        bots = await build_bots(settings, mock_client)
        assert [bot.name for bot in bots] == ["anomalous-value", "total-value-and-liquidity"]

    @pytest.mark.asyncio
    async def test_chain_failure_disables_only_treasury_bot(self, settings, mock_client):
        mock_client.get_lending_pool_address.side_effect = ObservationFetchError("node down")

        bots = await build_bots(settings, mock_client)
        assert "treasury-fees-monitor" not in [bot.name for bot in bots]
        assert len(bots) == 3

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self, mock_client, tmp_path):
        settings = load_settings(
            _env_file=None, treasury_fees={"data_set": str(tmp_path / "missing.csv")}
        )
        with pytest.raises(ConfigurationError):
            await build_bots(settings, mock_client)

    @pytest.mark.asyncio
    async def test_stale_reserve_bot_is_opt_in(self, mock_client):
        settings = load_settings(_env_file=None, stale_reserve={"enabled": True})
        bots = await build_bots(settings, mock_client)

        names = [bot.name for bot in bots]
        assert "stale-reserve-data" in names
        assert bots[names.index("stale-reserve-data")].handles_blocks
