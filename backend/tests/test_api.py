"""
Tests for the status API.

File: backend/tests/test_api.py
"""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from lendwatch.bots.base import Bot
from lendwatch.main import create_app
from lendwatch.monitoring.alerts import FindingPublisher
from lendwatch.monitoring.findings import Finding, FindingSeverity, FindingType
from lendwatch.runner import BotRunner
from lendwatch.stats import RollingWindow, StatsRegistry


class _State:
    def __init__(self):
        self.registry = StatsRegistry(lambda: RollingWindow(5))


@pytest.fixture
def publisher():
    publisher = FindingPublisher([])
    publisher.history.append(Finding(
        name="High Aave DAI Reserve Price Change",
        description="DAI Price: 0.005 ether",
        alert_id="AE-AAVE-RESERVE-PRICE",
        severity=FindingSeverity.MEDIUM,
        type=FindingType.SUSPICIOUS,
        protocol="Aave",
    ))
    return publisher


@pytest.fixture
def client(settings, publisher):
    state = _State()
    window, _ = state.registry.get_or_create(("0xabc", "total_debt"))
    window.add_element(10)
    window.add_element(20)

    bot = Bot("total-value-and-liquidity", state, on_block=AsyncMock(return_value=[]))
    runner = BotRunner([bot], AsyncMock(), publisher)
    app = create_app(settings, runner=runner, publisher=publisher, start_runner=False)
    with TestClient(app) as test_client:
        yield test_client


class TestStatusApi:
    """Test suite for the status endpoints."""

    def test_health_reports_idle_runner_as_degraded(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "DEGRADED"
        assert body["running"] is False
        assert body["version"] == "1.0.0"
        assert body["bots"] == ["total-value-and-liquidity"]

    def test_bots_expose_statistics(self, client):
        response = client.get("/bots")
        assert response.status_code == 200
        [bot] = response.json()
        assert bot["name"] == "total-value-and-liquidity"
        assert bot["handles_blocks"] is True
        assert bot["statistics"]["0xabc:total_debt"] == {
            "count": 2, "average": "15", "standard_deviation": "5",
        }

    def test_recent_findings(self, client):
        response = client.get("/findings", params={"limit": 10})
        assert response.status_code == 200
        [finding] = response.json()
        assert finding["alert_id"] == "AE-AAVE-RESERVE-PRICE"
        assert finding["severity"] == "medium"

    def test_invalid_limit(self, client):
        assert client.get("/findings", params={"limit": 0}).status_code == 422
