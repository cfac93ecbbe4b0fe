"""Finding delivery to console and webhook channels."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional

import httpx

from ..core.settings import AlertSettings
from .findings import Finding, FindingSeverity

logger = logging.getLogger(__name__)


class AlertChannel:
    """Base class for finding delivery channels."""

    name = "base"

    async def send(self, finding: Finding) -> bool:
        """
        Deliver one finding.

        Returns:
            bool: True if delivered
        """
        try:
            return await self._send_impl(finding)
        except Exception as e:
            logger.error(
                f"Failed to send finding via {self.name}: {e}",
                extra={'extra_data': {'alert_id': finding.alert_id, 'channel': self.name}}
            )
            return False

    async def _send_impl(self, finding: Finding) -> bool:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class ConsoleChannel(AlertChannel):
    """Logs findings at a level matching their severity."""

    name = "console"

    LEVELS = {
        FindingSeverity.CRITICAL: logging.CRITICAL,
        FindingSeverity.HIGH: logging.ERROR,
        FindingSeverity.MEDIUM: logging.WARNING,
    }

    async def _send_impl(self, finding: Finding) -> bool:
        level = self.LEVELS.get(finding.severity, logging.INFO)
        logger.log(
            level,
            f"FINDING [{finding.severity.value.upper()}] {finding.name}: {finding.description}",
            extra={'extra_data': finding.to_dict()}
        )
        return True


class WebhookChannel(AlertChannel):
    """POSTs each finding as JSON."""

    name = "webhook"

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _send_impl(self, finding: Finding) -> bool:
        response = await self._client.post(
            self.url,
            content=json.dumps(finding.to_dict(), default=str),
            headers={"Content-Type": "application/json"},
        )
        if response.status_code >= 400:
            logger.error(
                f"Webhook rejected finding: {response.status_code}",
                extra={'extra_data': {
                    'alert_id': finding.alert_id,
                    'status_code': response.status_code,
                }}
            )
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


class FindingPublisher:
    """Fans findings out to every channel and keeps a bounded history."""

    def __init__(self, channels: Iterable[AlertChannel], history_size: int = 500):
        self.channels: List[AlertChannel] = list(channels)
        self.history: Deque[Finding] = deque(maxlen=history_size)
        self.published_count = 0

    @classmethod
    def from_settings(cls, settings: AlertSettings) -> "FindingPublisher":
        channels: List[AlertChannel] = []
        if settings.console_enabled:
            channels.append(ConsoleChannel())
        if settings.webhook_url:
            channels.append(WebhookChannel(
                settings.webhook_url, timeout=settings.webhook_timeout_seconds
            ))
        return cls(channels, history_size=settings.history_size)

    async def publish(self, findings: Iterable[Finding]) -> int:
        """Deliver findings in order; returns how many were published."""
        count = 0
        for finding in findings:
            self.history.append(finding)
            await asyncio.gather(
                *(channel.send(finding) for channel in self.channels),
                return_exceptions=True,
            )
            count += 1
        self.published_count += count
        return count

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        items = list(self.history)[-limit:] if limit > 0 else []
        return [finding.to_dict() for finding in reversed(items)]

    async def aclose(self) -> None:
        for channel in self.channels:
            await channel.aclose()
