"""
Bot wrapper: a named state object plus block and/or transaction handlers.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..chains.events import BlockEvent, TransactionEvent
from ..core.settings import DetectorSettings, Settings
from ..monitoring.findings import Finding
from ..stats import AnomalyRule, Direction, StatsRegistry

logger = logging.getLogger(__name__)

BlockHandler = Callable[[BlockEvent, Any], Awaitable[List[Finding]]]
TransactionHandler = Callable[[TransactionEvent, Any], Awaitable[List[Finding]]]


@dataclass(frozen=True)
class ProtocolIdentity:
    """Names used to build finding titles and alert ids."""

    protocol_name: str
    protocol_abbreviation: str
    developer_abbreviation: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProtocolIdentity":
        return cls(
            protocol_name=settings.protocol_name,
            protocol_abbreviation=settings.protocol_abbreviation,
            developer_abbreviation=settings.developer_abbreviation,
        )

    def alert_id(self, suffix: str) -> str:
        return f"{self.developer_abbreviation}-{self.protocol_abbreviation}-{suffix}"


def build_rule(config: DetectorSettings, direction: Direction = Direction.BOTH) -> AnomalyRule:
    return AnomalyRule(
        deviation_multiplier=config.num_std_deviations,
        minimum_samples=config.min_elements or 0,
        direction=direction,
    )


class Bot:
    """
    Holds one bot's explicit state and threads it into every handler call.

    Events must be handed to a bot one at a time; its registries are not
    safe for concurrent writers.
    """

    def __init__(
        self,
        name: str,
        state: Any,
        on_block: Optional[BlockHandler] = None,
        on_transaction: Optional[TransactionHandler] = None,
    ):
        self.name = name
        self.state = state
        self.on_block = on_block
        self.on_transaction = on_transaction

    @property
    def handles_blocks(self) -> bool:
        return self.on_block is not None

    @property
    def handles_transactions(self) -> bool:
        return self.on_transaction is not None

    async def handle_block(self, event: BlockEvent) -> List[Finding]:
        if self.on_block is None:
            return []
        findings = await self.on_block(event, self.state)
        return self._stamp(findings, block_number=event.block_number)

    async def handle_transaction(self, event: TransactionEvent) -> List[Finding]:
        if self.on_transaction is None:
            return []
        findings = await self.on_transaction(event, self.state)
        return self._stamp(findings, block_number=event.block_number, tx_hash=event.hash)

    def _stamp(
        self, findings: List[Finding], block_number: int, tx_hash: Optional[str] = None
    ) -> List[Finding]:
        for finding in findings:
            finding.bot = self.name
            finding.block_number = block_number
            finding.tx_hash = tx_hash
        return findings

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Statistics of every tracked key, keyed by a printable form of the key."""
        registry: Optional[StatsRegistry] = getattr(self.state, "registry", None)
        if registry is None:
            return {}
        return {
            format_key(key): snapshot.to_dict()
            for key, snapshot in registry.snapshot().items()
        }

    def __repr__(self) -> str:
        return f"Bot(name={self.name!r})"


def format_key(key: Any) -> str:
    if isinstance(key, tuple):
        return ":".join(str(part) for part in key)
    return str(key)
