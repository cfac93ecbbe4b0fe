"""
Block polling loop feeding block and transaction events to every bot.

File: backend/lendwatch/runner.py
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from .bots.base import Bot
from .chains.evm_client import ChainEventSource
from .chains.events import BlockEvent, TransactionEvent
from .core.exceptions import ChainConnectionError
from .monitoring.alerts import FindingPublisher
from .monitoring.findings import Finding

logger = logging.getLogger(__name__)


class BotRunner:
    """
    Polls the chain for new blocks and dispatches them to the bots.

    Blocks are processed strictly in order. Within a block every block
    handler runs first, then each transaction is handed to every
    transaction handler in transaction order.
    """

    def __init__(
        self,
        bots: Sequence[Bot],
        source: ChainEventSource,
        publisher: FindingPublisher,
        start_block: Optional[int] = None,
    ):
        self.bots: List[Bot] = list(bots)
        self.source = source
        self.publisher = publisher
        self.next_block = start_block
        self.last_block: Optional[int] = None
        self.blocks_processed = 0
        self.handler_errors = 0
        self.started_at: Optional[float] = None
        self._stop = asyncio.Event()

    @property
    def bot_names(self) -> List[str]:
        return [bot.name for bot in self.bots]

    @property
    def running(self) -> bool:
        return self.started_at is not None and not self._stop.is_set()

    async def _dispatch(self, bot: Bot, handler: Any, event: Any) -> List[Finding]:
        try:
            return await handler(event)
        except Exception as e:
            self.handler_errors += 1
            extra: Dict[str, Any] = {'bot': bot.name, 'block_number': event.block_number}
            if isinstance(event, TransactionEvent):
                extra['tx_hash'] = event.hash
            logger.error(
                f"Bot {bot.name} failed handling event: {e}",
                exc_info=True,
                extra={'extra_data': extra}
            )
            return []

    async def process_block(self, block_number: int) -> List[Finding]:
        """Run every bot over one block and publish the findings."""
        block: BlockEvent = await self.source.get_block_event(block_number)
        findings: List[Finding] = []

        for bot in self.bots:
            if bot.handles_blocks:
                findings.extend(await self._dispatch(bot, bot.handle_block, block))

        if any(bot.handles_transactions for bot in self.bots):
            transactions = await self.source.get_transaction_events(block)
            for tx in transactions:
                for bot in self.bots:
                    if bot.handles_transactions:
                        findings.extend(await self._dispatch(bot, bot.handle_transaction, tx))

        if findings:
            await self.publisher.publish(findings)

        self.last_block = block_number
        self.next_block = block_number + 1
        self.blocks_processed += 1
        logger.debug(
            f"Processed block {block_number}",
            extra={'extra_data': {
                'block_number': block_number,
                'transactions': len(block.transaction_hashes),
                'findings': len(findings),
            }}
        )
        return findings

    async def poll_once(self) -> int:
        """Process every block up to the chain head; returns how many were processed."""
        head = await self.source.latest_block_number()
        if self.next_block is None:
            self.next_block = head
        processed = 0
        while self.next_block <= head and not self._stop.is_set():
            await self.process_block(self.next_block)
            processed += 1
        return processed

    async def run(self, poll_interval: float = 12.0) -> None:
        """Poll until stop() is called."""
        self.started_at = time.time()
        self._stop.clear()
        logger.info(
            "Bot runner started",
            extra={'extra_data': {'bots': self.bot_names, 'start_block': self.next_block}}
        )
        while not self._stop.is_set():
            try:
                await self.poll_once()
            except ChainConnectionError as e:
                logger.warning(
                    f"Chain unavailable, retrying in {poll_interval}s: {e.message}",
                    extra={'extra_data': {'block_number': self.next_block}}
                )
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info(
            "Bot runner stopped",
            extra={'extra_data': {'last_block': self.last_block}}
        )

    def stop(self) -> None:
        self._stop.set()

    def status(self) -> Dict[str, Any]:
        return {
            'running': self.running,
            'bots': self.bot_names,
            'last_block': self.last_block,
            'next_block': self.next_block,
            'blocks_processed': self.blocks_processed,
            'handler_errors': self.handler_errors,
            'uptime_seconds': time.time() - self.started_at if self.started_at else 0.0,
        }
