"""
Lending protocol monitoring bots.

File: backend/lendwatch/bots/__init__.py
"""
from __future__ import annotations

import logging
from typing import List, Optional

from ..chains.abis import LENDING_POOL_ABI
from ..chains.decoder import LogDecoder
from ..chains.evm_client import LendingProtocolClient
from ..core.exceptions import ConfigurationError, LendWatchError, create_safe_error_dict
from ..core.settings import Settings
from . import anomalous_value, reserve_watch, stale_reserve, total_value, treasury_fees
from .base import Bot

logger = logging.getLogger(__name__)


async def build_bots(
    settings: Settings,
    client: LendingProtocolClient,
    decoder: Optional[LogDecoder] = None,
) -> List[Bot]:
    """
    Initialize every enabled bot.

    Configuration errors abort start-up. A bot whose initialization fails for
    any other reason (e.g. the node is unreachable) is left out and logged.
    """
    decoder = decoder or LogDecoder(LENDING_POOL_ABI)
    bots: List[Bot] = []

    if settings.anomalous_value.enabled:
        bots.append(Bot(
            anomalous_value.NAME,
            anomalous_value.initialize(settings, decoder),
            on_transaction=anomalous_value.handle_transaction,
        ))

    if settings.reserve_watch.enabled:
        bots.append(Bot(
            reserve_watch.NAME,
            reserve_watch.initialize(settings, client),
            on_block=reserve_watch.handle_block,
        ))

    if settings.total_value.enabled:
        bots.append(Bot(
            total_value.NAME,
            total_value.initialize(settings, client),
            on_block=total_value.handle_block,
        ))

    if settings.stale_reserve.enabled:
        bots.append(Bot(
            stale_reserve.NAME,
            stale_reserve.initialize(settings, client),
            on_block=stale_reserve.handle_block,
        ))

    if settings.treasury_fees.enabled:
        try:
            state = await treasury_fees.initialize(settings, client, decoder)
        except ConfigurationError:
            raise
        except LendWatchError as e:
            logger.error(
                f"Failed to initialize {treasury_fees.NAME}: {e.message}",
                extra={'extra_data': {**create_safe_error_dict(e), 'bot': treasury_fees.NAME}}
            )
        else:
            bots.append(Bot(
                treasury_fees.NAME, state, on_transaction=treasury_fees.handle_transaction
            ))

    logger.info(
        f"Initialized {len(bots)} bots",
        extra={'extra_data': {'bots': [bot.name for bot in bots]}}
    )
    return bots


__all__ = ["Bot", "build_bots"]
