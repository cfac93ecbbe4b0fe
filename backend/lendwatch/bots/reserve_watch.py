"""
Reserve price watch bot.

Every block, reads the oracle price of each reserve asset and flags prices
that jump far outside the asset's recent history.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from ..chains.evm_client import LendingProtocolClient, ReserveToken
from ..chains.events import BlockEvent
from ..core.concurrency import gather_settled, successes
from ..core.exceptions import ObservationFetchError, create_safe_error_dict
from ..core.settings import ReserveWatchSettings, Settings
from ..monitoring.findings import Finding
from ..stats import AnomalyRule, RollingWindow, StatsRegistry, evaluate, format_units
from .base import ProtocolIdentity, build_rule

logger = logging.getLogger(__name__)

NAME = "reserve-watch"


@dataclass
class ReserveWatchState:
    config: ReserveWatchSettings
    identity: ProtocolIdentity
    client: LendingProtocolClient
    registry: StatsRegistry[RollingWindow]
    rule: AnomalyRule


def create_alert(state: ReserveWatchState, asset: ReserveToken, price_wei: int) -> Finding:
    price_eth = format_units(price_wei)
    return Finding(
        name=f"High {state.identity.protocol_name} {asset.symbol} Reserve Price Change",
        description=f"{asset.symbol} Price: {price_eth} ether",
        alert_id=state.identity.alert_id("RESERVE-PRICE"),
        severity=state.config.severity,
        type=state.config.type,
        protocol=state.identity.protocol_name,
        metadata={
            "symbol": asset.symbol,
            "price": price_eth,
        },
        addresses=[asset.address.lower()],
    )


def initialize(settings: Settings, client: LendingProtocolClient) -> ReserveWatchState:
    config = settings.reserve_watch
    return ReserveWatchState(
        config=config,
        identity=ProtocolIdentity.from_settings(settings),
        client=client,
        registry=StatsRegistry(lambda: RollingWindow(config.window_size)),
        rule=build_rule(config),
    )


async def handle_block(event: BlockEvent, state: ReserveWatchState) -> List[Finding]:
    findings: List[Finding] = []
    block = event.block_number

    try:
        assets = await state.client.get_all_reserves_tokens(block=block)
    except ObservationFetchError as e:
        logger.error(
            f"Could not list reserves at block {block}",
            extra={'extra_data': {**create_safe_error_dict(e), 'block_number': block}}
        )
        return findings

    async def fetch_price(asset: ReserveToken) -> int:
        return await state.client.get_asset_price(asset.address, block=block)

    prices = await gather_settled(assets, fetch_price, label=lambda a: f"price of {a.symbol}")

    # fold sequentially, in reserve order
    for outcome in successes(prices):
        asset, price_wei = outcome.item, outcome.value
        evaluation = evaluate(asset.symbol, price_wei, state.registry, state.rule)
        if evaluation.is_anomalous:
            findings.append(create_alert(state, asset, price_wei))

    return findings
