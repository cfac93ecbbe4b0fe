"""
Stale reserve data bot.

Every block, measures how long ago each reserve's state was last updated and
flags ages far outside that reserve's recent history.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from ..chains.evm_client import LendingProtocolClient, ReserveData
from ..chains.events import BlockEvent
from ..core.concurrency import gather_settled, successes
from ..core.exceptions import ObservationFetchError, create_safe_error_dict
from ..core.settings import Settings, StaleReserveSettings
from ..monitoring.findings import Finding
from ..stats import AnomalyRule, Evaluation, RollingWindow, StatsRegistry, evaluate
from .base import ProtocolIdentity, build_rule

logger = logging.getLogger(__name__)

NAME = "stale-reserve-data"


@dataclass
class StaleReserveState:
    config: StaleReserveSettings
    identity: ProtocolIdentity
    client: LendingProtocolClient
    registry: StatsRegistry[RollingWindow]
    rule: AnomalyRule


def create_alert(state: StaleReserveState, reserve: str, evaluation: Evaluation) -> Finding:
    return Finding(
        name=f"{state.identity.protocol_name} Stale Reserve Data",
        description=f"Asset address: {reserve}",
        alert_id=state.identity.alert_id("STALE-RESERVE-DATA"),
        severity=state.config.severity,
        type=state.config.type,
        protocol=state.identity.protocol_name,
        metadata={
            "assetAddress": reserve,
            "age": str(evaluation.value),
            "average": str(evaluation.snapshot.average),
            "limit": str(evaluation.limit),
        },
        addresses=[reserve.lower()],
    )


def initialize(settings: Settings, client: LendingProtocolClient) -> StaleReserveState:
    config = settings.stale_reserve
    return StaleReserveState(
        config=config,
        identity=ProtocolIdentity.from_settings(settings),
        client=client,
        registry=StatsRegistry(lambda: RollingWindow(config.window_size)),
        rule=build_rule(config),
    )


async def handle_block(event: BlockEvent, state: StaleReserveState) -> List[Finding]:
    findings: List[Finding] = []
    block = event.block_number

    if event.timestamp is None:
        logger.warning(
            f"Block {block} has no timestamp, skipping reserve ages",
            extra={'extra_data': {'block_number': block}}
        )
        return findings

    try:
        reserves = await state.client.get_reserves_list(block=block)
    except ObservationFetchError as e:
        logger.error(
            f"Could not list reserves at block {block}",
            extra={'extra_data': {**create_safe_error_dict(e), 'block_number': block}}
        )
        return findings

    async def fetch_data(reserve: str) -> ReserveData:
        return await state.client.get_reserve_data(reserve, block=block)

    reserve_data = await gather_settled(reserves, fetch_data, label=lambda r: f"reserve {r}")

    for outcome in successes(reserve_data):
        data = outcome.value
        age = int(event.timestamp) - data.last_update_timestamp
        evaluation = evaluate(data.reserve, age, state.registry, state.rule)
        if evaluation.is_anomalous:
            findings.append(create_alert(state, data.reserve, evaluation))

    return findings
