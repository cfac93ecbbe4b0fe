"""
Total value and liquidity bot.

Tracks available liquidity, stable and variable debt, total debt and total
value locked of every reserve, each field in its own rolling window.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from ..chains.evm_client import LendingProtocolClient, ReserveData
from ..chains.events import BlockEvent
from ..core.concurrency import gather_settled, successes
from ..core.exceptions import ObservationFetchError, create_safe_error_dict
from ..core.settings import Settings, TotalValueSettings
from ..monitoring.findings import Finding
from ..stats import AnomalyRule, RollingWindow, StatsRegistry, evaluate
from .base import ProtocolIdentity, build_rule

logger = logging.getLogger(__name__)

NAME = "total-value-and-liquidity"


@dataclass
class TotalValueState:
    config: TotalValueSettings
    identity: ProtocolIdentity
    client: LendingProtocolClient
    registry: StatsRegistry[RollingWindow]
    rule: AnomalyRule


def create_alert(
    state: TotalValueState, field: str, reserve: str, observation: Decimal, average: Decimal
) -> Finding:
    return Finding(
        name=f"Anomalous {state.identity.protocol_name} {field} change",
        description=f"Reserve {reserve} had a large change in {field}",
        alert_id=state.identity.alert_id("TVL"),
        severity=state.config.severity,
        type=state.config.type,
        protocol=state.identity.protocol_name,
        metadata={
            "field": field,
            "reserve": reserve,
            "observation": str(observation),
            "average": str(average),
        },
        addresses=[reserve.lower()],
    )


def initialize(settings: Settings, client: LendingProtocolClient) -> TotalValueState:
    config = settings.total_value
    return TotalValueState(
        config=config,
        identity=ProtocolIdentity.from_settings(settings),
        client=client,
        registry=StatsRegistry(lambda: RollingWindow(config.window_size)),
        rule=build_rule(config),
    )


async def handle_block(event: BlockEvent, state: TotalValueState) -> List[Finding]:
    findings: List[Finding] = []
    block = event.block_number

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
        for field in state.config.data_fields:
            key = (data.reserve, field)
            evaluation = evaluate(key, data.field(field), state.registry, state.rule)
            if evaluation.is_anomalous:
                findings.append(create_alert(
                    state, field, data.reserve, evaluation.value, evaluation.snapshot.average
                ))

    return findings
