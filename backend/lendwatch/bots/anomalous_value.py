"""
Anomalous transaction value bot.

Flags Borrow, Deposit, Repay and Withdraw amounts that lie far outside the
recent history of the same reserve.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..chains.abis import LENDING_POOL_ABI
from ..chains.decoder import DecodedLog, LogDecoder
from ..chains.events import TransactionEvent
from ..core.exceptions import create_safe_error_dict
from ..core.settings import AnomalousValueSettings, Settings
from ..monitoring.findings import Finding
from ..stats import AnomalyRule, Evaluation, RollingWindow, StatsRegistry, evaluate
from .base import ProtocolIdentity, build_rule

logger = logging.getLogger(__name__)

NAME = "anomalous-value"


@dataclass
class AnomalousValueState:
    config: AnomalousValueSettings
    identity: ProtocolIdentity
    lending_pool_address: str
    decoder: LogDecoder
    registry: StatsRegistry[RollingWindow]
    rule: AnomalyRule


def create_alert(state: AnomalousValueState, log: DecodedLog, evaluation: Evaluation) -> Finding:
    reserve = log.args["reserve"]
    return Finding(
        name=f"{state.identity.protocol_name} High {log.name} Amount",
        description=f"A transaction utilized a large amount of {reserve}",
        alert_id=state.identity.alert_id("HIGH-TX-AMOUNT"),
        severity=state.config.severity,
        type=state.config.type,
        protocol=state.identity.protocol_name,
        metadata={
            "event": log.name,
            "amount": str(log.args["amount"]),
            "token": reserve,
            "average": str(evaluation.snapshot.average),
            "standardDeviation": str(evaluation.snapshot.standard_deviation),
        },
    )


def initialize(settings: Settings, decoder: Optional[LogDecoder] = None) -> AnomalousValueState:
    config = settings.anomalous_value
    return AnomalousValueState(
        config=config,
        identity=ProtocolIdentity.from_settings(settings),
        lending_pool_address=settings.contracts.lending_pool,
        decoder=decoder or LogDecoder(LENDING_POOL_ABI),
        registry=StatsRegistry(lambda: RollingWindow(config.window_size)),
        rule=build_rule(config),
    )


async def handle_transaction(event: TransactionEvent, state: AnomalousValueState) -> List[Finding]:
    findings: List[Finding] = []

    logs = state.decoder.filter_logs(
        event.logs, state.config.events, state.lending_pool_address
    )

    for log in logs:
        try:
            reserve = log.args["reserve"]
            amount = log.args["amount"]
            evaluation = evaluate(reserve, amount, state.registry, state.rule)
        except (KeyError, ValueError) as e:
            logger.warning(
                f"Skipping malformed {log.name} log: {e}",
                extra={'extra_data': {**create_safe_error_dict(e), 'tx_hash': event.hash}}
            )
            continue

        if evaluation.is_anomalous:
            findings.append(create_alert(state, log, evaluation))

    return findings
