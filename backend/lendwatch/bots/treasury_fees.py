"""
Treasury fee monitor.

Prices every flash loan premium in ETH and compares it against the running
statistics of all premiums seen since start-up, optionally bootstrapped from
a historical dataset.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from ..chains.abis import LENDING_POOL_ABI
from ..chains.decoder import DecodedLog, LogDecoder
from ..chains.evm_client import LendingProtocolClient, ReserveToken
from ..chains.events import TransactionEvent
from ..core.concurrency import gather_settled, successes
from ..core.exceptions import DecodeError
from ..core.settings import Settings, TreasuryFeesSettings
from ..monitoring.findings import Finding, FindingSeverity, FindingType
from ..stats import (
    AnomalyRule,
    Direction,
    IncrementalAccumulator,
    StatsRegistry,
    accumulate,
    evaluate,
    scale_amount,
)
from ..stats.numeric import ETHER_DECIMALS
from .base import ProtocolIdentity, build_rule
from .premium_dataset import premium_in_eth, premiums_in_eth, read_premium_rows, spot_prices_by_asset

logger = logging.getLogger(__name__)

NAME = "treasury-fees-monitor"

# all premiums share one accumulator
PREMIUM_KEY = "flash-loan-premium-eth"


@dataclass(frozen=True)
class PremiumObservation:
    asset: str
    token_price_eth: Decimal
    premium_eth: Decimal


@dataclass
class TreasuryFeesState:
    config: TreasuryFeesSettings
    identity: ProtocolIdentity
    client: LendingProtocolClient
    decoder: LogDecoder
    lending_pool_address: str
    registry: StatsRegistry[IncrementalAccumulator]
    rule: AnomalyRule
    token_decimals: Dict[str, int] = field(default_factory=dict)


def create_alert(
    state: TreasuryFeesState,
    observation: PremiumObservation,
    finding_type: FindingType,
    severity: FindingSeverity,
    addresses: List[str],
) -> Finding:
    return Finding(
        name=f"{state.identity.protocol_name} Treasury Fee Monitor",
        description=(
            f"An anomalous flash loan premium of {observation.premium_eth} ETH "
            f"was paid to the treasury"
        ),
        alert_id=state.identity.alert_id("TREASURY-FEE"),
        severity=severity,
        type=finding_type,
        protocol=state.identity.protocol_name,
        metadata={
            "tokenAsset": observation.asset,
            "tokenPriceEth": str(observation.token_price_eth),
            "premiumEth": str(observation.premium_eth),
        },
        addresses=addresses,
    )


async def _token_decimals(
    client: LendingProtocolClient, tokens: List[ReserveToken]
) -> Dict[str, int]:
    async def fetch(token: ReserveToken) -> int:
        return await client.get_token_decimals(token.address)

    settled = await gather_settled(tokens, fetch, label=lambda t: f"decimals of {t.symbol}")
    return {outcome.item.address.lower(): outcome.value for outcome in successes(settled)}


async def initialize(
    settings: Settings,
    client: LendingProtocolClient,
    decoder: Optional[LogDecoder] = None,
) -> TreasuryFeesState:
    """
    Resolve the live LendingPool and price oracle, collect token decimals and
    replay the premium dataset into the accumulator.
    """
    config = settings.treasury_fees

    lending_pool_address = await client.get_lending_pool_address()
    oracle_address = await client.get_price_oracle_address()
    client = client.with_price_oracle(oracle_address)

    tokens = await client.get_all_reserves_tokens()
    token_decimals = await _token_decimals(client, tokens)

    registry: StatsRegistry[IncrementalAccumulator] = StatsRegistry(IncrementalAccumulator)

    if config.data_set is not None:
        rows = read_premium_rows(config.data_set)
        addresses = [token.address for token in tokens]
        spot_prices = spot_prices_by_asset(addresses, await client.get_assets_prices(addresses))
        history = accumulate(premiums_in_eth(rows, token_decimals, spot_prices))
        registry.seed(PREMIUM_KEY, IncrementalAccumulator(history))

        logger.info(
            f"Bootstrapped premium statistics from {history.count} data points",
            extra={'extra_data': {
                'bot': NAME,
                'mean': str(history.mean),
                'std_dev': str(history.std_dev),
                'count': history.count,
            }}
        )

    return TreasuryFeesState(
        config=config,
        identity=ProtocolIdentity.from_settings(settings),
        client=client,
        decoder=decoder or LogDecoder(LENDING_POOL_ABI),
        lending_pool_address=lending_pool_address,
        registry=registry,
        rule=build_rule(config, direction=Direction.ABOVE),
        token_decimals=token_decimals,
    )


async def handle_transaction(event: TransactionEvent, state: TreasuryFeesState) -> List[Finding]:
    findings: List[Finding] = []

    logs = state.decoder.filter_logs(event.logs, ["FlashLoan"], state.lending_pool_address)
    if not logs:
        return findings

    addresses = sorted(event.addresses)

    async def price_premium(log: DecodedLog) -> PremiumObservation:
        asset = log.args["asset"]
        decimals = state.token_decimals.get(asset.lower())
        if decimals is None:
            raise DecodeError(
                f"Unknown flash loan asset {asset}", details={'asset': asset}
            )
        price_wei = await state.client.get_asset_price(asset, block=event.block_number)
        token_price_eth = scale_amount(price_wei, ETHER_DECIMALS)
        return PremiumObservation(
            asset=asset,
            token_price_eth=token_price_eth,
            premium_eth=premium_in_eth(log.args["premium"], decimals, token_price_eth),
        )

    observations = await gather_settled(
        logs, price_premium, label=lambda log: f"FlashLoan log {log.log_index}"
    )

    # fold in log order
    for outcome in successes(observations):
        observation = outcome.value
        evaluation = evaluate(PREMIUM_KEY, observation.premium_eth, state.registry, state.rule)

        if evaluation.is_anomalous:
            findings.append(create_alert(
                state, observation, state.config.type, state.config.severity, addresses
            ))
        elif observation.premium_eth > state.config.low_threshold_eth:
            findings.append(create_alert(
                state, observation, state.config.low_type, state.config.low_severity, addresses
            ))

    return findings
