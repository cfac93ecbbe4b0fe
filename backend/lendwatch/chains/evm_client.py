"""
EVM access for the lending protocol: contract reads and block/receipt events.

web3 calls are synchronous and run through asyncio.to_thread.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Union

from web3 import Web3
from web3.providers import HTTPProvider

from ..core.concurrency import gather_settled, successes
from ..core.exceptions import ChainConnectionError, ObservationFetchError
from ..core.settings import ContractAddresses, Settings
from .abis import get_abi
from .events import BlockEvent, TransactionEvent, to_hex

logger = logging.getLogger(__name__)

BlockTag = Union[int, str, None]


@dataclass(frozen=True)
class ReserveToken:
    symbol: str
    address: str


@dataclass(frozen=True)
class ReserveData:
    """Reserve balances reported by the protocol data provider, in token units."""

    reserve: str
    available_liquidity: int
    total_stable_debt: int
    total_variable_debt: int
    last_update_timestamp: int = 0

    @property
    def total_debt(self) -> int:
        return self.total_stable_debt + self.total_variable_debt

    @property
    def total_value_locked(self) -> int:
        return self.total_debt + self.available_liquidity

    def field(self, name: str) -> int:
        return getattr(self, name)


def build_web3(settings: Settings) -> Web3:
    """Create an HTTP web3 instance for the configured node."""
    return Web3(HTTPProvider(
        settings.rpc_url,
        request_kwargs={'timeout': settings.rpc_timeout_seconds},
    ))


class LendingProtocolClient:
    """
    Reads reserve lists, reserve data, prices and token metadata.

    Every failure is raised as ObservationFetchError so callers can skip the
    affected key without aborting the rest of the event.
    """

    def __init__(self, w3: Web3, contracts: ContractAddresses):
        self.w3 = w3
        self.contracts = contracts
        self._lending_pool = self._contract(contracts.lending_pool, "LendingPool")
        self._data_provider = self._contract(
            contracts.protocol_data_provider, "ProtocolDataProvider"
        )
        self._price_oracle = self._contract(contracts.price_oracle, "PriceOracle")
        self._addresses_provider = self._contract(
            contracts.lending_pool_addresses_provider, "LendingPoolAddressesProvider"
        )

    def _contract(self, address: str, name: str) -> Any:
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=get_abi(name),
        )

    def with_price_oracle(self, address: str) -> "LendingProtocolClient":
        """Copy of this client reading prices from another oracle."""
        contracts = self.contracts.model_copy(update={"price_oracle": address})
        return LendingProtocolClient(self.w3, contracts)

    async def _call(self, description: str, function: Any, block: BlockTag = None) -> Any:
        block_identifier = "latest" if block is None else block
        try:
            return await asyncio.to_thread(function.call, block_identifier=block_identifier)
        except Exception as e:
            raise ObservationFetchError(
                f"{description} failed: {e}",
                details={'call': description, 'block': block_identifier},
            ) from e

    async def get_all_reserves_tokens(self, block: BlockTag = None) -> List[ReserveToken]:
        tokens = await self._call(
            "getAllReservesTokens",
            self._data_provider.functions.getAllReservesTokens(),
            block,
        )
        return [ReserveToken(symbol=symbol, address=address) for symbol, address in tokens]

    async def get_reserves_list(self, block: BlockTag = None) -> List[str]:
        reserves = await self._call(
            "getReservesList", self._lending_pool.functions.getReservesList(), block
        )
        return list(reserves)

    async def get_reserve_data(self, reserve: str, block: BlockTag = None) -> ReserveData:
        data = await self._call(
            f"getReserveData({reserve})",
            self._data_provider.functions.getReserveData(Web3.to_checksum_address(reserve)),
            block,
        )
        return ReserveData(
            reserve=reserve,
            available_liquidity=int(data[0]),
            total_stable_debt=int(data[1]),
            total_variable_debt=int(data[2]),
            last_update_timestamp=int(data[9]),
        )

    async def get_asset_price(self, asset: str, block: BlockTag = None) -> int:
        """Price of one asset in ETH wei."""
        price = await self._call(
            f"getAssetPrice({asset})",
            self._price_oracle.functions.getAssetPrice(Web3.to_checksum_address(asset)),
            block,
        )
        return int(price)

    async def get_assets_prices(self, assets: Sequence[str], block: BlockTag = None) -> List[int]:
        prices = await self._call(
            "getAssetsPrices",
            self._price_oracle.functions.getAssetsPrices(
                [Web3.to_checksum_address(asset) for asset in assets]
            ),
            block,
        )
        return [int(price) for price in prices]

    async def get_token_decimals(self, token: str) -> int:
        contract = self._contract(token, "ERC20")
        decimals = await self._call(f"decimals({token})", contract.functions.decimals())
        return int(decimals)

    async def get_lending_pool_address(self) -> str:
        return await self._call(
            "getLendingPool", self._addresses_provider.functions.getLendingPool()
        )

    async def get_price_oracle_address(self) -> str:
        return await self._call(
            "getPriceOracle", self._addresses_provider.functions.getPriceOracle()
        )


class ChainEventSource:
    """Turns blocks into BlockEvent and TransactionEvent objects."""

    def __init__(self, w3: Web3):
        self.w3 = w3

    async def _run(self, description: str, func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except Exception as e:
            raise ChainConnectionError(
                f"{description} failed: {e}", details={'call': description}
            ) from e

    async def latest_block_number(self) -> int:
        return int(await self._run("eth_blockNumber", lambda: self.w3.eth.block_number))

    async def get_block_event(self, block_number: int) -> BlockEvent:
        block = await self._run(
            f"eth_getBlockByNumber({block_number})",
            lambda: self.w3.eth.get_block(block_number, full_transactions=False),
        )
        return BlockEvent(
            block_number=int(block['number']),
            block_hash=to_hex(block.get('hash')),
            timestamp=block.get('timestamp'),
            transaction_hashes=[to_hex(tx) for tx in block.get('transactions', [])],
        )

    async def get_transaction_events(self, block: BlockEvent) -> List[TransactionEvent]:
        """Receipts for every transaction of the block, in transaction order."""

        async def fetch(tx_hash: str) -> TransactionEvent:
            receipt = await self._run(
                f"eth_getTransactionReceipt({tx_hash})",
                lambda: self.w3.eth.get_transaction_receipt(tx_hash),
            )
            return TransactionEvent.from_receipt(receipt)

        settled = await gather_settled(
            block.transaction_hashes, fetch, label=lambda h: f"receipt {h}"
        )
        return [outcome.value for outcome in successes(settled)]

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        address: str,
        topics: Sequence[Any],
    ) -> List[Dict[str, Any]]:
        """Logs emitted by address between two blocks, both inclusive."""
        log_filter = {
            'fromBlock': from_block,
            'toBlock': to_block,
            'address': Web3.to_checksum_address(address),
            'topics': [to_hex(topic) for topic in topics],
        }
        logs = await self._run(
            f"eth_getLogs({from_block}-{to_block})",
            lambda: self.w3.eth.get_logs(log_filter),
        )
        return [dict(log) for log in logs]
