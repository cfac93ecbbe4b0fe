"""Block and transaction events delivered to the bots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Set

from web3 import Web3


def to_hex(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return Web3.to_hex(value)


@dataclass(frozen=True)
class BlockEvent:
    block_number: int
    block_hash: Optional[str] = None
    timestamp: Optional[int] = None
    transaction_hashes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TransactionEvent:
    """A mined transaction with its receipt logs and every address it touched."""

    hash: str
    block_number: int
    logs: List[Mapping[str, Any]] = field(default_factory=list)
    addresses: Set[str] = field(default_factory=set)
    transaction_index: Optional[int] = None

    @classmethod
    def from_receipt(cls, receipt: Mapping[str, Any]) -> "TransactionEvent":
        logs = [dict(log) for log in receipt.get('logs', [])]
        addresses: Set[str] = set()
        for key in ('from', 'to', 'contractAddress'):
            value = receipt.get(key)
            if value:
                addresses.add(str(value).lower())
        for log in logs:
            if log.get('address'):
                addresses.add(str(log['address']).lower())

        return cls(
            hash=to_hex(receipt['transactionHash']),
            block_number=int(receipt['blockNumber']),
            logs=logs,
            addresses=addresses,
            transaction_index=receipt.get('transactionIndex'),
        )

    def involves(self, address: str) -> bool:
        return address.lower() in self.addresses
