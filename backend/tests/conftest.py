"""
Shared builders for receipt logs and transaction events.

File: backend/tests/conftest.py
"""
from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

import pytest
from eth_abi import encode
from hexbytes import HexBytes

from lendwatch.chains.abis import LENDING_POOL_ABI
from lendwatch.chains.decoder import LogDecoder
from lendwatch.chains.events import TransactionEvent
from lendwatch.core.settings import load_settings

LENDING_POOL = "0x7d2768dE32b0b80b7a3454c06BdAc94A69DDc7A9"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USER = "0x1111111111111111111111111111111111111111"
OTHER_CONTRACT = "0x2222222222222222222222222222222222222222"

_decoder = LogDecoder(LENDING_POOL_ABI)


def encode_log(
    event_name: str,
    indexed: Sequence[Tuple[str, Any]],
    data: Sequence[Tuple[str, Any]],
    address: str = LENDING_POOL,
    log_index: int = 0,
    block_number: int = 100,
    tx_hash: str = "0x" + "ab" * 32,
) -> Dict[str, Any]:
    """Build a raw receipt log the way a node returns it."""
    topics = [_decoder.topic(event_name)]
    topics.extend(HexBytes(encode([abi_type], [value])) for abi_type, value in indexed)
    return {
        'address': address,
        'topics': topics,
        'data': HexBytes(encode([t for t, _ in data], [v for _, v in data])),
        'logIndex': log_index,
        'transactionIndex': 0,
        'transactionHash': HexBytes(tx_hash),
        'blockHash': HexBytes(b'\x01' * 32),
        'blockNumber': block_number,
    }


def withdraw_log(reserve: str, amount: int, **kwargs: Any) -> Dict[str, Any]:
    return encode_log(
        "Withdraw",
        [("address", reserve), ("address", USER), ("address", USER)],
        [("uint256", amount)],
        **kwargs,
    )


def deposit_log(reserve: str, amount: int, **kwargs: Any) -> Dict[str, Any]:
    return encode_log(
        "Deposit",
        [("address", reserve), ("address", USER), ("uint16", 0)],
        [("address", USER), ("uint256", amount)],
        **kwargs,
    )


def flash_loan_log(asset: str, amount: int, premium: int, **kwargs: Any) -> Dict[str, Any]:
    return encode_log(
        "FlashLoan",
        [("address", USER), ("address", USER), ("address", asset)],
        [("uint256", amount), ("uint256", premium), ("uint16", 0)],
        **kwargs,
    )


def transaction(logs: List[Dict[str, Any]], block_number: int = 100, index: int = 0) -> TransactionEvent:
    tx_hash = "0x" + f"{index:064x}"
    return TransactionEvent(
        hash=tx_hash,
        block_number=block_number,
        logs=logs,
        addresses={USER.lower(), LENDING_POOL.lower()},
        transaction_index=index,
    )


@pytest.fixture
def settings():
    """Default settings, isolated from any local .env."""
    return load_settings(_env_file=None)
