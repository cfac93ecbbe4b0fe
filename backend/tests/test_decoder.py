"""
Tests for receipt log filtering and decoding.

File: backend/tests/test_decoder.py
"""
from __future__ import annotations

import pytest
from hexbytes import HexBytes
from web3 import Web3

from conftest import DAI, LENDING_POOL, OTHER_CONTRACT, USER, deposit_log, withdraw_log
from lendwatch.chains.abis import LENDING_POOL_ABI
from lendwatch.chains.decoder import LogDecoder, event_signature
from lendwatch.chains.events import TransactionEvent
from lendwatch.core.exceptions import DecodeError


@pytest.fixture
def decoder():
    return LogDecoder(LENDING_POOL_ABI)


class TestLogDecoder:
    """Test suite for LogDecoder."""

    def test_topics_are_event_signature_hashes(self, decoder):
        assert decoder.topic("Withdraw") == HexBytes(
            Web3.keccak(text="Withdraw(address,address,address,uint256)")
        )
        assert set(decoder.event_names) >= {"Deposit", "Withdraw", "Borrow", "Repay", "FlashLoan"}

    def test_event_signature(self):
        entry = next(e for e in LENDING_POOL_ABI if e.get("name") == "FlashLoan")
        assert event_signature(entry) == "FlashLoan(address,address,address,uint256,uint256,uint16)"

    def test_unknown_event_topic(self, decoder):
        with pytest.raises(KeyError):
            decoder.topic("Liquidate")

    def test_decode_withdraw(self, decoder):
        decoded = decoder.decode(withdraw_log(DAI, 5 * 10**18, log_index=3), "Withdraw")
        assert decoded.name == "Withdraw"
        assert decoded.address == LENDING_POOL
        assert decoded.args["reserve"] == DAI
        assert decoded.args["to"] == USER
        assert decoded.args["amount"] == 5 * 10**18
        assert decoded.log_index == 3
        assert decoded.transaction_hash == "0x" + "ab" * 32

    def test_decode_mismatched_log_raises(self, decoder):
        log = withdraw_log(DAI, 1)
        log["data"] = HexBytes(b"\x00")
        with pytest.raises(DecodeError):
            decoder.decode(log, "Withdraw")

    def test_filter_by_event_and_address(self, decoder):
        logs = [
            withdraw_log(DAI, 1, log_index=0),
            deposit_log(DAI, 2, log_index=1),
            withdraw_log(DAI, 3, log_index=2, address=OTHER_CONTRACT),
        ]
        decoded = decoder.filter_logs(logs, ["Withdraw"], LENDING_POOL.lower())
        assert [d.args["amount"] for d in decoded] == [1]

        decoded = decoder.filter_logs(logs, ["Withdraw", "Deposit"], LENDING_POOL)
        assert [d.name for d in decoded] == ["Withdraw", "Deposit"]

    def test_filter_skips_undecodable_logs(self, decoder):
        broken = withdraw_log(DAI, 1, log_index=0)
        broken["data"] = HexBytes(b"\x01\x02")
        decoded = decoder.filter_logs([broken, withdraw_log(DAI, 9, log_index=1)], ["Withdraw"])
        assert [d.args["amount"] for d in decoded] == [9]


class TestTransactionEvent:
    """Test suite for TransactionEvent.from_receipt."""

    def test_from_receipt(self):
        receipt = {
            'transactionHash': HexBytes("0x" + "cd" * 32),
            'blockNumber': 12,
            'transactionIndex': 4,
            'from': USER,
            'to': LENDING_POOL,
            'contractAddress': None,
            'logs': [withdraw_log(DAI, 1)],
        }
        event = TransactionEvent.from_receipt(receipt)
        assert event.hash == "0x" + "cd" * 32
        assert event.block_number == 12
        assert event.involves(LENDING_POOL)
        assert event.addresses == {USER.lower(), LENDING_POOL.lower()}
        assert len(event.logs) == 1
