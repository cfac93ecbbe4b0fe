"""
Receipt log filtering and decoding against a static ABI.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from hexbytes import HexBytes
from web3 import Web3

from ..core.exceptions import DecodeError, create_safe_error_dict
from .abis import ABI
from .events import to_hex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedLog:
    """A receipt log decoded into named event arguments."""

    name: str
    address: str
    args: Dict[str, Any] = field(default_factory=dict)
    log_index: Optional[int] = None
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None


def event_signature(entry: Mapping[str, Any]) -> str:
    types = ",".join(param["type"] for param in entry["inputs"])
    return f"{entry['name']}({types})"


class LogDecoder:
    """
    Decodes the events of one contract ABI out of raw receipt logs.
    """

    def __init__(self, abi: ABI, w3: Optional[Web3] = None):
        self._w3 = w3 or Web3()
        self._contract = self._w3.eth.contract(abi=abi)
        self._topics: Dict[str, HexBytes] = {
            entry["name"]: HexBytes(Web3.keccak(text=event_signature(entry)))
            for entry in abi
            if entry.get("type") == "event"
        }
        self._inputs: Dict[str, List[str]] = {
            entry["name"]: [param["name"] for param in entry["inputs"]]
            for entry in abi
            if entry.get("type") == "event"
        }

    @property
    def event_names(self) -> List[str]:
        return list(self._topics)

    def input_names(self, event_name: str) -> List[str]:
        self.topic(event_name)  # unknown events raise KeyError
        return list(self._inputs[event_name])

    def topic(self, event_name: str) -> HexBytes:
        try:
            return self._topics[event_name]
        except KeyError:
            raise KeyError(f"Event {event_name!r} is not in the ABI") from None

    def decode(self, log: Mapping[str, Any], event_name: str) -> DecodedLog:
        """
        Decode one log as event_name.

        Raises:
            DecodeError: If the log data does not match the event layout
        """
        try:
            event = getattr(self._contract.events, event_name)()
            decoded = event.process_log(log)
        except Exception as e:
            raise DecodeError(
                f"Failed to decode {event_name} log: {e}",
                details={
                    'event': event_name,
                    'address': str(log.get('address')),
                    'log_index': log.get('logIndex'),
                },
            ) from e

        tx_hash = log.get('transactionHash')
        return DecodedLog(
            name=event_name,
            address=Web3.to_checksum_address(log['address']),
            args=dict(decoded['args']),
            log_index=log.get('logIndex'),
            transaction_hash=to_hex(tx_hash),
            block_number=log.get('blockNumber'),
        )

    def filter_logs(
        self,
        logs: Iterable[Mapping[str, Any]],
        event_names: Iterable[str],
        address: Optional[str] = None,
    ) -> List[DecodedLog]:
        """
        Decode every log emitted by address whose topic matches one of event_names.

        Logs that match but fail to decode are logged and skipped.
        """
        wanted = {self.topic(name): name for name in event_names}
        address = address.lower() if address else None

        decoded: List[DecodedLog] = []
        for log in logs:
            if address is not None and str(log.get('address', '')).lower() != address:
                continue
            topics = log.get('topics') or []
            if not topics:
                continue
            event_name = wanted.get(HexBytes(topics[0]))
            if event_name is None:
                continue
            try:
                decoded.append(self.decode(log, event_name))
            except DecodeError as e:
                logger.warning(
                    e.message,
                    extra={'extra_data': create_safe_error_dict(e)}
                )
        return decoded
