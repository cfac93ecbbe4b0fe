"""
Static ABI fragments for the lending protocol contracts.

Only the functions and events the bots read are listed.
"""
from __future__ import annotations

from typing import Any, Dict, List

ABI = List[Dict[str, Any]]


def _address(name: str, indexed: bool = False) -> Dict[str, Any]:
    return {"name": name, "type": "address", "internalType": "address", "indexed": indexed}


def _uint(name: str, bits: int = 256, indexed: bool = False) -> Dict[str, Any]:
    kind = f"uint{bits}"
    return {"name": name, "type": kind, "internalType": kind, "indexed": indexed}


def _view(name: str, inputs: ABI, outputs: ABI) -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


def _event(name: str, inputs: ABI) -> Dict[str, Any]:
    return {"name": name, "type": "event", "anonymous": False, "inputs": inputs}


def _plain(param: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in param.items() if k != "indexed"}


LENDING_POOL_ABI: ABI = [
    _event("Deposit", [
        _address("reserve", indexed=True),
        _address("user"),
        _address("onBehalfOf", indexed=True),
        _uint("amount"),
        _uint("referral", bits=16, indexed=True),
    ]),
    _event("Withdraw", [
        _address("reserve", indexed=True),
        _address("user", indexed=True),
        _address("to", indexed=True),
        _uint("amount"),
    ]),
    _event("Borrow", [
        _address("reserve", indexed=True),
        _address("user"),
        _address("onBehalfOf", indexed=True),
        _uint("amount"),
        _uint("borrowRateMode"),
        _uint("borrowRate"),
        _uint("referral", bits=16, indexed=True),
    ]),
    _event("Repay", [
        _address("reserve", indexed=True),
        _address("user", indexed=True),
        _address("repayer", indexed=True),
        _uint("amount"),
    ]),
    _event("FlashLoan", [
        _address("target", indexed=True),
        _address("initiator", indexed=True),
        _address("asset", indexed=True),
        _uint("amount"),
        _uint("premium"),
        _uint("referralCode", bits=16),
    ]),
    _view("getReservesList", [], [
        {"name": "", "type": "address[]", "internalType": "address[]"},
    ]),
]

PROTOCOL_DATA_PROVIDER_ABI: ABI = [
    _view("getAllReservesTokens", [], [{
        "name": "",
        "type": "tuple[]",
        "internalType": "struct AaveProtocolDataProvider.TokenData[]",
        "components": [
            {"name": "symbol", "type": "string", "internalType": "string"},
            _plain(_address("tokenAddress")),
        ],
    }]),
    _view("getReserveData", [_plain(_address("asset"))], [
        _plain(_uint("availableLiquidity")),
        _plain(_uint("totalStableDebt")),
        _plain(_uint("totalVariableDebt")),
        _plain(_uint("liquidityRate")),
        _plain(_uint("variableBorrowRate")),
        _plain(_uint("stableBorrowRate")),
        _plain(_uint("averageStableBorrowRate")),
        _plain(_uint("liquidityIndex")),
        _plain(_uint("variableBorrowIndex")),
        _plain(_uint("lastUpdateTimestamp", bits=40)),
    ]),
]

PRICE_ORACLE_ABI: ABI = [
    _view("getAssetPrice", [_plain(_address("asset"))], [_plain(_uint(""))]),
    _view("getAssetsPrices", [
        {"name": "assets", "type": "address[]", "internalType": "address[]"},
    ], [
        {"name": "", "type": "uint256[]", "internalType": "uint256[]"},
    ]),
]

LENDING_POOL_ADDRESSES_PROVIDER_ABI: ABI = [
    _view("getLendingPool", [], [_plain(_address(""))]),
    _view("getPriceOracle", [], [_plain(_address(""))]),
]

ERC20_DECIMALS_ABI: ABI = [
    _view("decimals", [], [_plain(_uint("", bits=8))]),
]

CONTRACT_ABIS: Dict[str, ABI] = {
    "LendingPool": LENDING_POOL_ABI,
    "ProtocolDataProvider": PROTOCOL_DATA_PROVIDER_ABI,
    "PriceOracle": PRICE_ORACLE_ABI,
    "LendingPoolAddressesProvider": LENDING_POOL_ADDRESSES_PROVIDER_ABI,
    "ERC20": ERC20_DECIMALS_ABI,
}


def get_abi(contract_name: str) -> ABI:
    """Look up the ABI of a logical contract name."""
    try:
        return CONTRACT_ABIS[contract_name]
    except KeyError:
        raise KeyError(f"No ABI registered for contract {contract_name!r}") from None
