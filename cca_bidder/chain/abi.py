"""
Contract ABI fragments used by the bidder.

Only the functions the bidder calls are declared:
- CCA: auction parameters, tick list, submitBid
- ValidationHook: contributor period and purchase limits
- Soulbound: eligibility token check
- Multicall3: batched reads
"""

from typing import Dict, List


def _view(name: str, inputs: List[dict], outputs: List[dict]) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


def _uint(name: str = "", bits: int = 256) -> dict:
    return {"name": name, "type": f"uint{bits}", "internalType": f"uint{bits}"}


CCA_ABI: List[dict] = [
    _view("floorPrice", [], [_uint()]),
    _view("tickSpacing", [], [_uint()]),
    _view("MAX_BID_PRICE", [], [_uint()]),
    _view("endBlock", [], [_uint(bits=64)]),
    _view(
        "ticks",
        [_uint("price")],
        [
            {
                "name": "tick",
                "type": "tuple",
                "internalType": "struct Tick",
                "components": [
                    _uint("next"),
                    _uint("currencyDemandQ96"),
                ],
            }
        ],
    ),
    {
        "type": "function",
        "name": "submitBid",
        "stateMutability": "payable",
        "inputs": [
            _uint("maxPrice"),
            _uint("amount", bits=128),
            {"name": "owner", "type": "address", "internalType": "address"},
            _uint("prevTickPrice"),
            {"name": "hookData", "type": "bytes", "internalType": "bytes"},
        ],
        "outputs": [_uint()],
    },
]

VALIDATION_HOOK_ABI: List[dict] = [
    _view("CONTRIBUTOR_PERIOD_END_BLOCK", [], [_uint()]),
    _view("MAX_PURCHASE_LIMIT", [], [_uint()]),
    _view(
        "totalPurchased",
        [{"name": "sender", "type": "address", "internalType": "address"}],
        [_uint("totalPurchased")],
    ),
]

SOULBOUND_ABI: List[dict] = [
    _view(
        "hasAnyToken",
        [{"name": "_addr", "type": "address", "internalType": "address"}],
        [{"name": "", "type": "bool", "internalType": "bool"}],
    ),
]

MULTICALL3_ABI: List[dict] = [
    {
        "type": "function",
        "name": "aggregate3",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "calls",
                "type": "tuple[]",
                "internalType": "struct Multicall3.Call3[]",
                "components": [
                    {"name": "target", "type": "address", "internalType": "address"},
                    {"name": "allowFailure", "type": "bool", "internalType": "bool"},
                    {"name": "callData", "type": "bytes", "internalType": "bytes"},
                ],
            }
        ],
        "outputs": [
            {
                "name": "returnData",
                "type": "tuple[]",
                "internalType": "struct Multicall3.Result[]",
                "components": [
                    {"name": "success", "type": "bool", "internalType": "bool"},
                    {"name": "returnData", "type": "bytes", "internalType": "bytes"},
                ],
            }
        ],
    },
]

ABIS: Dict[str, List[dict]] = {
    "CCA": CCA_ABI,
    "ValidationHook": VALIDATION_HOOK_ABI,
    "Soulbound": SOULBOUND_ABI,
    "Multicall3": MULTICALL3_ABI,
}

# Multicall3 is deployed at the same address on every major EVM chain
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"


def function_abi(contract: str, function: str) -> dict:
    """Look up a function entry, raising KeyError for unknown names."""
    for entry in ABIS[contract]:
        if entry.get("type") == "function" and entry["name"] == function:
            return entry
    raise KeyError(f"{contract} has no function {function}")


def abi_type(param: dict) -> str:
    """Render an ABI parameter as a canonical type string for decoding."""
    kind = param["type"]
    if kind.startswith("tuple"):
        inner = ",".join(abi_type(c) for c in param["components"])
        return f"({inner}){kind[len('tuple'):]}"
    return kind


def output_types(contract: str, function: str) -> List[str]:
    """Canonical output type strings of a function."""
    return [abi_type(o) for o in function_abi(contract, function)["outputs"]]


__all__ = [
    "CCA_ABI",
    "VALIDATION_HOOK_ABI",
    "SOULBOUND_ABI",
    "MULTICALL3_ABI",
    "MULTICALL3_ADDRESS",
    "ABIS",
    "function_abi",
    "output_types",
]
