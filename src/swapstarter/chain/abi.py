"""
ABI helpers - the static contract interface description.

The client ships a minimal ERC-20 ABI. A compiler artifact (Foundry or
Hardhat JSON with an ``abi`` key) or a bare ABI list can be loaded instead
when a token exposes a richer interface.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from eth_abi import decode, encode

from ..utils import keccak256

ERC20_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "balanceOf",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "transfer",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "decimals",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "symbol",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
    },
]


@lru_cache(maxsize=16)
def load_abi(path: str) -> list[dict[str, Any]]:
    """
    Load a contract ABI from disk.

    Args:
        path: JSON file holding either a compiler artifact with an "abi"
              key or a bare ABI list

    Returns:
        ABI as a list of dicts

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file holds neither shape
    """
    abi_path = Path(path).expanduser()
    if not abi_path.exists():
        raise FileNotFoundError(f"ABI not found: {abi_path}")

    with abi_path.open("r", encoding="utf-8") as f:
        artifact = json.load(f)

    if isinstance(artifact, dict) and isinstance(artifact.get("abi"), list):
        return artifact["abi"]
    if isinstance(artifact, list):
        return artifact
    raise ValueError(f"{abi_path} is neither an ABI list nor an artifact with an 'abi' key")


def _find_function(abi: list[dict[str, Any]], function_name: str) -> dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == function_name:
            return entry
    raise ValueError(f"Function {function_name} not found in ABI")


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak256 of a canonical signature, e.g. ``transfer(address,uint256)``."""
    return keccak256(signature.encode("utf-8"))[:4]


def encode_function_call(abi: list[dict[str, Any]], function_name: str, args: list) -> str:
    """
    ABI-encode a function call.

    Returns:
        0x-prefixed hex encoded calldata
    """
    func = _find_function(abi, function_name)
    input_types = [inp["type"] for inp in func.get("inputs", [])]
    selector = function_selector(f"{function_name}({','.join(input_types)})")
    encoded_args = encode(input_types, args) if args else b""
    return "0x" + selector.hex() + encoded_args.hex()


def decode_function_result(abi: list[dict[str, Any]], function_name: str, data: str) -> Any:
    """
    ABI-decode a function call result.

    Returns:
        Decoded result (single value or tuple), None for functions
        without outputs
    """
    func = _find_function(abi, function_name)
    output_types = [out["type"] for out in func.get("outputs", [])]
    if not output_types:
        return None

    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    decoded = decode(output_types, raw)
    if len(decoded) == 1:
        return decoded[0]
    return decoded


def encode_transfer(recipient: str, amount: int, abi: list[dict[str, Any]] | None = None) -> str:
    """Calldata for ERC-20 ``transfer(to, amount)``."""
    return encode_function_call(abi or ERC20_ABI, "transfer", [recipient, amount])
