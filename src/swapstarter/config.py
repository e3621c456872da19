"""
Client configuration.

Values come from the environment, after ~/.swapstarter/.env has been loaded
with python-dotenv. Per-chain RPC endpoints override the registry defaults
with SWAPSTARTER_RPC_<CHAIN_ID>=https://...
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from .chain.abi import ERC20_ABI, load_abi
from .core.models import TokenDescriptor
from .wallet import keys

SEPOLIA_CHAIN_ID = 11155111

# SwapToken test deployments on Sepolia
DEFAULT_TOKENS: tuple[TokenDescriptor, ...] = (
    TokenDescriptor("0x4D266e17bC87DeAD84e379DCB2d58312eAF49398", 18, "TKA", SEPOLIA_CHAIN_ID),
    TokenDescriptor("0x20AC3dDAD105C31D3cF129E9f1beFe9C2F851D38", 18, "TKB", SEPOLIA_CHAIN_ID),
)

_RPC_PREFIX = "SWAPSTARTER_RPC_"


@dataclass(frozen=True)
class Settings:
    chain_id: int = SEPOLIA_CHAIN_ID
    rpc_overrides: dict[int, str] = field(default_factory=dict)
    tokens: tuple[TokenDescriptor, ...] = DEFAULT_TOKENS
    confirmations: int = 1
    confirmation_timeout: float = 120.0
    poll_interval: float = 2.0
    connect_timeout: float = 30.0
    rpc_timeout: float = 30.0
    abi_path: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        env_path: Optional[Path] = None,
    ) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ (no .env loading)
            env_path: .env file to load first (default: ~/.swapstarter/.env)

        Raises:
            ValueError: If a variable holds an unusable value
        """
        if env is None:
            env_path = env_path or keys.SWAPSTARTER_ENV
            if env_path.exists():
                load_dotenv(env_path, override=False)
            env = os.environ

        overrides: dict[int, str] = {}
        for name, value in env.items():
            if name.startswith(_RPC_PREFIX) and value:
                suffix = name[len(_RPC_PREFIX):]
                if suffix.isdigit():
                    overrides[int(suffix)] = value

        tokens = DEFAULT_TOKENS
        if env.get("SWAPSTARTER_TOKENS"):
            tokens = parse_tokens(env["SWAPSTARTER_TOKENS"])

        return cls(
            chain_id=int(env.get("SWAPSTARTER_CHAIN_ID", SEPOLIA_CHAIN_ID)),
            rpc_overrides=overrides,
            tokens=tokens,
            confirmations=max(1, int(env.get("SWAPSTARTER_CONFIRMATIONS", 1))),
            confirmation_timeout=float(env.get("SWAPSTARTER_CONFIRMATION_TIMEOUT", 120)),
            poll_interval=float(env.get("SWAPSTARTER_POLL_INTERVAL", 2)),
            connect_timeout=float(env.get("SWAPSTARTER_CONNECT_TIMEOUT", 30)),
            rpc_timeout=float(env.get("SWAPSTARTER_RPC_TIMEOUT", 30)),
            abi_path=env.get("SWAPSTARTER_TOKEN_ABI") or None,
        )

    @property
    def abi(self) -> list[dict[str, Any]]:
        if self.abi_path:
            return load_abi(self.abi_path)
        return ERC20_ABI

    def token(self, symbol: str, chain_id: Optional[int] = None) -> Optional[TokenDescriptor]:
        """Look up a configured token by symbol (case-insensitive)."""
        for token in self.tokens:
            if token.symbol.lower() != symbol.lower():
                continue
            if chain_id is None or token.available_on(chain_id):
                return token
        return None


def parse_tokens(raw: str) -> tuple[TokenDescriptor, ...]:
    """Parse a JSON list of {contract_address, decimals, symbol[, chain_id]}."""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"SWAPSTARTER_TOKENS is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise ValueError("SWAPSTARTER_TOKENS must be a JSON array")
    return tuple(TokenDescriptor.from_dict(entry) for entry in payload)
