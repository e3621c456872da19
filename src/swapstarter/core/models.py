from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from ..errors import ErrorKind
from ..utils import format_units, to_checksum_address


@dataclass(frozen=True)
class Network:
    id: int
    name: str
    supported: bool = True

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


@dataclass(frozen=True)
class TokenDescriptor:
    """
    An ERC-20 token tracked by the client.

    Attributes:
        contract_address: 0x-prefixed token contract address
        decimals: Number of decimals the token uses for display
        symbol: Ticker symbol
        chain_id: Network the contract lives on (None = every network)
    """
    contract_address: str
    decimals: int
    symbol: str
    chain_id: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "contract_address", to_checksum_address(self.contract_address))
        if self.decimals < 0:
            raise ValueError(f"{self.symbol}: decimals must be non-negative")

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TokenDescriptor":
        return cls(
            contract_address=payload.get("contract_address") or payload["contractAddress"],
            decimals=int(payload.get("decimals", 18)),
            symbol=str(payload["symbol"]),
            chain_id=int(payload["chain_id"]) if payload.get("chain_id") is not None else None,
        )

    def available_on(self, chain_id: Optional[int]) -> bool:
        return self.chain_id is None or self.chain_id == chain_id

    @property
    def key(self) -> str:
        return self.contract_address.lower()


@dataclass(frozen=True)
class Balance:
    raw: int
    decimals: int

    @classmethod
    def zero(cls, decimals: int = 18) -> "Balance":
        return cls(0, decimals)

    def to_decimal(self) -> Decimal:
        return Decimal(format_units(self.raw, self.decimals))

    def formatted(self, places: Optional[int] = None) -> str:
        if places is None:
            return format_units(self.raw, self.decimals)
        return f"{self.to_decimal():,.{places}f}"


class BalanceStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class BalanceView:
    """What the presentation layer shows for one (account, network, asset)."""
    status: BalanceStatus
    balance: Optional[Balance] = None
    stale: bool = False
    error: Optional[ErrorKind] = None

    @classmethod
    def pending(cls) -> "BalanceView":
        return cls(BalanceStatus.PENDING)


@dataclass(frozen=True)
class TransferRequest:
    token: TokenDescriptor
    recipient: str
    amount: int
    allow_zero_address: bool = False


class TxState(str, Enum):
    IDLE = "Idle"
    BUILDING = "Building"
    AWAITING_SIGNATURE = "AwaitingSignature"
    SUBMITTED = "Submitted"
    CONFIRMING = "Confirming"
    CONFIRMED = "Confirmed"
    FAILED = "Failed"

    @property
    def terminal(self) -> bool:
        return self in (TxState.CONFIRMED, TxState.FAILED)


@dataclass(frozen=True)
class TransactionRecord:
    state: TxState = TxState.IDLE
    hash: Optional[str] = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None
    request: Optional[TransferRequest] = None
    chain_id: Optional[int] = None
    block_number: Optional[int] = None
    confirmations: int = 0
    receipt: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __str__(self) -> str:
        if self.state is TxState.FAILED:
            return f"Failed({self.error})"
        return self.state.value


__all__ = [
    "Balance",
    "BalanceStatus",
    "BalanceView",
    "Network",
    "TokenDescriptor",
    "TransactionRecord",
    "TransferRequest",
    "TxState",
]
