"""
Signer - the wallet that holds keys and approves requests.

The client core only talks to the ``Signer`` protocol: request account
access, sign-and-broadcast a transaction payload, switch network, and push
account/network changes made on the wallet side. ``LocalSigner`` implements
it with an eth-account key, filling nonce/gas/chainId the way a browser
wallet would before signing.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Union

from eth_account import Account

from ..chain.rpc import ProviderPool
from ..errors import SignerRejectedError
from ..utils import to_checksum_address

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = 100_000


class SignerEventKind(str, Enum):
    ACCOUNTS_CHANGED = "accountsChanged"
    CHAIN_CHANGED = "chainChanged"
    DISCONNECT = "disconnect"


@dataclass(frozen=True)
class SignerEvent:
    kind: SignerEventKind
    accounts: tuple[str, ...] = ()
    chain_id: Optional[int] = None


SignerListener = Callable[[SignerEvent], None]


class Signer(Protocol):
    async def request_accounts(self) -> list[str]:
        ...

    async def chain_id(self) -> int:
        ...

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        ...

    async def switch_chain(self, chain_id: int) -> None:
        ...

    def subscribe(self, listener: SignerListener) -> Callable[[], None]:
        ...


class RequestKind(str, Enum):
    CONNECT = "connect"
    TRANSACTION = "transaction"
    SWITCH_CHAIN = "switch_chain"


@dataclass(frozen=True)
class SignRequest:
    """What the user is asked to approve."""
    kind: RequestKind
    address: str
    chain_id: int
    payload: dict[str, Any] = field(default_factory=dict)


Approver = Callable[[SignRequest], Union[bool, Awaitable[bool]]]


def approve_all(request: SignRequest) -> bool:
    return True


class EventEmitter:
    """Listener bookkeeping shared by signer implementations."""

    def __init__(self) -> None:
        self._listeners: list[SignerListener] = []

    def subscribe(self, listener: SignerListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: SignerEvent) -> None:
        for listener in list(self._listeners):
            listener(event)


class LocalSigner(EventEmitter):
    """
    Signer backed by a local private key.

    Args:
        private_key: 0x-prefixed hex private key
        pool: RPC endpoints used to fill and broadcast transactions
        chain_id: Network the wallet starts on
        networks: Chain ids the wallet has configured (default: every
                  chain in the pool's registry plus RPC overrides)
        approve: Called before connecting, signing or switching; returning
                 False declines the request
        gas_limit: Gas limit when the payload carries none
    """

    def __init__(
        self,
        private_key: str,
        pool: ProviderPool,
        chain_id: int,
        networks: Optional[Iterable[int]] = None,
        approve: Approver = approve_all,
        gas_limit: int = DEFAULT_GAS_LIMIT,
    ) -> None:
        super().__init__()
        self._account = Account.from_key(private_key)
        self._pool = pool
        self._chain_id = chain_id
        if networks is None:
            networks = {c.id for c in pool.registry} | set(pool.overrides)
        self.networks = frozenset(networks)
        self._approve = approve
        self.gas_limit = gas_limit

    @property
    def address(self) -> str:
        return self._account.address

    async def _ask(self, kind: RequestKind, payload: Optional[dict[str, Any]] = None) -> None:
        request = SignRequest(kind, self.address, self._chain_id, dict(payload or {}))
        answer = self._approve(request)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            logger.info("signer declined %s request", kind.value)
            raise SignerRejectedError(f"User rejected the {kind.value} request")

    async def request_accounts(self) -> list[str]:
        await self._ask(RequestKind.CONNECT)
        return [self.address]

    async def chain_id(self) -> int:
        return self._chain_id

    async def switch_chain(self, chain_id: int) -> None:
        if chain_id not in self.networks:
            raise SignerRejectedError(f"Wallet has no network configured for chain {chain_id}")
        if chain_id == self._chain_id:
            return
        await self._ask(RequestKind.SWITCH_CHAIN, {"chainId": chain_id})
        self._chain_id = chain_id
        self.emit(SignerEvent(SignerEventKind.CHAIN_CHANGED, chain_id=chain_id))

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        """
        Fill, sign and broadcast a transaction.

        Args:
            tx: Payload with at least "to" and "data"; "value" and "gas"
                are optional

        Returns:
            Transaction hash (0x-prefixed hex)

        Raises:
            SignerRejectedError: If the approver declines, or the payload
                names a chain other than the wallet's current one
            RpcError: If the node rejects the signed payload
        """
        await self._ask(RequestKind.TRANSACTION, tx)

        chain_id = self._chain_id
        if tx.get("chainId") is not None and int(tx["chainId"]) != chain_id:
            raise SignerRejectedError(
                f"Transaction is for chain {tx['chainId']} but the wallet is on chain {chain_id}"
            )
        rpc = self._pool.get(chain_id)
        full_tx: dict[str, Any] = {
            "to": to_checksum_address(tx["to"]),
            "data": tx.get("data", "0x"),
            "value": int(tx.get("value", 0)),
            "nonce": await rpc.get_nonce(self.address),
            "gasPrice": await rpc.get_gas_price(),
            "gas": int(tx.get("gas") or self.gas_limit),
            "chainId": chain_id,
        }

        signed = self._account.sign_transaction(full_tx)
        raw_tx = "0x" + bytes(signed.raw_transaction).hex()
        tx_hash = await rpc.send_raw_transaction(raw_tx)
        logger.info("broadcast %s on chain %s (nonce %s)", tx_hash, chain_id, full_tx["nonce"])
        return tx_hash

    def disconnect(self) -> None:
        self.emit(SignerEvent(SignerEventKind.DISCONNECT))
