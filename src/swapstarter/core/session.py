"""
Provider Session - connected account and active network.

The session is the single writer of connection identity. It changes on
``connect()`` / ``disconnect()``, on events pushed by the signer (the user
switching accounts or networks in their wallet) and when the network
switcher reports a confirmed switch. Everything else reads ``state``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..chain.registry import ChainRegistry
from ..errors import (
    ConnectionRejectedError,
    ConnectionTimeoutError,
    InvalidAddressError,
    SignerRejectedError,
)
from ..utils import to_checksum_address
from ..wallet.signer import Signer, SignerEvent, SignerEventKind
from .models import Network

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 30.0


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot; account and network are both set or both None."""
    account: Optional[str] = None
    network: Optional[Network] = None

    def __post_init__(self) -> None:
        if (self.account is None) != (self.network is None):
            raise ValueError("account and network must be set together")

    @property
    def connected(self) -> bool:
        return self.account is not None

    @property
    def chain_id(self) -> Optional[int]:
        return self.network.id if self.network else None


SessionListener = Callable[[SessionState], None]


class ProviderSession:
    def __init__(
        self,
        signer: Signer,
        registry: ChainRegistry,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self._signer = signer
        self._registry = registry
        self.connect_timeout = connect_timeout
        self._state = SessionState()
        self._listeners: list[SessionListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def account(self) -> Optional[str]:
        return self._state.account

    @property
    def network(self) -> Optional[Network]:
        return self._state.network

    @property
    def chain_id(self) -> Optional[int]:
        return self._state.chain_id

    @property
    def connected(self) -> bool:
        return self._state.connected

    def on_change(self, listener: SessionListener) -> Callable[[], None]:
        """Register for state changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def connect(self) -> SessionState:
        """
        Run the wallet handshake.

        Returns:
            The connected state

        Raises:
            ConnectionRejectedError: If the wallet declines or returns no account
            ConnectionTimeoutError: If the wallet does not answer in time
        """
        try:
            accounts, chain_id = await asyncio.wait_for(self._handshake(), self.connect_timeout)
        except SignerRejectedError as exc:
            raise ConnectionRejectedError(str(exc)) from exc
        except asyncio.TimeoutError as exc:
            raise ConnectionTimeoutError(
                f"Wallet did not answer within {self.connect_timeout:g}s"
            ) from exc

        if not accounts:
            raise ConnectionRejectedError("Wallet returned no accounts")
        account = self._checked(accounts[0])

        if self._unsubscribe is None:
            self._unsubscribe = self._signer.subscribe(self._on_signer_event)

        self._commit(SessionState(account, self._registry.network(chain_id)))
        logger.info("connected %s on %s", account, self._state.network)
        return self._state

    async def _handshake(self) -> tuple[list[str], int]:
        accounts = await self._signer.request_accounts()
        return accounts, await self._signer.chain_id()

    def disconnect(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._state.connected:
            logger.info("disconnected %s", self._state.account)
        self._commit(SessionState())

    def set_network(self, chain_id: int) -> None:
        """Record a network change the signer has confirmed."""
        if not self._state.connected:
            raise RuntimeError("Cannot change network while disconnected")
        self._commit(SessionState(self._state.account, self._registry.network(chain_id)))

    def _on_signer_event(self, event: SignerEvent) -> None:
        logger.debug("signer event %s", event)
        if event.kind is SignerEventKind.DISCONNECT:
            self.disconnect()
        elif not self._state.connected:
            return
        elif event.kind is SignerEventKind.ACCOUNTS_CHANGED:
            if not event.accounts:
                self.disconnect()
                return
            try:
                account = self._checked(event.accounts[0])
            except InvalidAddressError as exc:
                logger.warning("ignoring accounts change: %s", exc)
                return
            self._commit(SessionState(account, self._state.network))
        elif event.kind is SignerEventKind.CHAIN_CHANGED and event.chain_id is not None:
            self.set_network(event.chain_id)

    @staticmethod
    def _checked(account: str) -> str:
        try:
            return to_checksum_address(account)
        except ValueError as exc:
            raise InvalidAddressError(f"Wallet returned a malformed account: {account!r}") from exc

    def _commit(self, new_state: SessionState) -> None:
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)
