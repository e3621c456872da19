"""
Balance Reader - native and ERC-20 balances for the connected account.

Reads are issued for the session's (account, network) at the time of the
request but applied only if that pair is still current when the response
arrives, and only if no newer read for the same asset was applied first.
A slow answer for a previous account or network is dropped instead of
overwriting what is on screen.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Iterable, Optional

from eth_abi.exceptions import DecodingError

from ..chain.abi import ERC20_ABI
from ..chain.registry import ChainRegistry
from ..chain.rpc import ProviderPool
from ..errors import (
    InvalidAddressError,
    NetworkUnavailableError,
    RpcError,
    SwapStarterError,
)
from ..utils import is_address, same_address
from .models import Balance, BalanceStatus, BalanceView, TokenDescriptor
from .session import ProviderSession, SessionState

logger = logging.getLogger(__name__)

NATIVE = "native"

_Key = tuple[str, int, str]
UpdateListener = Callable[[Optional[TokenDescriptor], BalanceView], None]


def _asset_key(token: Optional[TokenDescriptor]) -> str:
    return NATIVE if token is None else token.key


class BalanceReader:
    def __init__(
        self,
        session: ProviderSession,
        pool: ProviderPool,
        registry: ChainRegistry,
        tokens: Iterable[TokenDescriptor] = (),
        abi: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self._session = session
        self._pool = pool
        self._registry = registry
        self.tokens: tuple[TokenDescriptor, ...] = tuple(tokens)
        self._abi = abi or ERC20_ABI
        self._views: dict[_Key, BalanceView] = {}
        self._applied: dict[_Key, int] = {}
        self._seq = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[UpdateListener] = []
        session.on_change(self._on_session_change)

    # ---------------------------------------------------------------------
    # One-shot reads
    # ---------------------------------------------------------------------

    def native_decimals(self, chain_id: Optional[int]) -> int:
        chain = self._registry.get(chain_id) if chain_id is not None else None
        return chain.native_decimals if chain else 18

    async def read(
        self,
        account: Optional[str],
        chain_id: int,
        token: Optional[TokenDescriptor] = None,
    ) -> Balance:
        """
        Read one balance from the node.

        Args:
            account: Address to query; None means disconnected
            chain_id: Network to query
            token: ERC-20 token, or None for the native currency

        Returns:
            Balance (zero when account is None)

        Raises:
            InvalidAddressError: Malformed account, or no token contract at
                the configured address on this network
            NetworkUnavailableError: Endpoint unreachable or node error
        """
        decimals = token.decimals if token else self.native_decimals(chain_id)
        if account is None:
            return Balance.zero(decimals)
        if not is_address(account):
            raise InvalidAddressError(f"Not a valid account address: {account!r}")

        rpc = self._pool.get(chain_id)
        try:
            if token is None:
                raw = await rpc.get_balance(account)
            else:
                raw = await rpc.read_contract(
                    token.contract_address, "balanceOf", [account], abi=self._abi
                )
                if raw is None:
                    raise InvalidAddressError(
                        f"No {token.symbol} contract at {token.contract_address} on chain {chain_id}"
                    )
        except (RpcError, DecodingError) as exc:
            raise NetworkUnavailableError(str(exc)) from exc
        return Balance(int(raw), decimals)

    # ---------------------------------------------------------------------
    # Reactive cache
    # ---------------------------------------------------------------------

    def tracked_tokens(self) -> list[TokenDescriptor]:
        chain_id = self._session.chain_id
        return [t for t in self.tokens if t.available_on(chain_id)]

    def on_update(self, listener: UpdateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def view(self, token: Optional[TokenDescriptor] = None) -> BalanceView:
        """Current displayable value for the session's account and network."""
        state = self._session.state
        if not state.connected:
            decimals = token.decimals if token else 18
            return BalanceView(BalanceStatus.READY, Balance.zero(decimals))
        key = self._key(state.account, state.chain_id, token)
        return self._views.get(key, BalanceView.pending())

    def views(self) -> dict[str, BalanceView]:
        """Native plus every tracked token, keyed by symbol."""
        chain = self._registry.get(self._session.chain_id) if self._session.connected else None
        result = {chain.native_symbol if chain else "ETH": self.view(None)}
        for token in self.tracked_tokens():
            result[token.symbol] = self.view(token)
        return result

    def invalidate(self) -> None:
        """Forget every cached value; views fall back to PENDING."""
        if self._views:
            logger.debug("invalidating %d cached balances", len(self._views))
        self._views.clear()

    async def refresh(
        self,
        tokens: Optional[Iterable[TokenDescriptor]] = None,
        native: bool = True,
    ) -> None:
        """Re-read balances for the current (account, network) and apply them."""
        state = self._session.state
        if not state.connected:
            return
        assets: list[Optional[TokenDescriptor]] = [None] if native else []
        candidates = self.tracked_tokens() if tokens is None else tokens
        assets.extend(t for t in candidates if t.available_on(state.chain_id))
        await asyncio.gather(
            *(self._read_and_apply(state.account, state.chain_id, asset) for asset in assets)
        )

    async def wait_idle(self) -> None:
        """Wait for refreshes scheduled by session notifications."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    @staticmethod
    def _key(account: str, chain_id: int, token: Optional[TokenDescriptor]) -> _Key:
        return (account.lower(), chain_id, _asset_key(token))

    async def _read_and_apply(
        self, account: str, chain_id: int, token: Optional[TokenDescriptor]
    ) -> None:
        seq = next(self._seq)
        try:
            balance = await self.read(account, chain_id, token)
        except SwapStarterError as exc:
            self._apply(account, chain_id, token, seq, error=exc)
        else:
            self._apply(account, chain_id, token, seq, balance=balance)

    def _apply(
        self,
        account: str,
        chain_id: int,
        token: Optional[TokenDescriptor],
        seq: int,
        balance: Optional[Balance] = None,
        error: Optional[SwapStarterError] = None,
    ) -> None:
        current = self._session.state
        asset = _asset_key(token)
        if not same_address(current.account, account) or current.chain_id != chain_id:
            logger.debug("discarding superseded %s read for %s on %s", asset, account, chain_id)
            return
        key = self._key(account, chain_id, token)
        if self._applied.get(key, 0) > seq:
            logger.debug("discarding out-of-order %s read #%d", asset, seq)
            return
        self._applied[key] = seq

        if error is None:
            view = BalanceView(BalanceStatus.READY, balance)
        else:
            prior = self._views.get(key)
            kept = prior.balance if prior else None
            view = BalanceView(BalanceStatus.ERROR, kept, stale=kept is not None, error=error.kind)
            logger.warning("balance read failed for %s on chain %s: %s", asset, chain_id, error)
        self._views[key] = view
        for listener in list(self._listeners):
            listener(token, view)

    def _on_session_change(self, state: SessionState) -> None:
        self.invalidate()
        if not state.connected:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("no running loop; balances refresh on next refresh() call")
            return
        task = loop.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
