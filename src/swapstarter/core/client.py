from __future__ import annotations

from typing import Optional

from ..chain.registry import ChainRegistry
from ..chain.rpc import ProviderPool
from ..config import Settings
from ..wallet.signer import Signer
from .balances import BalanceReader
from .blocks import BlockWatcher
from .models import TransactionRecord, TransferRequest
from .session import ProviderSession, SessionState
from .submitter import TransactionSubmitter
from .switcher import NetworkSwitcher, SwitchResult


class WalletClient:
    """
    One wallet session: identity, balances, transfers and network switches.

    Use as an async context manager so the block watcher runs for the
    lifetime of the session::

        async with WalletClient(signer, settings) as client:
            await client.connect()
            await client.balances.refresh()
    """

    def __init__(
        self,
        signer: Signer,
        settings: Optional[Settings] = None,
        registry: Optional[ChainRegistry] = None,
        pool: Optional[ProviderPool] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry or ChainRegistry.default()
        self.pool = pool or ProviderPool(
            self.registry,
            overrides=self.settings.rpc_overrides,
            timeout=self.settings.rpc_timeout,
        )
        self.signer = signer
        abi = self.settings.abi

        self.session = ProviderSession(signer, self.registry, connect_timeout=self.settings.connect_timeout)
        self.balances = BalanceReader(self.session, self.pool, self.registry, self.settings.tokens, abi=abi)
        self.blocks = BlockWatcher(self.session, self.pool, interval=self.settings.poll_interval)
        self.submitter = TransactionSubmitter(
            self.session,
            signer,
            self.pool,
            balances=self.balances,
            tokens=self.settings.tokens,
            confirmations=self.settings.confirmations,
            confirmation_timeout=self.settings.confirmation_timeout,
            poll_interval=self.settings.poll_interval,
            abi=abi,
        )
        self.switcher = NetworkSwitcher(self.session, signer, self.registry)
        self.blocks.on_block(self._on_block)

    async def __aenter__(self) -> "WalletClient":
        self.blocks.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.blocks.stop()
        await self.balances.aclose()

    async def _on_block(self, chain_id: int, number: int) -> None:
        await self.balances.refresh()

    async def connect(self) -> SessionState:
        state = await self.session.connect()
        await self.balances.wait_idle()
        return state

    def disconnect(self) -> None:
        self.session.disconnect()

    async def switch_to(self, chain_id: int) -> SwitchResult:
        result = await self.switcher.switch_to(chain_id)
        await self.balances.wait_idle()
        return result

    async def transfer(self, request: TransferRequest) -> TransactionRecord:
        return await self.submitter.submit(request)

    def reset(self) -> TransactionRecord:
        return self.submitter.reset()
