from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

from ..chain.rpc import ProviderPool
from ..errors import NetworkUnavailableError, RpcError
from .session import ProviderSession

logger = logging.getLogger(__name__)

BlockListener = Callable[[int, int], Awaitable[None]]


class BlockWatcher:
    """Polls the active network for new blocks at a fixed interval."""

    def __init__(self, session: ProviderSession, pool: ProviderPool, interval: float = 2.0) -> None:
        self._session = session
        self._pool = pool
        self.interval = interval
        self._last: dict[int, int] = {}
        self._listeners: list[BlockListener] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def latest(self, chain_id: int) -> Optional[int]:
        return self._last.get(chain_id)

    def on_block(self, listener: BlockListener) -> None:
        self._listeners.append(listener)

    async def poll_once(self) -> Optional[int]:
        """Fetch the head block; listeners fire only when it advanced."""
        chain_id = self._session.chain_id
        if chain_id is None:
            return None
        number = await self._pool.get(chain_id).block_number()
        last = self._last.get(chain_id)
        if last is not None and number <= last:
            return number
        self._last[chain_id] = number
        if last is not None and self._session.chain_id == chain_id:
            logger.debug("chain %s advanced to block %d", chain_id, number)
            for listener in list(self._listeners):
                await listener(chain_id, number)
        return number

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except (NetworkUnavailableError, RpcError) as exc:
                logger.warning("block poll failed: %s", exc)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
