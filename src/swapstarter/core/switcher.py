from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from ..chain.registry import ChainRegistry
from ..errors import SignerRejectedError
from ..wallet.signer import Signer
from .session import ProviderSession

logger = logging.getLogger(__name__)


class SwitchResult(str, Enum):
    SUCCESS = "success"
    REJECTED = "Rejected"
    UNSUPPORTED = "Unsupported"


class NetworkSwitcher:
    """
    Asks the signer to change network and records the change only once
    the signer has confirmed it.

    Args:
        session: Provider session updated on success
        signer: Wallet asked to switch
        registry: Networks the client supports
        timeout: Seconds to wait for the signer (None = wait for the user)
    """

    def __init__(
        self,
        session: ProviderSession,
        signer: Signer,
        registry: ChainRegistry,
        timeout: Optional[float] = None,
    ) -> None:
        self._session = session
        self._signer = signer
        self._registry = registry
        self.timeout = timeout

    async def switch_to(self, chain_id: int) -> SwitchResult:
        if chain_id not in self._registry:
            logger.info("chain %s is not in the registry", chain_id)
            return SwitchResult.UNSUPPORTED
        if not self._session.connected:
            logger.info("switch to %s refused: wallet not connected", chain_id)
            return SwitchResult.REJECTED
        if self._session.chain_id == chain_id:
            return SwitchResult.SUCCESS

        try:
            await asyncio.wait_for(self._signer.switch_chain(chain_id), self.timeout)
        except SignerRejectedError as exc:
            logger.info("switch to %s rejected: %s", chain_id, exc)
            return SwitchResult.REJECTED
        except asyncio.TimeoutError:
            logger.info("switch to %s timed out after %ss", chain_id, self.timeout)
            return SwitchResult.REJECTED

        if not self._session.connected:
            return SwitchResult.REJECTED
        self._session.set_network(chain_id)
        logger.info("switched to %s", self._registry.network(chain_id))
        return SwitchResult.SUCCESS
