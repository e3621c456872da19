"""Network switcher outcomes and their effect on the session."""

from __future__ import annotations

import asyncio

import pytest

from swapstarter.config import DEFAULT_TOKENS, SEPOLIA_CHAIN_ID
from swapstarter.core.balances import BalanceReader
from swapstarter.core.models import BalanceStatus
from swapstarter.core.session import ProviderSession, SessionState
from swapstarter.core.switcher import NetworkSwitcher, SwitchResult

from conftest import ALICE, POLYGON_CHAIN_ID, TKA, FakeSigner


async def _connected(signer: FakeSigner, pool, registry, **kwargs) -> tuple[ProviderSession, BalanceReader, NetworkSwitcher]:
    session = ProviderSession(signer, registry)
    balances = BalanceReader(session, pool, registry, DEFAULT_TOKENS)
    switcher = NetworkSwitcher(session, signer, registry, **kwargs)
    await session.connect()
    await balances.wait_idle()
    return session, balances, switcher


class TestSwitch:
    @pytest.mark.asyncio
    async def test_unregistered_chain_never_reaches_signer(self, signer: FakeSigner, pool, registry) -> None:
        session, _, switcher = await _connected(signer, pool, registry)
        assert await switcher.switch_to(999) is SwitchResult.UNSUPPORTED
        assert signer.switch_requests == []
        assert session.chain_id == SEPOLIA_CHAIN_ID

    @pytest.mark.asyncio
    async def test_rejected_switch_leaves_everything_alone(self, signer: FakeSigner, pool, registry) -> None:
        session, balances, switcher = await _connected(signer, pool, registry)
        changes: list[SessionState] = []
        updates: list[object] = []
        session.on_change(changes.append)
        balances.on_update(lambda token, view: updates.append(view))
        before = balances.view(TKA)

        signer.reject_switch = True
        result = await switcher.switch_to(POLYGON_CHAIN_ID)

        assert result is SwitchResult.REJECTED
        assert signer.switch_requests == [POLYGON_CHAIN_ID]
        assert session.chain_id == SEPOLIA_CHAIN_ID
        assert changes == []
        assert updates == []
        assert balances.view(TKA) == before
        assert before.status is BalanceStatus.READY

    @pytest.mark.asyncio
    async def test_success_updates_network_and_balances(self, signer: FakeSigner, pool, registry) -> None:
        session, balances, switcher = await _connected(signer, pool, registry)

        assert await switcher.switch_to(POLYGON_CHAIN_ID) is SwitchResult.SUCCESS
        assert session.chain_id == POLYGON_CHAIN_ID
        assert session.account == ALICE
        await balances.wait_idle()
        assert balances.views()["POL"].balance.raw == 10**18

    @pytest.mark.asyncio
    async def test_same_chain(self, signer: FakeSigner, pool, registry) -> None:
        _, _, switcher = await _connected(signer, pool, registry)
        assert await switcher.switch_to(SEPOLIA_CHAIN_ID) is SwitchResult.SUCCESS
        assert signer.switch_requests == []

    @pytest.mark.asyncio
    async def test_disconnected(self, signer: FakeSigner, registry) -> None:
        switcher = NetworkSwitcher(ProviderSession(signer, registry), signer, registry)
        assert await switcher.switch_to(POLYGON_CHAIN_ID) is SwitchResult.REJECTED
        assert signer.switch_requests == []

    @pytest.mark.asyncio
    async def test_unanswered_request_times_out(self, signer: FakeSigner, pool, registry) -> None:
        session, _, switcher = await _connected(signer, pool, registry, timeout=0.05)

        async def never(chain_id: int) -> None:
            await asyncio.Event().wait()

        signer.switch_chain = never  # type: ignore[method-assign]
        assert await switcher.switch_to(POLYGON_CHAIN_ID) is SwitchResult.REJECTED
        assert session.chain_id == SEPOLIA_CHAIN_ID
