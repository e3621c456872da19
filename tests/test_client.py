"""
End-to-end: WalletClient with a real LocalSigner against the fake node.

The signer fills nonce, gas price and chain id, signs with eth-account and
broadcasts the raw transaction; the fake node records it and mines it.
"""

from __future__ import annotations

import pytest
from eth_account import Account

from swapstarter.config import DEFAULT_TOKENS, SEPOLIA_CHAIN_ID, Settings
from swapstarter.core.blocks import BlockWatcher
from swapstarter.core.client import WalletClient
from swapstarter.core.models import BalanceStatus, TransferRequest, TxState
from swapstarter.core.session import ProviderSession
from swapstarter.core.switcher import SwitchResult
from swapstarter.errors import ConnectionRejectedError, ErrorKind, SignerRejectedError
from swapstarter.wallet.keys import generate_eoa
from swapstarter.wallet.signer import LocalSigner, RequestKind, SignerEvent, SignerEventKind, SignRequest

from conftest import CAROL, POLYGON_CHAIN_ID, TKA, TKB, FakeNetwork, eventually

UNIT = 10**18


@pytest.fixture()
def wallet(network: FakeNetwork) -> tuple[str, str]:
    private_key, address = generate_eoa()
    sepolia = network[SEPOLIA_CHAIN_ID]
    sepolia.native[address.lower()] = UNIT
    sepolia.set_token_balance(TKA.contract_address, address, 100 * UNIT)
    sepolia.set_token_balance(TKB.contract_address, address, 25 * UNIT)
    return private_key, address


def _settings() -> Settings:
    return Settings(tokens=DEFAULT_TOKENS, poll_interval=0.01, confirmation_timeout=1.0)


def _client(private_key: str, pool, registry, approve=None) -> WalletClient:
    kwargs = {"approve": approve} if approve is not None else {}
    signer = LocalSigner(private_key, pool, SEPOLIA_CHAIN_ID, **kwargs)
    return WalletClient(signer, _settings(), registry=registry, pool=pool)


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_loads_both_tokens(self, wallet, pool, registry) -> None:
        private_key, address = wallet
        async with _client(private_key, pool, registry) as client:
            state = await client.connect()

            assert state.account == address
            assert state.chain_id == SEPOLIA_CHAIN_ID
            views = client.balances.views()
            assert views["TKA"].balance.raw == 100 * UNIT
            assert views["TKB"].balance.raw == 25 * UNIT
            assert views["ETH"].balance.formatted() == "1.0"

    @pytest.mark.asyncio
    async def test_declined_connection(self, wallet, pool, registry) -> None:
        client = _client(wallet[0], pool, registry, approve=lambda request: False)
        with pytest.raises(ConnectionRejectedError):
            await client.connect()
        assert not client.session.connected


class TestTransfer:
    @pytest.mark.asyncio
    async def test_signed_transfer_is_confirmed(self, network: FakeNetwork, wallet, pool, registry) -> None:
        private_key, address = wallet
        sepolia = network[SEPOLIA_CHAIN_ID]

        def apply(raw: str) -> None:
            sender = Account.recover_transaction(raw)
            sepolia.set_token_balance(TKA.contract_address, sender, 60 * UNIT)
            sepolia.set_token_balance(TKA.contract_address, CAROL, 40 * UNIT)

        sepolia.on_raw_tx = apply

        async with _client(private_key, pool, registry) as client:
            await client.connect()
            record = await client.transfer(TransferRequest(TKA, CAROL, 40 * UNIT))

            assert record.state is TxState.CONFIRMED
            assert len(sepolia.raw_txs) == 1
            assert Account.recover_transaction(sepolia.raw_txs[0]) == address
            assert client.balances.view(TKA).balance.raw == 60 * UNIT
            assert client.registry.explorer_tx_url(record.chain_id, record.hash).startswith(
                "https://sepolia.etherscan.io/tx/0x"
            )

    @pytest.mark.asyncio
    async def test_declined_signature(self, network: FakeNetwork, wallet, pool, registry) -> None:
        asked: list[SignRequest] = []

        async def approve(request: SignRequest) -> bool:
            asked.append(request)
            return request.kind is RequestKind.CONNECT

        client = _client(wallet[0], pool, registry, approve=approve)
        await client.connect()
        record = await client.transfer(TransferRequest(TKA, CAROL, UNIT))

        assert record.error is ErrorKind.USER_REJECTED
        assert [r.kind for r in asked] == [RequestKind.CONNECT, RequestKind.TRANSACTION]
        assert asked[1].payload["to"] == TKA.contract_address
        assert network[SEPOLIA_CHAIN_ID].raw_txs == []

        client.reset()
        assert client.submitter.record.state is TxState.IDLE
        await client.balances.aclose()


class TestNetworks:
    @pytest.mark.asyncio
    async def test_switch_and_back(self, wallet, pool, registry) -> None:
        async with _client(wallet[0], pool, registry) as client:
            await client.connect()

            assert await client.switch_to(POLYGON_CHAIN_ID) is SwitchResult.SUCCESS
            assert client.session.chain_id == POLYGON_CHAIN_ID
            assert set(client.balances.views()) == {"POL"}

            assert await client.switch_to(SEPOLIA_CHAIN_ID) is SwitchResult.SUCCESS
            assert client.balances.view(TKA).balance.raw == 100 * UNIT

    @pytest.mark.asyncio
    async def test_declined_switch(self, wallet, pool, registry) -> None:
        def approve(request: SignRequest) -> bool:
            return request.kind is not RequestKind.SWITCH_CHAIN

        async with _client(wallet[0], pool, registry, approve=approve) as client:
            await client.connect()
            assert await client.switch_to(POLYGON_CHAIN_ID) is SwitchResult.REJECTED
            assert client.session.chain_id == SEPOLIA_CHAIN_ID
            assert client.balances.view(TKA).status is BalanceStatus.READY

    @pytest.mark.asyncio
    async def test_new_block_refreshes_balances(self, network: FakeNetwork, wallet, pool, registry) -> None:
        private_key, address = wallet
        sepolia = network[SEPOLIA_CHAIN_ID]

        async with _client(private_key, pool, registry) as client:
            await client.connect()
            await eventually(lambda: client.blocks.latest(SEPOLIA_CHAIN_ID) is not None)

            sepolia.set_token_balance(TKB.contract_address, address, 30 * UNIT)
            sepolia.mine()
            await eventually(lambda: client.balances.view(TKB).balance.raw == 30 * UNIT)

        assert not client.blocks.running


class TestBlockWatcher:
    @pytest.mark.asyncio
    async def test_notifies_only_on_advance(self, network: FakeNetwork, signer, pool, registry) -> None:
        session = ProviderSession(signer, registry)
        watcher = BlockWatcher(session, pool, interval=0.01)
        seen: list[tuple[int, int]] = []

        async def record(chain_id: int, number: int) -> None:
            seen.append((chain_id, number))

        watcher.on_block(record)
        assert await watcher.poll_once() is None

        await session.connect()
        assert await watcher.poll_once() == 100
        assert await watcher.poll_once() == 100
        assert seen == []

        network[SEPOLIA_CHAIN_ID].mine(2)
        assert await watcher.poll_once() == 102
        assert seen == [(SEPOLIA_CHAIN_ID, 102)]
        assert watcher.latest(SEPOLIA_CHAIN_ID) == 102

    @pytest.mark.asyncio
    async def test_poll_failures_do_not_stop_the_loop(self, network: FakeNetwork, signer, pool, registry) -> None:
        session = ProviderSession(signer, registry)
        await session.connect()
        watcher = BlockWatcher(session, pool, interval=0.01)
        network[SEPOLIA_CHAIN_ID].down = True

        watcher.start()
        await eventually(lambda: network[SEPOLIA_CHAIN_ID].calls.count("eth_blockNumber") >= 2)
        assert watcher.running
        network[SEPOLIA_CHAIN_ID].down = False
        await eventually(lambda: watcher.latest(SEPOLIA_CHAIN_ID) == 100)

        await watcher.stop()
        assert not watcher.running


class TestLocalSigner:
    @pytest.mark.asyncio
    async def test_fills_and_signs_legacy_transaction(self, network: FakeNetwork, wallet, pool) -> None:
        private_key, address = wallet
        signer = LocalSigner(private_key, pool, SEPOLIA_CHAIN_ID, gas_limit=90_000)

        tx_hash = await signer.send_transaction({"to": TKA.contract_address.lower(), "data": "0x", "value": 0})

        raw = network[SEPOLIA_CHAIN_ID].raw_txs[0]
        assert Account.recover_transaction(raw) == address
        assert tx_hash in network[SEPOLIA_CHAIN_ID].receipts
        assert network[SEPOLIA_CHAIN_ID].calls[:2] == ["eth_getTransactionCount", "eth_gasPrice"]

    @pytest.mark.asyncio
    async def test_switch_outside_configured_networks(self, wallet, pool) -> None:
        signer = LocalSigner(wallet[0], pool, SEPOLIA_CHAIN_ID, networks=[SEPOLIA_CHAIN_ID])
        with pytest.raises(SignerRejectedError):
            await signer.switch_chain(POLYGON_CHAIN_ID)
        assert await signer.chain_id() == SEPOLIA_CHAIN_ID

    @pytest.mark.asyncio
    async def test_switch_emits_chain_changed(self, wallet, pool) -> None:
        signer = LocalSigner(wallet[0], pool, SEPOLIA_CHAIN_ID)
        events: list[SignerEvent] = []
        signer.subscribe(events.append)

        await signer.switch_chain(POLYGON_CHAIN_ID)

        assert events == [SignerEvent(SignerEventKind.CHAIN_CHANGED, chain_id=POLYGON_CHAIN_ID)]
        assert await signer.chain_id() == POLYGON_CHAIN_ID

    @pytest.mark.asyncio
    async def test_refuses_payload_for_another_chain(self, network: FakeNetwork, wallet, pool) -> None:
        signer = LocalSigner(wallet[0], pool, POLYGON_CHAIN_ID)
        tx = {"to": TKA.contract_address, "data": "0x", "value": 0, "chainId": SEPOLIA_CHAIN_ID}

        with pytest.raises(SignerRejectedError):
            await signer.send_transaction(tx)

        assert network[POLYGON_CHAIN_ID].raw_txs == []
        assert network[SEPOLIA_CHAIN_ID].raw_txs == []
