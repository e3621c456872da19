"""
Shared fixtures: an in-memory EVM node behind httpx.MockTransport and a
scriptable wallet.

FakeNetwork serves several chains from one transport; each chain answers
on http://chain-<id>.rpc.test. Requests can be held back with
``FakeChain.hold()`` to reorder responses.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

import httpx
import pytest

from swapstarter.chain.registry import ChainRegistry
from swapstarter.chain.rpc import ProviderPool
from swapstarter.config import DEFAULT_TOKENS, SEPOLIA_CHAIN_ID
from swapstarter.errors import SignerRejectedError
from swapstarter.utils import keccak256, to_checksum_address
from swapstarter.wallet.signer import EventEmitter, SignerEvent, SignerEventKind

ALICE = to_checksum_address("0x" + "a1" * 20)
BOB = to_checksum_address("0x" + "b2" * 20)
CAROL = to_checksum_address("0x" + "c3" * 20)

TKA, TKB = DEFAULT_TOKENS
POLYGON_CHAIN_ID = 137

BALANCE_OF = "70a08231"
TRANSFER = "a9059cbb"


def _word(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


class FakeChain:
    """State and JSON-RPC behaviour of one chain."""

    def __init__(self, chain_id: int) -> None:
        self.chain_id = chain_id
        self.block = 100
        self.native: dict[str, int] = {}
        self.tokens: dict[str, dict[str, int]] = {}
        self.receipts: dict[str, dict[str, Any]] = {}
        self.pending: dict[str, Callable[[], None]] = {}
        self.raw_txs: list[str] = []
        self.calls: list[str] = []
        self.errors: dict[str, dict[str, Any]] = {}
        self.down = False
        self.auto_mine = True
        self.revert_next = False
        self.on_raw_tx: Optional[Callable[[str], None]] = None
        self._holds: list[tuple[str, Optional[str], asyncio.Event]] = []
        self._nonce = 0

    # -- test controls -------------------------------------------------

    def set_token_balance(self, token: str, account: str, amount: int) -> None:
        self.tokens.setdefault(token.lower(), {})[account.lower()] = amount

    def token_balance(self, token: str, account: str) -> int:
        return self.tokens.get(token.lower(), {}).get(account.lower(), 0)

    def hold(self, method: str, match: Optional[str] = None) -> asyncio.Event:
        """Block the next matching request until the returned event is set."""
        event = asyncio.Event()
        self._holds.append((method, match.lower() if match else None, event))
        return event

    def mine(self, blocks: int = 1) -> None:
        self.block += blocks

    def mine_pending(self) -> None:
        for tx_hash, apply in list(self.pending.items()):
            self._include(tx_hash, apply)
        self.pending.clear()

    # -- transactions --------------------------------------------------

    def accept(self, sender: str, tx: dict[str, Any]) -> str:
        """Take a wallet-submitted transfer call, as a wallet's own node would."""
        self.calls.append("eth_sendTransaction")
        self._nonce += 1
        tx_hash = "0x" + keccak256(f"{self.chain_id}:{sender}:{self._nonce}".encode()).hex()
        data = tx["data"][2:]
        token = tx["to"]

        def apply() -> None:
            if data[:8] == TRANSFER:
                recipient = "0x" + data[8 + 24:8 + 64]
                amount = int(data[8 + 64:8 + 128], 16)
                self.set_token_balance(token, sender, self.token_balance(token, sender) - amount)
                self.set_token_balance(token, recipient, self.token_balance(token, recipient) + amount)

        self._queue(tx_hash, apply)
        return tx_hash

    def _queue(self, tx_hash: str, apply: Callable[[], None]) -> None:
        if self.auto_mine:
            self._include(tx_hash, apply)
        else:
            self.pending[tx_hash] = apply

    def _include(self, tx_hash: str, apply: Callable[[], None]) -> None:
        self.block += 1
        reverted = self.revert_next
        self.revert_next = False
        if not reverted:
            apply()
        self.receipts[tx_hash] = {
            "transactionHash": tx_hash,
            "blockNumber": hex(self.block),
            "status": "0x0" if reverted else "0x1",
        }

    # -- JSON-RPC ------------------------------------------------------

    async def _wait_for_hold(self, method: str, params: list) -> None:
        first = params[0] if params and isinstance(params[0], str) else None
        if method == "eth_call":
            first = "0x" + params[0]["data"][-40:]
        for index, (held, match, event) in enumerate(self._holds):
            if held == method and (match is None or (first or "").lower() == match):
                del self._holds[index]
                await event.wait()
                return

    async def handle(self, method: str, params: list) -> Any:
        self.calls.append(method)
        await self._wait_for_hold(method, params)
        if self.down:
            raise httpx.ConnectError("connection refused")
        if method in self.errors:
            raise _JsonRpcError(self.errors[method])

        if method == "eth_chainId":
            return hex(self.chain_id)
        if method == "eth_blockNumber":
            return hex(self.block)
        if method == "eth_getBalance":
            return hex(self.native.get(params[0].lower(), 0))
        if method == "eth_getTransactionCount":
            return hex(self._nonce)
        if method == "eth_gasPrice":
            return hex(1_000_000_000)
        if method == "eth_call":
            call = params[0]
            contract = call["to"].lower()
            data = call["data"][2:]
            if contract not in self.tokens:
                return "0x"
            if data[:8] == BALANCE_OF:
                return _word(self.token_balance(contract, "0x" + data[-40:]))
            return "0x"
        if method == "eth_sendRawTransaction":
            raw = params[0]
            self.raw_txs.append(raw)
            tx_hash = "0x" + keccak256(bytes.fromhex(raw[2:])).hex()
            hook = self.on_raw_tx

            def apply() -> None:
                if hook is not None:
                    hook(raw)

            self._nonce += 1
            self._queue(tx_hash, apply)
            return tx_hash
        if method == "eth_getTransactionReceipt":
            return self.receipts.get(params[0])
        raise _JsonRpcError({"code": -32601, "message": f"method {method} not found"})


class _JsonRpcError(Exception):
    def __init__(self, error: dict[str, Any]) -> None:
        super().__init__(error.get("message"))
        self.error = error


class FakeNetwork:
    """Several FakeChains served through one httpx.MockTransport."""

    def __init__(self, *chain_ids: int) -> None:
        self.chains = {cid: FakeChain(cid) for cid in chain_ids}
        self.transport = httpx.MockTransport(self._handle)

    def __getitem__(self, chain_id: int) -> FakeChain:
        return self.chains[chain_id]

    @staticmethod
    def url(chain_id: int) -> str:
        return f"http://chain-{chain_id}.rpc.test"

    @property
    def overrides(self) -> dict[int, str]:
        return {cid: self.url(cid) for cid in self.chains}

    def pool(self, registry: ChainRegistry) -> ProviderPool:
        return ProviderPool(registry, overrides=self.overrides, transport=self.transport)

    def reset_calls(self) -> None:
        for chain in self.chains.values():
            chain.calls.clear()

    def total_calls(self) -> int:
        return sum(len(chain.calls) for chain in self.chains.values())

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        chain_id = int(request.url.host.split(".")[0].split("-")[1])
        payload = json.loads(request.content)
        chain = self.chains[chain_id]
        try:
            result = await chain.handle(payload["method"], payload["params"])
        except _JsonRpcError as exc:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "error": exc.error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})


class FakeSigner(EventEmitter):
    """A wallet whose answers are scripted by the test."""

    def __init__(
        self,
        network: FakeNetwork,
        accounts: list[str],
        chain_id: int = SEPOLIA_CHAIN_ID,
    ) -> None:
        super().__init__()
        self.network = network
        self.accounts = list(accounts)
        self._chain_id = chain_id
        self.reject_connect = False
        self.reject_next_tx = False
        self.reject_switch = False
        self.broadcast_error: Optional[Exception] = None
        self.connect_gate: Optional[asyncio.Event] = None
        self.tx_gate: Optional[asyncio.Event] = None
        self.sent: list[dict[str, Any]] = []
        self.switch_requests: list[int] = []

    async def request_accounts(self) -> list[str]:
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.reject_connect:
            raise SignerRejectedError("User rejected the request")
        return list(self.accounts)

    async def chain_id(self) -> int:
        return self._chain_id

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        self.sent.append(tx)
        if self.tx_gate is not None:
            await self.tx_gate.wait()
        if self.reject_next_tx:
            self.reject_next_tx = False
            raise SignerRejectedError("User denied transaction signature")
        if self.broadcast_error is not None:
            raise self.broadcast_error
        if tx.get("chainId") not in (None, self._chain_id):
            raise SignerRejectedError(f"Wallet is on chain {self._chain_id}, not {tx['chainId']}")
        return self.network[self._chain_id].accept(self.accounts[0], tx)

    async def switch_chain(self, chain_id: int) -> None:
        self.switch_requests.append(chain_id)
        if self.reject_switch:
            raise SignerRejectedError("User rejected the network switch")
        self._chain_id = chain_id
        self.emit(SignerEvent(SignerEventKind.CHAIN_CHANGED, chain_id=chain_id))

    def change_accounts(self, *accounts: str) -> None:
        self.accounts = list(accounts)
        self.emit(SignerEvent(SignerEventKind.ACCOUNTS_CHANGED, accounts=tuple(accounts)))


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture()
def registry() -> ChainRegistry:
    return ChainRegistry.default()


@pytest.fixture()
def network() -> FakeNetwork:
    net = FakeNetwork(SEPOLIA_CHAIN_ID, POLYGON_CHAIN_ID)
    sepolia = net[SEPOLIA_CHAIN_ID]
    sepolia.native[ALICE.lower()] = 2 * 10**18
    sepolia.native[BOB.lower()] = 7 * 10**18
    sepolia.set_token_balance(TKA.contract_address, ALICE, 100 * 10**18)
    sepolia.set_token_balance(TKB.contract_address, ALICE, 50 * 10**18)
    sepolia.set_token_balance(TKA.contract_address, BOB, 3 * 10**18)
    sepolia.set_token_balance(TKB.contract_address, BOB, 0)
    net[POLYGON_CHAIN_ID].native[ALICE.lower()] = 10**18
    return net


@pytest.fixture()
def pool(network: FakeNetwork, registry: ChainRegistry) -> ProviderPool:
    return network.pool(registry)


@pytest.fixture()
def signer(network: FakeNetwork) -> FakeSigner:
    return FakeSigner(network, [ALICE])
