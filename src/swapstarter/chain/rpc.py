"""
JSON-RPC Client for EVM networks.

Lightweight alternative to web3.py: uses httpx for HTTP + eth-abi for encoding.
Every call is a coroutine so balance reads, broadcasts and receipt polling
can overlap on one event loop.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Optional

import httpx

from ..errors import NetworkUnavailableError, RpcError
from .abi import decode_function_result, encode_function_call
from .registry import ChainRegistry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_request_ids = itertools.count(1)


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


class RpcClient:
    """
    JSON-RPC client bound to a single endpoint.

    Args:
        url: RPC endpoint URL
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def __repr__(self) -> str:
        return f"RpcClient({self.url!r})"

    async def call(self, method: str, params: list) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            Result field from the RPC response

        Raises:
            NetworkUnavailableError: If the endpoint cannot be reached or
                answers with a non-JSON-RPC payload
            RpcError: If the node returns a JSON-RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(_request_ids),
        }
        logger.debug("rpc -> %s %s %s", self.url, method, params)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise NetworkUnavailableError(f"{method} failed against {self.url}: {exc}") from exc
        except ValueError as exc:
            raise NetworkUnavailableError(f"{method}: malformed response from {self.url}") from exc

        if not isinstance(data, dict):
            raise NetworkUnavailableError(f"{method}: malformed response from {self.url}")

        if data.get("error"):
            error = data["error"]
            if isinstance(error, dict):
                raise RpcError(str(error.get("message", error)), code=error.get("code"), data=error.get("data"))
            raise RpcError(str(error))

        result = data.get("result")
        logger.debug("rpc <- %s %s", method, result)
        return result

    # Reads

    async def chain_id(self) -> int:
        return _to_int(await self.call("eth_chainId", []))

    async def block_number(self) -> int:
        return _to_int(await self.call("eth_blockNumber", []))

    async def get_balance(self, address: str, block: str = "latest") -> int:
        """ETH (native) balance in wei."""
        return _to_int(await self.call("eth_getBalance", [address, block]))

    async def get_nonce(self, address: str, block: str = "pending") -> int:
        return _to_int(await self.call("eth_getTransactionCount", [address, block]))

    async def get_gas_price(self) -> int:
        return _to_int(await self.call("eth_gasPrice", []))

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        return await self.call("eth_call", [{"to": to, "data": data}, block])

    async def read_contract(
        self,
        contract_address: str,
        function_name: str,
        args: Optional[list] = None,
        abi: Optional[list] = None,
    ) -> Any:
        """
        Read from a smart contract (eth_call).

        Returns:
            Decoded return value(s), or None when the address holds no code
            and the node answers with empty data
        """
        if abi is None:
            raise ValueError("abi must be provided")
        calldata = encode_function_call(abi, function_name, args or [])
        result = await self.eth_call(contract_address, calldata)
        if result is None or result == "0x":
            return None
        return decode_function_result(abi, function_name, result)

    # Writes / tracking

    async def send_raw_transaction(self, raw_tx: str) -> str:
        """Send a signed raw transaction, returning its 0x-prefixed hash."""
        return await self.call("eth_sendRawTransaction", [raw_tx])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])


class ProviderPool:
    """One RpcClient per chain id, built lazily from the registry."""

    def __init__(
        self,
        registry: ChainRegistry,
        overrides: Optional[dict[int, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.registry = registry
        self.overrides = dict(overrides or {})
        self.timeout = timeout
        self._transport = transport
        self._clients: dict[int, RpcClient] = {}

    def url_for(self, chain_id: int) -> Optional[str]:
        if chain_id in self.overrides:
            return self.overrides[chain_id]
        chain = self.registry.get(chain_id)
        return chain.rpc_url if chain else None

    def get(self, chain_id: int) -> RpcClient:
        """
        Return the client for ``chain_id``.

        Raises:
            NetworkUnavailableError: If no endpoint is known for the chain
        """
        client = self._clients.get(chain_id)
        if client is not None:
            return client
        url = self.url_for(chain_id)
        if not url:
            raise NetworkUnavailableError(f"No RPC endpoint configured for chain {chain_id}")
        client = RpcClient(url, timeout=self.timeout, transport=self._transport)
        self._clients[chain_id] = client
        return client
