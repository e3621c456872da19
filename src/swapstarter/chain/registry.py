"""
Chain Registry - the fixed table of supported EVM networks.

Adding a network only requires a ``ChainInfo`` entry; nothing else in the
client switches on chain ids.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from ..core.models import Network


@dataclass(frozen=True)
class ChainInfo:
    """Display name and RPC characteristics of one network."""
    id: int
    name: str
    rpc_url: str
    explorer_url: str = ""
    native_symbol: str = "ETH"
    native_decimals: int = 18
    block_time: float = 12.0
    is_testnet: bool = False

    def to_network(self) -> Network:
        return Network(id=self.id, name=self.name, supported=True)


DEFAULT_CHAINS: tuple[ChainInfo, ...] = (
    ChainInfo(
        id=1,
        name="Ethereum",
        rpc_url="https://eth.llamarpc.com",
        explorer_url="https://etherscan.io",
    ),
    ChainInfo(
        id=11155111,
        name="Sepolia",
        rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        explorer_url="https://sepolia.etherscan.io",
        is_testnet=True,
    ),
    ChainInfo(
        id=137,
        name="Polygon",
        rpc_url="https://polygon-rpc.com",
        explorer_url="https://polygonscan.com",
        native_symbol="POL",
        block_time=2.0,
    ),
    ChainInfo(
        id=42161,
        name="Arbitrum",
        rpc_url="https://arb1.arbitrum.io/rpc",
        explorer_url="https://arbiscan.io",
        block_time=0.25,
    ),
)


class ChainRegistry:
    def __init__(self, chains: Iterable[ChainInfo] = ()) -> None:
        self._chains: dict[int, ChainInfo] = {}
        for chain in chains:
            self.register(chain)

    @classmethod
    def default(cls) -> "ChainRegistry":
        return cls(DEFAULT_CHAINS)

    def register(self, chain: ChainInfo) -> None:
        self._chains[chain.id] = chain

    def get(self, chain_id: int) -> Optional[ChainInfo]:
        return self._chains.get(chain_id)

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._chains

    def __iter__(self) -> Iterator[ChainInfo]:
        return iter(self._chains.values())

    def __len__(self) -> int:
        return len(self._chains)

    def is_supported(self, chain_id: int) -> bool:
        return chain_id in self._chains

    def chains(self) -> list[ChainInfo]:
        return list(self._chains.values())

    def network(self, chain_id: int) -> Network:
        """Resolve a chain id to a Network, even for chains we don't know."""
        chain = self._chains.get(chain_id)
        if chain is None:
            return Network(id=chain_id, name=f"Chain {chain_id}", supported=False)
        return chain.to_network()

    def explorer_tx_url(self, chain_id: int, tx_hash: str) -> Optional[str]:
        chain = self._chains.get(chain_id)
        if chain is None or not chain.explorer_url:
            return None
        return f"{chain.explorer_url.rstrip('/')}/tx/{tx_hash}"
