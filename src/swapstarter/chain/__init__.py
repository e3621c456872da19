"""
Chain - On-chain interaction layer for SwapStarter.

Provides the chain registry, an async JSON-RPC client and ABI helpers
for reading ERC-20 balances and tracking transfers.

Uses httpx + eth-abi instead of the heavyweight web3.py.
"""
