"""
Commands - CLI command implementations for the SwapStarter client.

Each module corresponds to one or more top-level CLI commands:
- balance:  Show native and token balances for the wallet
- transfer: Send an ERC-20 transfer and follow it to confirmation
- network:  List known networks and switch the active one
"""
