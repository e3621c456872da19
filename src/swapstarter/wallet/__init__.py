"""
Wallet - key management and the signer interface.

The signer is the only component holding private keys; the client core
asks it to connect, sign-and-broadcast and switch networks.
"""
