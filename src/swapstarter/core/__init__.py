"""
Core - the transaction-and-balance client core.

- session:   connected account + active network, change notifications
- balances:  native / token balance reads with staleness filtering
- blocks:    new-block polling that drives balance refreshes
- submitter: transfer lifecycle state machine
- switcher:  network switch requests reconciled with the signer
- client:    wires the above together for one signer
"""
