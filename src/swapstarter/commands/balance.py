"""
Balance - show the wallet's native and token balances.

Connects the local key on the configured (or --chain) network and prints
the native currency plus every configured token available there.
"""

from __future__ import annotations

from typing import Optional

import click

from ..core.client import WalletClient
from .common import build_client, echo_balances, load_settings, run


@click.command()
@click.option("--chain", "chain_id", type=int, default=None, help="Chain id to read from (default: configured chain)")
def balance(chain_id: Optional[int]) -> None:
    """Show native and token balances for the wallet."""
    settings = load_settings()
    client = build_client(settings, chain_id=chain_id)
    run(_show(client))


async def _show(client: WalletClient) -> None:
    async with client:
        state = await client.connect()
        click.echo(f"  Account:  {state.account}")
        click.echo(f"  Network:  {state.network}")
        if not state.network.supported:
            click.secho("  (network not in the registry)", fg="yellow")
        click.echo("")
        echo_balances(client)
