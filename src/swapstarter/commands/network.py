"""
Network - list known networks and switch the active one.

A switch lasts for the session that made it. Other commands select their
network with --chain, or start on SWAPSTARTER_CHAIN_ID.
"""

from __future__ import annotations

import sys

import click

from ..chain.registry import ChainRegistry
from ..core.client import WalletClient
from ..core.switcher import SwitchResult
from ..errors import SignerRejectedError, UnsupportedNetworkError
from .common import build_client, cli_approver, echo_balances, load_settings, run


@click.command()
def networks() -> None:
    """List the networks the client supports."""
    settings = load_settings()
    registry = ChainRegistry.default()

    for chain in registry:
        marker = click.style("*", fg="green", bold=True) if chain.id == settings.chain_id else " "
        testnet = click.style("  testnet", dim=True) if chain.is_testnet else ""
        click.echo(f"  {marker} {chain.id:<10} {chain.name:<10} {chain.native_symbol:<5}{testnet}")

    if settings.chain_id not in registry:
        click.secho(f"  * {registry.network(settings.chain_id)} (not supported)", fg="yellow")


@click.command()
@click.argument("chain_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Switch without asking for confirmation")
def switch(chain_id: int, yes: bool) -> None:
    """
    Switch the wallet to another network.

    Only networks listed by 'swapstarter networks' can be selected. On
    success the balances on the new network are printed.
    """
    settings = load_settings()
    client = build_client(settings, approve=cli_approver(yes))
    result = run(_switch(client, chain_id))

    if result is SwitchResult.UNSUPPORTED:
        click.secho(f"ERROR [{result.value}]: chain {chain_id} is not supported", fg="red")
        sys.exit(UnsupportedNetworkError.exit_code)
    if result is SwitchResult.REJECTED:
        click.secho(f"ERROR [{result.value}]: the wallet did not switch to chain {chain_id}", fg="red")
        sys.exit(SignerRejectedError.exit_code)


async def _switch(client: WalletClient, chain_id: int) -> SwitchResult:
    if chain_id not in client.registry:
        return SwitchResult.UNSUPPORTED

    async with client:
        await client.connect()
        result = await client.switch_to(chain_id)
        if result is SwitchResult.SUCCESS:
            click.secho(f"  Switched to {client.session.network}", fg="green")
            click.echo("")
            echo_balances(client)
            click.echo("")
            click.echo(f"  Use --chain {chain_id} to run other commands on this network.")
        return result
