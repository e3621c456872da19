"""
SwapStarter CLI

Command-line wallet client for ERC-20 transfers on EVM networks.

Identity = a local ECDSA/secp256k1 key in ~/.swapstarter/.env.  The key
signs transfers locally; nothing is sent to a remote wallet service.

Commands:
  keygen    - Create a local wallet key
  whoami    - Show current wallet address
  balance   - Show native and token balances
  transfer  - Send an ERC-20 transfer
  networks  - List supported networks
  switch    - Switch the active network
  info      - Show configuration
"""

from __future__ import annotations

import logging
import sys

import click

from .chain.registry import ChainRegistry
from .commands.common import load_settings
from .utils import short_address
from .wallet import keys


# ============ Constants ============

VERSION = "0.1.0"


# ============ Banner ============


def _print_banner() -> None:
    border = click.style("  ◆ ═══════════════════════════════════ ◆", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()
    click.echo(
        click.style("      S W A P S T A R T E R", fg="bright_white", bold=True)
        + click.style(f"   v{VERSION}", dim=True)
    )
    click.secho("      ─── ERC-20 wallet client ───", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="swapstarter")
@click.option("--verbose", "-v", is_flag=True, help="Log RPC traffic and state changes")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """SwapStarter: ERC-20 wallet client."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if verbose:
        # RPC traffic is logged by swapstarter.chain.rpc
        logging.getLogger("httpx").setLevel(logging.WARNING)
    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .commands.balance import balance
from .commands.network import networks, switch
from .commands.transfer import transfer

cli.add_command(balance)
cli.add_command(transfer)
cli.add_command(networks)
cli.add_command(switch)


# ============ Identity ============


@cli.command()
def whoami() -> None:
    """Show current wallet identity."""
    try:
        address = keys.get_address(keys.load_private_key())
        click.echo(f"Address: {address}")
    except (ValueError, FileNotFoundError):
        click.echo("No wallet found.")
        click.echo("Run 'swapstarter keygen' to create one.")
        sys.exit(1)


@cli.command()
@click.option("--force", is_flag=True, help="Replace an existing key")
def keygen(force: bool) -> None:
    """Create a local wallet key in ~/.swapstarter/.env."""
    if not force:
        try:
            address = keys.get_address(keys.load_private_key())
        except ValueError:
            pass
        else:
            click.echo(f"Wallet already exists: {address}")
            click.echo("Use --force to replace it.")
            return

    private_key, address = keys.generate_eoa()
    env_path = keys.save_private_key(private_key)
    click.secho("Wallet created.", fg="green")
    click.echo(f"  Address: {address}")
    click.echo(f"  Key:     {env_path}")


# ============ Info ============


@cli.command()
def info() -> None:
    """Show configuration and available commands."""
    _print_banner()
    settings = load_settings()
    registry = ChainRegistry.default()

    click.secho("  Status ─────────────────────────────", fg="cyan")
    click.echo()

    try:
        address = keys.get_address(keys.load_private_key())
        click.echo(
            click.style("  Address:   ", dim=True)
            + click.style(address, fg="bright_white")
        )
    except ValueError:
        click.echo(
            click.style("  Address:   ", dim=True)
            + click.style("not initialized", fg="yellow")
            + click.style("  (run: swapstarter keygen)", dim=True)
        )

    network = registry.network(settings.chain_id)
    click.echo(
        click.style("  Network:   ", dim=True)
        + click.style(str(network), fg="bright_white" if network.supported else "yellow")
    )
    rpc_url = settings.rpc_overrides.get(settings.chain_id)
    if rpc_url is None and network.supported:
        rpc_url = registry.get(settings.chain_id).rpc_url
    click.echo(click.style("  RPC:       ", dim=True) + (rpc_url or click.style("none", fg="yellow")))

    tokens = [
        f"{t.symbol} ({short_address(t.contract_address)})"
        for t in settings.tokens
        if t.available_on(settings.chain_id)
    ]
    click.echo(click.style("  Tokens:    ", dim=True) + (", ".join(tokens) or "none"))
    click.echo()

    click.secho("  Commands ───────────────────────────", fg="cyan")
    click.echo()

    commands = [
        ("keygen  ", "Create a local wallet key"),
        ("whoami  ", "Show current wallet address"),
        ("balance ", "Show native and token balances"),
        ("transfer", "Send an ERC-20 transfer"),
        ("networks", "List supported networks"),
        ("switch  ", "Switch the active network"),
    ]
    for cmd, desc in commands:
        click.echo(
            click.style("  ", dim=True)
            + click.style(cmd, fg="bright_white", bold=True)
            + click.style("  ◇  ", fg="cyan")
            + click.style(desc, dim=True)
        )

    click.echo()


# ============ Entry Points ============


def main() -> None:
    """SwapStarter CLI entry point."""
    # Ensure UTF-8 output on Windows (for Unicode box-drawing / symbols)
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass  # Fallback: old Python or non-tty
    cli()


if __name__ == "__main__":
    main()
