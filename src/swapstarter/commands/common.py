"""Plumbing shared by the CLI commands: settings, signer, client and output."""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Coroutine, Optional, TypeVar

import click

from ..chain.registry import ChainRegistry
from ..chain.rpc import ProviderPool
from ..config import Settings
from ..core.client import WalletClient
from ..core.models import BalanceStatus, BalanceView
from ..errors import SwapStarterError
from ..wallet.keys import load_private_key
from ..wallet.signer import Approver, LocalSigner, RequestKind, SignRequest

T = TypeVar("T")


def load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ValueError as exc:
        click.secho(f"ERROR: Invalid configuration: {exc}", fg="red")
        sys.exit(1)


def cli_approver(assume_yes: bool = False) -> Approver:
    """
    Approver that asks on the terminal before signing or switching.

    Connecting is always allowed: the key already belongs to the person
    running the command.
    """

    async def approve(request: SignRequest) -> bool:
        if assume_yes or request.kind is RequestKind.CONNECT:
            return True
        if request.kind is RequestKind.SWITCH_CHAIN:
            prompt = f"Switch wallet to chain {request.payload.get('chainId')}?"
        else:
            prompt = f"Sign and send this transaction from {request.address}?"
        return await asyncio.to_thread(click.confirm, prompt, default=False)

    return approve


def build_client(
    settings: Settings,
    approve: Optional[Approver] = None,
    chain_id: Optional[int] = None,
) -> WalletClient:
    """Wire a WalletClient around the locally stored key."""
    try:
        private_key = load_private_key()
    except (ValueError, FileNotFoundError) as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    registry = ChainRegistry.default()
    pool = ProviderPool(registry, overrides=settings.rpc_overrides, timeout=settings.rpc_timeout)
    signer = LocalSigner(
        private_key,
        pool,
        chain_id or settings.chain_id,
        approve=approve or cli_approver(),
    )
    return WalletClient(signer, settings, registry=registry, pool=pool)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine; client errors exit with their exit code."""
    try:
        return asyncio.run(coro)
    except SwapStarterError as exc:
        click.secho(f"ERROR [{exc.kind}]: {exc}", fg="red")
        sys.exit(exc.exit_code)


def format_view(view: BalanceView) -> str:
    if view.status is BalanceStatus.PENDING:
        return click.style("loading", dim=True)
    amount = view.balance.formatted() if view.balance is not None else "-"
    if view.status is BalanceStatus.ERROR:
        note = f"{view.error}, stale" if view.stale else str(view.error)
        return amount + click.style(f"  ({note})", fg="yellow")
    return amount


def echo_balances(client: WalletClient) -> None:
    for symbol, view in client.balances.views().items():
        click.echo(f"  {symbol:<10}{format_view(view)}")
