"""
Transfer - send an ERC-20 token transfer.

Flow:
1. Resolve the token by symbol on the active network
2. Parse the human amount exactly into base units
3. Connect, build the transfer call and ask for approval (unless --yes)
4. Broadcast, then follow the receipt until it is confirmed or fails
5. Print the explorer link and refreshed balances
"""

from __future__ import annotations

import sys
from typing import Callable, Optional

import click

from ..core.client import WalletClient
from ..core.models import TransactionRecord, TransferRequest, TxState
from ..errors import InvalidRequestError, exit_code_for
from ..utils import parse_units, short_address
from .common import build_client, cli_approver, echo_balances, load_settings, run


@click.command()
@click.option("--token", "symbol", required=True, help="Token symbol (e.g. TKA)")
@click.option("--to", "recipient", required=True, help="Recipient address (0x...)")
@click.option("--amount", required=True, help="Amount in token units (e.g. 1.5)")
@click.option("--chain", "chain_id", type=int, default=None, help="Chain id (default: configured chain)")
@click.option("--yes", "-y", is_flag=True, help="Sign without asking for confirmation")
def transfer(symbol: str, recipient: str, amount: str, chain_id: Optional[int], yes: bool) -> None:
    """
    Send an ERC-20 transfer and wait for confirmation.

    Prints every lifecycle state as it happens. Exits non-zero when the
    transfer fails.
    """
    settings = load_settings()
    active = chain_id or settings.chain_id

    token = settings.token(symbol, active)
    if token is None:
        click.secho(f"ERROR: Unknown token {symbol!r} on chain {active}", fg="red")
        known = sorted({t.symbol for t in settings.tokens if t.available_on(active)})
        if known:
            click.echo(f"  Available: {', '.join(known)}")
        sys.exit(InvalidRequestError.exit_code)

    try:
        raw_amount = parse_units(amount, token.decimals)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--amount") from exc

    client = build_client(settings, approve=cli_approver(yes), chain_id=active)
    request = TransferRequest(token=token, recipient=recipient, amount=raw_amount)
    record = run(_transfer(client, request, amount))

    if record.state is TxState.FAILED:
        sys.exit(exit_code_for(record.error))


def _printer() -> Callable[[TransactionRecord], None]:
    last: list[Optional[TxState]] = [None]

    def echo(record: TransactionRecord) -> None:
        if record.state is last[0]:
            return
        last[0] = record.state
        if record.state is TxState.SUBMITTED:
            click.echo(f"  [{record.state.value}] {record.hash}")
        elif record.state is TxState.FAILED:
            click.secho(f"  [{record}] {record.detail or ''}".rstrip(), fg="red")
        elif record.state is TxState.CONFIRMED:
            click.secho(f"  [{record.state.value}] block {record.block_number}", fg="green")
        elif record.state is not TxState.IDLE:
            click.echo(f"  [{record.state.value}]")

    return echo


async def _transfer(client: WalletClient, request: TransferRequest, amount: str) -> TransactionRecord:
    async with client:
        state = await client.connect()
        click.echo(f"  From:     {state.account}")
        click.echo(f"  To:       {request.recipient}")
        click.echo(f"  Amount:   {amount} {request.token.symbol} ({short_address(request.token.contract_address)})")
        click.echo(f"  Network:  {state.network}")
        click.echo("")

        client.submitter.on_change(_printer())
        record = await client.transfer(request)

        if record.state is TxState.CONFIRMED:
            url = client.registry.explorer_tx_url(record.chain_id, record.hash)
            if url:
                click.echo(f"  Explorer: {url}")
            click.echo("")
            echo_balances(client)
        return record
