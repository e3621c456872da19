"""
Transaction Submitter - ERC-20 transfer lifecycle.

    Idle -> Building -> AwaitingSignature -> Submitted -> Confirming -> Confirmed
                 \\              \\                            \\
                  +-> Failed     +-> Failed                   +-> Failed

``reset()`` returns to Idle from any state. A reset never recalls a
broadcast transaction; it only stops this client from tracking it.

The record is an immutable value and every state change goes through
``transition()``, so a record can never be pending and failed at once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Iterable, Optional

from ..chain.abi import ERC20_ABI, encode_transfer
from ..chain.rpc import ProviderPool, RpcClient
from ..errors import (
    ErrorKind,
    InvalidRequestError,
    InvalidTransitionError,
    NetworkUnavailableError,
    RpcError,
    SignerRejectedError,
    SubmissionInProgressError,
)
from ..utils import ZERO_ADDRESS, is_address, same_address
from ..wallet.signer import Signer
from .balances import BalanceReader
from .models import BalanceStatus, TokenDescriptor, TransactionRecord, TransferRequest, TxState
from .session import ProviderSession, SessionState

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATIONS = 1
DEFAULT_CONFIRMATION_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 2.0

VALID_TRANSITIONS: dict[TxState, frozenset[TxState]] = {
    TxState.IDLE: frozenset({TxState.BUILDING}),
    TxState.BUILDING: frozenset({TxState.AWAITING_SIGNATURE, TxState.FAILED}),
    TxState.AWAITING_SIGNATURE: frozenset({TxState.SUBMITTED, TxState.FAILED}),
    TxState.SUBMITTED: frozenset({TxState.CONFIRMING}),
    TxState.CONFIRMING: frozenset({TxState.CONFIRMED, TxState.FAILED}),
    TxState.CONFIRMED: frozenset(),
    TxState.FAILED: frozenset(),
}


def is_valid_transition(from_state: TxState, to_state: TxState) -> bool:
    if to_state is TxState.IDLE:
        return True
    return to_state in VALID_TRANSITIONS[from_state]


def transition(record: TransactionRecord, to_state: TxState, **changes: Any) -> TransactionRecord:
    """
    Pure transition function for the transfer state machine.

    Args:
        record: Current record
        to_state: Target state
        **changes: Other record fields to set (hash, error, ...)

    Returns:
        The new record; a fresh empty record when resetting to Idle

    Raises:
        InvalidTransitionError: If the edge is not in VALID_TRANSITIONS
    """
    if not is_valid_transition(record.state, to_state):
        raise InvalidTransitionError(f"{record.state.value} -> {to_state.value} is not allowed")
    if to_state is TxState.IDLE:
        return TransactionRecord()
    if to_state is TxState.FAILED and changes.get("error") is None:
        raise InvalidTransitionError("Failed requires an error kind")
    return replace(record, state=to_state, **changes)


RecordListener = Callable[[TransactionRecord], None]


class TransactionSubmitter:
    """
    Drives one transfer at a time from request to on-chain outcome.

    Args:
        session: Provider session (sender account and network)
        signer: Wallet asked to sign and broadcast
        pool: RPC endpoints used to poll for receipts
        balances: Balance reader used for the soft balance check and
                  refreshed once a transfer is confirmed
        tokens: Tokens the client is configured for (empty = any)
        confirmations: Blocks required on top of inclusion (minimum 1)
        confirmation_timeout: Seconds to wait for inclusion and depth
        poll_interval: Seconds between receipt polls
    """

    def __init__(
        self,
        session: ProviderSession,
        signer: Signer,
        pool: ProviderPool,
        balances: Optional[BalanceReader] = None,
        tokens: Iterable[TokenDescriptor] = (),
        confirmations: int = DEFAULT_CONFIRMATIONS,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        abi: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self._session = session
        self._signer = signer
        self._pool = pool
        self._balances = balances
        self.tokens = tuple(tokens)
        self.confirmations = max(1, confirmations)
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self._abi = abi or ERC20_ABI
        self._record = TransactionRecord()
        self._generation = 0
        self._listeners: list[RecordListener] = []
        session.on_change(self._on_session_change)

    @property
    def record(self) -> TransactionRecord:
        return self._record

    @property
    def busy(self) -> bool:
        return self._record.state is not TxState.IDLE

    def on_change(self, listener: RecordListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---------------------------------------------------------------------
    # Building
    # ---------------------------------------------------------------------

    def validate(self, request: TransferRequest, state: Optional[SessionState] = None) -> None:
        """
        Local checks only; never touches the network.

        Raises:
            InvalidRequestError: Describing the first problem found
        """
        state = state or self._session.state
        if not state.connected:
            raise InvalidRequestError("Wallet is not connected")

        token = request.token
        if self.tokens and token not in self.tokens:
            raise InvalidRequestError(f"{token.symbol} is not a configured token")
        if not token.available_on(state.chain_id):
            raise InvalidRequestError(f"{token.symbol} is not available on {state.network}")

        if not is_address(request.recipient):
            raise InvalidRequestError(f"Malformed recipient address: {request.recipient!r}")
        if same_address(request.recipient, ZERO_ADDRESS) and not request.allow_zero_address:
            raise InvalidRequestError("Refusing to transfer to the zero address")

        amount = request.amount
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidRequestError(f"Amount must be an integer of base units, got {amount!r}")
        if amount <= 0:
            raise InvalidRequestError("Amount must be positive")

        if self._balances is not None:
            view = self._balances.view(token)
            if view.status is BalanceStatus.READY and view.balance is not None and amount > view.balance.raw:
                raise InvalidRequestError(
                    f"Amount exceeds {token.symbol} balance ({view.balance.formatted()})"
                )

    def build_transaction(self, request: TransferRequest, chain_id: Optional[int] = None) -> dict[str, Any]:
        tx: dict[str, Any] = {
            "to": request.token.contract_address,
            "data": encode_transfer(request.recipient, request.amount, self._abi),
            "value": 0,
        }
        if chain_id is not None:
            # Signers refuse to sign for any other network
            tx["chainId"] = chain_id
        return tx

    # ---------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------

    async def submit(self, request: TransferRequest) -> TransactionRecord:
        """
        Run a transfer through its lifecycle.

        Returns:
            The terminal record (Confirmed or Failed). If ``reset()`` is
            called meanwhile, the last record this run produced before it
            was detached.

        Raises:
            SubmissionInProgressError: If a transfer is already in flight or
                its terminal record has not been reset yet

        Any other exception from the signer or the node moves the record to
        Failed(BroadcastError) before it propagates.
        """
        if self.busy:
            raise SubmissionInProgressError(f"A transfer is already in progress ({self._record})")

        self._generation += 1
        generation = self._generation
        state = self._session.state

        record = transition(self._record, TxState.BUILDING, request=request, chain_id=state.chain_id)
        self._publish(generation, record)

        try:
            self.validate(request, state)
            rpc = self._pool.get(state.chain_id)
        except InvalidRequestError as exc:
            record = transition(record, TxState.FAILED, error=ErrorKind.INVALID_REQUEST, detail=str(exc))
            self._publish(generation, record)
            return record
        except NetworkUnavailableError as exc:
            record = transition(record, TxState.FAILED, error=ErrorKind.NETWORK_UNAVAILABLE, detail=str(exc))
            self._publish(generation, record)
            return record

        try:
            return await self._sign_and_confirm(generation, rpc, record, request)
        except Exception as exc:
            self._abort(generation, exc)
            raise

    async def _sign_and_confirm(
        self, generation: int, rpc: RpcClient, record: TransactionRecord, request: TransferRequest
    ) -> TransactionRecord:
        tx = self.build_transaction(request, record.chain_id)
        record = transition(record, TxState.AWAITING_SIGNATURE)
        self._publish(generation, record)

        try:
            tx_hash = await self._signer.send_transaction(tx)
        except SignerRejectedError as exc:
            failure = dict(error=ErrorKind.USER_REJECTED, detail=str(exc))
        except asyncio.TimeoutError:
            failure = dict(error=ErrorKind.TIMEOUT, detail="Signature request timed out")
        except (RpcError, NetworkUnavailableError) as exc:
            failure = dict(error=ErrorKind.BROADCAST_ERROR, detail=str(exc))
        else:
            failure = None

        if failure is not None:
            record = transition(record, TxState.FAILED, **failure)
            self._publish(generation, record)
            return record
        if not self._current(generation):
            return record

        record = transition(record, TxState.SUBMITTED, hash=tx_hash)
        self._publish(generation, record)
        record = transition(record, TxState.CONFIRMING)
        self._publish(generation, record)

        record = await self._confirm(generation, rpc, record)
        if not self._current(generation):
            return record
        self._publish(generation, record)

        if record.state is TxState.CONFIRMED and self._balances is not None:
            await self._balances.refresh(tokens=[request.token])
        return record

    def reset(self) -> TransactionRecord:
        """Forget the current record and detach any in-flight lifecycle."""
        if self._record.state is not TxState.IDLE:
            logger.info("reset transfer record (%s)", self._record)
        self._generation += 1
        self._record = transition(self._record, TxState.IDLE)
        self._notify()
        return self._record

    def _abort(self, generation: int, exc: Exception) -> None:
        record = self._record
        if not self._current(generation) or not is_valid_transition(record.state, TxState.FAILED):
            return
        logger.error("transfer aborted in %s: %r", record.state.value, exc)
        self._publish(
            generation,
            transition(record, TxState.FAILED, error=ErrorKind.BROADCAST_ERROR, detail=f"Unexpected error: {exc!r}"),
        )

    async def _confirm(
        self, generation: int, rpc: RpcClient, record: TransactionRecord
    ) -> TransactionRecord:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.confirmation_timeout
        tx_hash = record.hash

        while self._current(generation):
            try:
                receipt = await rpc.get_transaction_receipt(tx_hash)
                if receipt is not None and receipt.get("blockNumber") is not None:
                    block = int(receipt["blockNumber"], 16)
                    if int(receipt.get("status", "0x1"), 16) == 0:
                        return transition(
                            record, TxState.FAILED,
                            error=ErrorKind.REVERTED,
                            detail="Transaction reverted",
                            block_number=block,
                            receipt=receipt,
                        )
                    depth = max(0, await rpc.block_number() - block + 1)
                    if (block, depth) != (record.block_number, record.confirmations):
                        record = replace(record, block_number=block, confirmations=depth, receipt=receipt)
                        self._publish(generation, record)
                    if depth >= self.confirmations:
                        return transition(record, TxState.CONFIRMED)
            except (RpcError, NetworkUnavailableError) as exc:
                logger.warning("receipt poll for %s failed: %s", tx_hash, exc)
            except (TypeError, ValueError) as exc:
                logger.warning("malformed receipt for %s: %s", tx_hash, exc)

            remaining = deadline - loop.time()
            if remaining <= 0:
                return transition(
                    record, TxState.FAILED,
                    error=ErrorKind.TIMEOUT,
                    detail=f"Not confirmed within {self.confirmation_timeout:g}s",
                )
            await asyncio.sleep(min(self.poll_interval, remaining))
        return record

    # ---------------------------------------------------------------------
    # Bookkeeping
    # ---------------------------------------------------------------------

    def _current(self, generation: int) -> bool:
        return generation == self._generation

    def _publish(self, generation: int, record: TransactionRecord) -> None:
        if not self._current(generation):
            return
        if record.state is not self._record.state:
            logger.info(
                "transfer %s -> %s%s",
                self._record.state.value,
                record.state.value,
                f" ({record.error}: {record.detail})" if record.error else "",
            )
        self._record = record
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._record)

    def _on_session_change(self, state: SessionState) -> None:
        if not state.connected and self.busy:
            self.reset()
