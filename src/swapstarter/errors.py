"""
Error taxonomy for the SwapStarter client core.

Every failure that reaches the presentation layer carries an ``ErrorKind``.
Exceptions are raised where the caller has to stop (connect, read, submit
while busy); the transfer lifecycle records the kind on the terminal
``TransactionRecord`` instead of raising.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    CONNECTION_REJECTED = "ConnectionRejected"
    CONNECTION_TIMEOUT = "ConnectionTimeout"
    NETWORK_UNAVAILABLE = "NetworkUnavailable"
    INVALID_ADDRESS = "InvalidAddress"
    INVALID_REQUEST = "InvalidRequest"
    USER_REJECTED = "UserRejected"
    BROADCAST_ERROR = "BroadcastError"
    REVERTED = "Reverted"
    TIMEOUT = "Timeout"
    UNSUPPORTED = "Unsupported"
    SUBMISSION_IN_PROGRESS = "SubmissionInProgress"

    def __str__(self) -> str:
        return self.value


class SwapStarterError(RuntimeError):
    kind: ErrorKind
    exit_code: int = 1


class ConnectionRejectedError(SwapStarterError):
    kind = ErrorKind.CONNECTION_REJECTED
    exit_code = 2


class ConnectionTimeoutError(SwapStarterError):
    kind = ErrorKind.CONNECTION_TIMEOUT
    exit_code = 3


class NetworkUnavailableError(SwapStarterError):
    kind = ErrorKind.NETWORK_UNAVAILABLE
    exit_code = 4


class InvalidAddressError(SwapStarterError):
    kind = ErrorKind.INVALID_ADDRESS
    exit_code = 5


class InvalidRequestError(SwapStarterError):
    kind = ErrorKind.INVALID_REQUEST
    exit_code = 5


class UnsupportedNetworkError(SwapStarterError):
    kind = ErrorKind.UNSUPPORTED
    exit_code = 6


class SubmissionInProgressError(SwapStarterError):
    kind = ErrorKind.SUBMISSION_IN_PROGRESS
    exit_code = 7


class SignerRejectedError(SwapStarterError):
    """The signer (wallet) declined a request."""

    kind = ErrorKind.USER_REJECTED
    exit_code = 8


def exit_code_for(kind: ErrorKind) -> int:
    """CLI exit code for an error kind recorded on a failed transfer."""
    for cls in SwapStarterError.__subclasses__():
        if cls.kind is kind:
            return cls.exit_code
    return SwapStarterError.exit_code


class InvalidTransitionError(ValueError):
    """Raised by the transfer state machine on an edge it does not allow."""


class RpcError(RuntimeError):
    """A JSON-RPC error object returned by the node."""

    def __init__(self, message: str, code: int | None = None, data: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data

    def __str__(self) -> str:
        base = super().__str__()
        if self.code is None:
            return f"RPC error: {base}"
        return f"RPC error {self.code}: {base}"


__all__ = [
    "ConnectionRejectedError",
    "ConnectionTimeoutError",
    "ErrorKind",
    "InvalidAddressError",
    "InvalidRequestError",
    "InvalidTransitionError",
    "NetworkUnavailableError",
    "RpcError",
    "SignerRejectedError",
    "SubmissionInProgressError",
    "SwapStarterError",
    "UnsupportedNetworkError",
    "exit_code_for",
]
