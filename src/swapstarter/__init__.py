__all__ = [
    # Models
    "Balance",
    "BalanceStatus",
    "BalanceView",
    "Network",
    "TokenDescriptor",
    "TransactionRecord",
    "TransferRequest",
    "TxState",
    # Chain registry / RPC
    "ChainInfo",
    "ChainRegistry",
    "DEFAULT_CHAINS",
    "ProviderPool",
    "RpcClient",
    # Client core
    "BalanceReader",
    "BlockWatcher",
    "NetworkSwitcher",
    "ProviderSession",
    "SessionState",
    "SwitchResult",
    "TransactionSubmitter",
    "WalletClient",
    # Signer
    "LocalSigner",
    "Signer",
    "SignerEvent",
    "SignerEventKind",
    "SignRequest",
    # Configuration
    "Settings",
    "DEFAULT_TOKENS",
    # Errors
    "ErrorKind",
    "SwapStarterError",
    "ConnectionRejectedError",
    "ConnectionTimeoutError",
    "NetworkUnavailableError",
    "InvalidAddressError",
    "InvalidRequestError",
    "UnsupportedNetworkError",
    "SubmissionInProgressError",
    "SignerRejectedError",
    "RpcError",
]

from .errors import (
    ConnectionRejectedError,
    ConnectionTimeoutError,
    ErrorKind,
    InvalidAddressError,
    InvalidRequestError,
    NetworkUnavailableError,
    RpcError,
    SignerRejectedError,
    SubmissionInProgressError,
    SwapStarterError,
    UnsupportedNetworkError,
)
from .core.models import (
    Balance,
    BalanceStatus,
    BalanceView,
    Network,
    TokenDescriptor,
    TransactionRecord,
    TransferRequest,
    TxState,
)
from .chain.registry import DEFAULT_CHAINS, ChainInfo, ChainRegistry
from .chain.rpc import ProviderPool, RpcClient
from .wallet.signer import LocalSigner, Signer, SignerEvent, SignerEventKind, SignRequest
from .config import DEFAULT_TOKENS, Settings
from .core.session import ProviderSession, SessionState
from .core.balances import BalanceReader
from .core.blocks import BlockWatcher
from .core.submitter import TransactionSubmitter
from .core.switcher import NetworkSwitcher, SwitchResult
from .core.client import WalletClient
