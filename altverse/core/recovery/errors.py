"""
Error Classification

Defines the error taxonomy for quoting, chain switching and transaction
execution, and reduces raw provider/RPC/wallet errors to a small set of
friendly categories before anything is shown to the user.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Friendly categories that user-facing messages are reduced to."""

    BALANCE = "balance"           # Not enough tokens or native gas
    SLIPPAGE = "slippage"         # Price moved past tolerance
    GAS = "gas"                   # Fee too low / gas estimation failed
    APPROVAL = "approval"         # Allowance missing or approval failed
    TIMEOUT = "timeout"           # Request or confirmation took too long
    NETWORK = "network"           # Wrong chain or connectivity issues
    REJECTED = "rejected"         # User declined in the wallet
    UNKNOWN = "unknown"


# EIP-1193 provider error codes
USER_REJECTED_CODE = 4001
UNRECOGNIZED_CHAIN_CODE = 4902


FRIENDLY_MESSAGES: Dict[ErrorCategory, str] = {
    ErrorCategory.BALANCE: "Insufficient balance to complete this transaction.",
    ErrorCategory.SLIPPAGE: "Price moved beyond your slippage tolerance, please try again.",
    ErrorCategory.GAS: "Gas estimation failed, the network may be congested.",
    ErrorCategory.APPROVAL: "Token approval failed or is missing.",
    ErrorCategory.TIMEOUT: "The request timed out, please try again.",
    ErrorCategory.NETWORK: "Network error, please check your connection and wallet network.",
    ErrorCategory.REJECTED: "The request was rejected in your wallet.",
    ErrorCategory.UNKNOWN: "Something went wrong, please try again.",
}


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = False
    chain_id: Optional[int] = None
    tx_hash: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class AltverseError(Exception):
    """
    Base class for every error raised by the transfer core.

    ``message`` is the technical description that gets logged,
    ``user_message`` is the single sentence safe to display.
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        *,
        user_message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or FRIENDLY_MESSAGES[self.category]
        self.context = context or ErrorContext(category=self.category, recoverable=self.recoverable)


class QuoteProviderError(AltverseError):
    """The routing service failed or returned an unusable response."""

    category = ErrorCategory.NETWORK
    recoverable = True

    def __init__(self, message: str = "Quote request failed", provider: Optional[str] = None):
        super().__init__(
            message,
            user_message="Unable to fetch a quote right now, please try again.",
            context=ErrorContext(
                category=self.category,
                recoverable=True,
                details={"provider": provider} if provider else {},
            ),
        )
        self.provider = provider


class StaleResponse(AltverseError):
    """A response arrived for a superseded request generation. Never shown."""

    def __init__(self, generation: int, current: int):
        super().__init__(f"Response for generation {generation} superseded by {current}")
        self.generation = generation
        self.current = current


class InsufficientBalanceError(AltverseError):
    category = ErrorCategory.BALANCE

    def __init__(
        self,
        symbol: str,
        required: Optional[str] = None,
        available: Optional[str] = None,
    ):
        super().__init__(
            f"Insufficient {symbol} balance: required {required}, available {available}",
            user_message=f"Insufficient {symbol} balance.",
            context=ErrorContext(
                category=self.category,
                details={"symbol": symbol, "required": required, "available": available},
            ),
        )
        self.symbol = symbol


class InsufficientAllowanceError(AltverseError):
    category = ErrorCategory.APPROVAL

    def __init__(self, symbol: str, required: Optional[str] = None, allowance: Optional[str] = None):
        super().__init__(
            f"Insufficient {symbol} allowance: required {required}, approved {allowance}",
            user_message=f"Insufficient allowance. Please approve {required} {symbol} first.",
            context=ErrorContext(
                category=self.category,
                details={"symbol": symbol, "required": required, "allowance": allowance},
            ),
        )


class ChainMismatchError(AltverseError):
    """Wallet is connected to a different chain than the transfer requires."""

    category = ErrorCategory.NETWORK
    recoverable = True

    def __init__(self, expected: Any, actual: Any = None, reason: Optional[str] = None):
        super().__init__(
            f"Wallet is on chain {actual}, expected {expected}",
            user_message=reason or "Your wallet is connected to the wrong network.",
            context=ErrorContext(category=self.category, recoverable=True,
                                 details={"expected": expected, "actual": actual}),
        )
        self.expected = expected
        self.actual = actual


class WalletRequestError(AltverseError):
    """A wallet RPC request failed; ``code`` follows EIP-1193 when known."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        if code == USER_REJECTED_CODE:
            self.category = ErrorCategory.REJECTED
        else:
            self.category = _match_category(message)
        super().__init__(message, context=ErrorContext(category=self.category, details={"code": code}))


class UnknownChainError(WalletRequestError):
    """The wallet has no definition for the requested chain."""

    category = ErrorCategory.NETWORK
    recoverable = True

    def __init__(self, chain_id: Any, message: Optional[str] = None):
        super().__init__(message or f"Unrecognized chain ID {chain_id}", code=UNRECOGNIZED_CHAIN_CODE)
        self.chain_id = chain_id


class RpcError(AltverseError):
    """JSON-RPC error object or transport failure."""

    category = ErrorCategory.NETWORK
    recoverable = True

    def __init__(self, message: str, code: Optional[int] = None, chain_id: Optional[int] = None):
        super().__init__(message, context=ErrorContext(category=self.category, recoverable=True,
                                                        chain_id=chain_id, details={"code": code}))
        self.code = code


class TransactionRevertedError(AltverseError):
    """Transaction mined with status 0. The user must re-initiate."""

    category = ErrorCategory.UNKNOWN

    def __init__(self, tx_hash: Optional[str] = None, chain_id: Optional[int] = None,
                 reason: Optional[str] = None):
        self.category = _match_category(reason or "")
        super().__init__(
            f"Transaction {tx_hash} reverted" + (f": {reason}" if reason else ""),
            user_message="Transaction failed: the contract rejected the transaction.",
            context=ErrorContext(category=self.category, chain_id=chain_id, tx_hash=tx_hash,
                                 details={"revert_reason": reason} if reason else {}),
        )
        self.tx_hash = tx_hash


class ConfirmationTimeoutError(AltverseError):
    """No receipt within the wait window. The transaction may still land."""

    category = ErrorCategory.TIMEOUT

    def __init__(self, tx_hash: str, chain_id: Optional[int] = None, timeout_seconds: Optional[float] = None):
        super().__init__(
            f"No receipt for {tx_hash} after {timeout_seconds}s",
            user_message="Transaction is still pending, check the block explorer for its status.",
            context=ErrorContext(category=self.category, chain_id=chain_id, tx_hash=tx_hash),
        )
        self.tx_hash = tx_hash
        self.chain_id = chain_id


class TransferInProgressError(AltverseError):
    def __init__(self, message: str = "A transfer is already executing"):
        super().__init__(message, user_message="A transfer is already in progress.")


class InvalidTransitionError(AltverseError):
    """Raised when the orchestrator is asked for a state change it does not allow."""

    def __init__(self, from_state: Any, to_state: Any):
        super().__init__(f"Invalid transition {from_state} -> {to_state}")
        self.from_state = from_state
        self.to_state = to_state


# Substring patterns checked in order; the first category that matches wins.
_PATTERNS = [
    (ErrorCategory.REJECTED, ["user rejected", "user denied", "rejected the request", "action_rejected", "4001"]),
    (ErrorCategory.BALANCE, ["insufficient funds", "insufficient balance", "exceeds balance",
                             "transfer amount exceeds", "not enough"]),
    (ErrorCategory.SLIPPAGE, ["slippage", "price movement", "price impact", "return amount", "too little received"]),
    (ErrorCategory.APPROVAL, ["allowance", "approve"]),
    (ErrorCategory.GAS, ["gas", "fee", "underpriced", "intrinsic"]),
    (ErrorCategory.TIMEOUT, ["timeout", "timed out", "deadline"]),
    (ErrorCategory.NETWORK, ["network", "connection", "fetch", "unreachable", "chain"]),
]


def _match_category(message: str) -> ErrorCategory:
    message = message.lower()
    for category, patterns in _PATTERNS:
        if any(p in message for p in patterns):
            return category
    return ErrorCategory.UNKNOWN


def classify_error(error: BaseException) -> ErrorCategory:
    """
    Reduce an arbitrary exception to a friendly category.

    Taxonomy errors carry their own category; anything else is pattern
    matched on its message.
    """
    if isinstance(error, AltverseError) and error.category is not ErrorCategory.UNKNOWN:
        return error.category

    if getattr(error, "code", None) == USER_REJECTED_CODE:
        return ErrorCategory.REJECTED
    return _match_category(str(error))


def friendly_message(error: BaseException) -> str:
    """Single-sentence message for display. Raw payloads never leak through."""
    if isinstance(error, AltverseError):
        return error.user_message
    return FRIENDLY_MESSAGES[classify_error(error)]
