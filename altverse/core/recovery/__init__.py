"""
Error Recovery Module

Error taxonomy, friendly error classification and retry-with-backoff
for read-only calls.
"""

from .errors import (
    AltverseError,
    ErrorCategory,
    ErrorContext,
    QuoteProviderError,
    StaleResponse,
    InsufficientBalanceError,
    InsufficientAllowanceError,
    ChainMismatchError,
    UnknownChainError,
    WalletRequestError,
    RpcError,
    TransactionRevertedError,
    ConfirmationTimeoutError,
    TransferInProgressError,
    InvalidTransitionError,
    USER_REJECTED_CODE,
    UNRECOGNIZED_CHAIN_CODE,
    classify_error,
    friendly_message,
)
from .strategies import RetryConfig, ExponentialBackoffStrategy

__all__ = [
    # Errors
    "AltverseError",
    "ErrorCategory",
    "ErrorContext",
    "QuoteProviderError",
    "StaleResponse",
    "InsufficientBalanceError",
    "InsufficientAllowanceError",
    "ChainMismatchError",
    "UnknownChainError",
    "WalletRequestError",
    "RpcError",
    "TransactionRevertedError",
    "ConfirmationTimeoutError",
    "TransferInProgressError",
    "InvalidTransitionError",
    "USER_REJECTED_CODE",
    "UNRECOGNIZED_CHAIN_CODE",
    "classify_error",
    "friendly_message",
    # Strategies
    "RetryConfig",
    "ExponentialBackoffStrategy",
]
