"""
Tests for the error taxonomy

Covers categories carried by each error type, pattern classification of
raw provider/wallet errors, and the friendly messages shown to users.
"""

import pytest

from altverse.core.recovery import (
    ChainMismatchError,
    ConfirmationTimeoutError,
    ErrorCategory,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    QuoteProviderError,
    RpcError,
    StaleResponse,
    TransactionRevertedError,
    UnknownChainError,
    WalletRequestError,
    classify_error,
    friendly_message,
)
from altverse.core.recovery.errors import FRIENDLY_MESSAGES, UNRECOGNIZED_CHAIN_CODE


# =============================================================================
# Error Types
# =============================================================================

class TestErrorTypes:
    """Category and recoverability of each error type."""

    def test_quote_provider_error(self):
        error = QuoteProviderError("HTTP 503", provider="mayan")

        assert error.category == ErrorCategory.NETWORK
        assert error.context.recoverable is True
        assert error.context.details["provider"] == "mayan"
        assert "HTTP 503" not in error.user_message

    def test_insufficient_balance_error(self):
        error = InsufficientBalanceError("USDC", required="100", available="10")

        assert error.category == ErrorCategory.BALANCE
        assert error.context.details["required"] == "100"
        assert error.user_message == "Insufficient USDC balance."

    def test_insufficient_allowance_error(self):
        error = InsufficientAllowanceError("USDC", required="100", allowance="50")

        assert error.category == ErrorCategory.APPROVAL
        assert error.user_message == "Insufficient allowance. Please approve 100 USDC first."

    def test_chain_mismatch_uses_reason(self):
        error = ChainMismatchError(1, 42161, reason="Please switch to Ethereum.")

        assert error.recoverable is True
        assert error.user_message == "Please switch to Ethereum."

    def test_unknown_chain_error_code(self):
        error = UnknownChainError(130)

        assert error.code == UNRECOGNIZED_CHAIN_CODE
        assert error.category == ErrorCategory.NETWORK
        assert isinstance(error, WalletRequestError)

    def test_wallet_rejection(self):
        error = WalletRequestError("MetaMask Tx Signature: User denied transaction signature.", code=4001)

        assert error.category == ErrorCategory.REJECTED

    def test_reverted_with_slippage_reason(self):
        error = TransactionRevertedError(tx_hash="0x123", chain_id=1, reason="Too little received")

        assert error.category == ErrorCategory.SLIPPAGE
        assert error.context.tx_hash == "0x123"

    def test_confirmation_timeout(self):
        error = ConfirmationTimeoutError("0xabc", chain_id=1, timeout_seconds=300)

        assert error.category == ErrorCategory.TIMEOUT
        assert "pending" in error.user_message

    def test_stale_response_carries_generations(self):
        error = StaleResponse(3, 5)

        assert (error.generation, error.current) == (3, 5)


# =============================================================================
# Classification
# =============================================================================

class TestClassification:
    @pytest.mark.parametrize(
        "message,category",
        [
            ("insufficient funds for gas * price + value", ErrorCategory.BALANCE),
            ("ERC20: transfer amount exceeds balance", ErrorCategory.BALANCE),
            ("execution reverted: slippage exceeded", ErrorCategory.SLIPPAGE),
            ("ERC20: insufficient allowance", ErrorCategory.APPROVAL),
            ("replacement transaction underpriced", ErrorCategory.GAS),
            ("max fee per gas less than block base fee", ErrorCategory.GAS),
            ("Request timed out", ErrorCategory.TIMEOUT),
            ("Failed to fetch", ErrorCategory.NETWORK),
            ("User rejected the request.", ErrorCategory.REJECTED),
            ("something odd", ErrorCategory.UNKNOWN),
        ],
    )
    def test_pattern_matching(self, message, category):
        assert classify_error(Exception(message)) == category

    def test_taxonomy_category_wins(self):
        assert classify_error(RpcError("insufficient funds")) == ErrorCategory.NETWORK

    def test_code_4001_on_foreign_error(self):
        error = Exception("declined")
        error.code = 4001

        assert classify_error(error) == ErrorCategory.REJECTED


# =============================================================================
# Friendly messages
# =============================================================================

class TestFriendlyMessages:
    def test_raw_error_is_reduced(self):
        raw = Exception('{"code":-32000,"message":"insufficient funds for transfer"}')

        assert friendly_message(raw) == FRIENDLY_MESSAGES[ErrorCategory.BALANCE]

    def test_taxonomy_error_uses_user_message(self):
        assert friendly_message(InsufficientBalanceError("ETH")) == "Insufficient ETH balance."

    def test_messages_are_single_sentences(self):
        for message in FRIENDLY_MESSAGES.values():
            assert message.count(".") == 1
            assert message.endswith(".")
