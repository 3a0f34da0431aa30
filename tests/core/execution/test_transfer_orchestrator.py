"""
Tests for the approval + deposit/swap orchestrator.

Chain state lives in the FakeRpc from conftest; approvals sent through the
FakeWallet update its allowance table, so write counts reflect what a real
chain would need.
"""

import asyncio
from dataclasses import replace
from decimal import Decimal

import pytest

from altverse.core.catalog.chains import CHAINS
from altverse.core.catalog.tokens import get_deposit_token
from altverse.core.catalog.vaults import get_vault
from altverse.core.execution import (
    FailureStep,
    OrchestratorState,
    SwapExecutor,
    TransactionType,
    TransferOrchestrator,
    TransferStatus,
)
from altverse.core.gas import Urgency
from altverse.core.quotes import Quote, QuoteEngine, TransferRequest
from altverse.core.quotes.provider import QuoteProvider
from altverse.core.recovery.errors import (
    ErrorCategory,
    QuoteProviderError,
    TransferInProgressError,
    WalletRequestError,
)
from altverse.core.wallet import ChainSwitchCoordinator

USDC = get_deposit_token("usdc")
VAULT = get_vault(1)


def _usdc(amount):
    return int(Decimal(amount) * 10**6)


@pytest.fixture
def orchestrator(rpc):
    return TransferOrchestrator(
        rpc,
        chain_switch=ChainSwitchCoordinator(settle_seconds=0),
        confirmation_timeout=1,
        arrival_timeout=0,
        arrival_poll_interval=0,
    )


@pytest.fixture
def funded(rpc, wallet):
    rpc.set_balance(1, USDC.address, wallet.address, _usdc("200"))
    return rpc


# =============================================================================
# Approval sequence
# =============================================================================


class TestApprovalSequence:
    @pytest.mark.asyncio
    async def test_zero_allowance_two_writes(self, orchestrator, wallet, funded):
        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100")

        assert outcome.status == TransferStatus.DONE
        assert [w.tx_type for w in outcome.writes] == [TransactionType.APPROVE, TransactionType.DEPOSIT]
        assert outcome.write_count == 2

    @pytest.mark.asyncio
    async def test_partial_allowance_resets_first(self, orchestrator, wallet, funded):
        funded.set_allowance(1, USDC.address, wallet.address, VAULT.address, _usdc("50"))

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100")

        assert outcome.is_success
        assert [w.tx_type for w in outcome.writes] == [
            TransactionType.ALLOWANCE_RESET,
            TransactionType.APPROVE,
            TransactionType.DEPOSIT,
        ]
        assert [t.to_state for t in outcome.history] == [
            OrchestratorState.CHAIN_VERIFIED,
            OrchestratorState.BALANCE_CHECKED,
            OrchestratorState.ALLOWANCE_CHECKED,
            OrchestratorState.ALLOWANCE_RESET,
            OrchestratorState.APPROVED,
            OrchestratorState.DEPOSITED,
            OrchestratorState.DONE,
        ]
        assert outcome.history[2].reason == "needs_reset"

    @pytest.mark.asyncio
    async def test_approves_exact_amount_at_medium(self, orchestrator, wallet, funded):
        await orchestrator.deposit(wallet, VAULT, USDC, "100")

        approve, deposit = wallet.sent
        assert approve.data.endswith(format(_usdc("100"), "064x"))
        assert approve.data[10:74].endswith(VAULT.address.lower()[2:])
        assert approve.gas_plan.urgency == Urgency.MEDIUM
        assert approve.gas_plan.gas_limit == 90_000
        assert deposit.gas_plan.urgency == Urgency.HIGH
        assert deposit.gas_plan.gas_limit == 180_000
        assert deposit.to_address == VAULT.teller_address

    @pytest.mark.asyncio
    async def test_reset_uses_reset_gas_limit(self, orchestrator, wallet, funded):
        funded.set_allowance(1, USDC.address, wallet.address, VAULT.address, 1)

        await orchestrator.deposit(wallet, VAULT, USDC, "100")

        reset = wallet.sent[0]
        assert reset.data.endswith("0" * 64)
        assert reset.gas_plan.gas_limit == 70_000
        assert reset.gas_plan.urgency == Urgency.MEDIUM

    @pytest.mark.asyncio
    async def test_sufficient_allowance_skips_approval(self, orchestrator, wallet, funded):
        funded.set_allowance(1, USDC.address, wallet.address, VAULT.address, _usdc("100"))

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100")

        assert [w.tx_type for w in outcome.writes] == [TransactionType.DEPOSIT]

    @pytest.mark.asyncio
    async def test_second_approve_is_a_no_op(self, orchestrator, wallet, funded):
        first = await orchestrator.approve(wallet, CHAINS["ethereum"], USDC, VAULT.address, "100")
        second = await orchestrator.approve(wallet, CHAINS["ethereum"], USDC, VAULT.address, "100")

        assert first.write_count == 1
        assert second.write_count == 0
        assert second.status == TransferStatus.DONE

    @pytest.mark.asyncio
    async def test_every_write_waits_for_confirmation(self, orchestrator, wallet, funded):
        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100")

        assert funded.receipt_waits == [w.tx_hash for w in outcome.writes]
        assert outcome.explorer_url == f"https://etherscan.io/tx/{outcome.writes[-1].tx_hash}"


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    @pytest.mark.asyncio
    async def test_insufficient_balance(self, orchestrator, wallet, funded):
        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "500")

        assert outcome.status == TransferStatus.FAILED
        assert outcome.failed_step == FailureStep.BALANCE_CHECK
        assert outcome.error_category == ErrorCategory.BALANCE
        assert outcome.message == "Insufficient USDC balance."
        assert wallet.sent == []

    @pytest.mark.asyncio
    async def test_reverted_approval_stops_flow(self, orchestrator, wallet, funded):
        wallet.revert_next.add("approve")

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100")

        assert outcome.status == TransferStatus.FAILED
        assert outcome.failed_step == FailureStep.APPROVE
        assert outcome.state == OrchestratorState.FAILED
        assert [w.tx_type for w in outcome.writes] == [TransactionType.APPROVE]
        assert outcome.message.startswith("Transaction failed")

    @pytest.mark.asyncio
    async def test_rejected_deposit_is_not_retried(self, orchestrator, wallet, funded):
        wallet.fail_on["deposit"] = WalletRequestError("User rejected the request.", code=4001)

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100")

        assert outcome.failed_step == FailureStep.DEPOSIT
        assert outcome.error_category == ErrorCategory.REJECTED
        assert outcome.partial_failure is False
        assert [tx.tx_type for tx in wallet.sent] == [TransactionType.APPROVE]

    @pytest.mark.asyncio
    async def test_confirmation_timeout_is_pending(self, orchestrator, wallet, funded):
        wallet.timeout_next.add("deposit")

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100")

        assert outcome.status == TransferStatus.PENDING
        assert outcome.state == OrchestratorState.PENDING
        assert outcome.failed_step == FailureStep.DEPOSIT
        assert "pending" in outcome.message
        assert outcome.explorer_url.startswith("https://etherscan.io/tx/")

    @pytest.mark.asyncio
    async def test_declined_chain_switch(self, orchestrator, funded, fake_wallet_cls):
        wallet = fake_wallet_cls(
            funded, chain_id=42161, switch_error=WalletRequestError("User rejected the request.", code=4001),
        )

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100")

        assert outcome.failed_step == FailureStep.CHAIN_SWITCH
        assert outcome.message == "You declined the network switch in your wallet."
        assert outcome.writes == []

    @pytest.mark.asyncio
    async def test_switches_chain_before_deposit(self, orchestrator, funded, fake_wallet_cls):
        wallet = fake_wallet_cls(funded, chain_id=8453)

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100")

        assert outcome.is_success
        assert wallet.calls == [("switch", 1)]

    @pytest.mark.asyncio
    async def test_vault_without_teller(self, orchestrator, wallet, funded):
        outcome = await orchestrator.deposit(wallet, get_vault(2), USDC, "100")

        assert outcome.failed_step == FailureStep.DEPOSIT
        assert outcome.message == "Deposits are not available for this vault right now."
        assert wallet.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    async def test_invalid_amount_rejected(self, orchestrator, wallet, amount):
        with pytest.raises(ValueError):
            await orchestrator.deposit(wallet, VAULT, USDC, amount)

    @pytest.mark.asyncio
    async def test_concurrent_transfer_rejected(self, orchestrator, funded, fake_wallet_cls):
        release = asyncio.Event()

        class SlowWallet(fake_wallet_cls):
            async def get_chain_id(self):
                await release.wait()
                return hex(self.chain_id)

        wallet = SlowWallet(funded)
        first = asyncio.ensure_future(orchestrator.deposit(wallet, VAULT, USDC, "100"))
        await asyncio.sleep(0)
        assert orchestrator.is_busy

        with pytest.raises(TransferInProgressError):
            await orchestrator.deposit(wallet, VAULT, USDC, "100")

        release.set()
        assert (await first).is_success


# =============================================================================
# Swap then deposit
# =============================================================================


class CreditingSwapExecutor(SwapExecutor):
    """Pretends the route delivered ``delivered`` USDC to the owner on Ethereum."""

    def __init__(self, rpc, engine, delivered="99.5"):
        self.rpc = rpc
        self.engine = engine
        self.delivered = delivered
        self.calls = []

    async def submit_swap(self, quote, request, wallet, gas_plan=None):
        self.calls.append((quote, gas_plan, self.engine.is_executing))
        key = (1, USDC.address.lower(), wallet.address.lower())
        self.rpc.balances[key] = self.rpc.balances.get(key, 0) + _usdc(self.delivered)
        return "0x" + "ab" * 32


class AmountPricedProvider(QuoteProvider):
    """Quotes 0.5% under the input amount, one route per amount."""

    def __init__(self):
        self.requests = []

    async def get_quotes(self, request):
        self.requests.append(request)
        return [
            Quote(
                expected_output_amount=Decimal(request.amount) * Decimal("0.995"),
                route_id=f"route-{request.amount}",
            )
        ]


@pytest.fixture
def swap_request(arb_usdc):
    return TransferRequest(
        amount="100",
        source_token=arb_usdc,
        destination_token=USDC,
        source_chain=CHAINS["arbitrum"],
        destination_chain=CHAINS["ethereum"],
    )


@pytest.fixture
def swap_setup(rpc, quote_provider_cls):
    provider = quote_provider_cls([Quote(expected_output_amount=Decimal("99.5"), route_id="MCTP")])
    engine = QuoteEngine(provider, debounce_seconds=0)
    executor = CreditingSwapExecutor(rpc, engine)
    orchestrator = TransferOrchestrator(
        rpc,
        chain_switch=ChainSwitchCoordinator(settle_seconds=0),
        quote_engine=engine,
        swap_executor=executor,
        confirmation_timeout=1,
        arrival_timeout=0,
        arrival_poll_interval=0,
    )
    return orchestrator, engine, executor, provider


class TestSwapThenDeposit:
    @pytest.mark.asyncio
    async def test_deposits_swap_output(self, swap_setup, swap_request, rpc, fake_wallet_cls):
        orchestrator, engine, executor, _ = swap_setup
        wallet = fake_wallet_cls(rpc, chain_id=42161)

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100", swap_request=swap_request)

        assert outcome.status == TransferStatus.DONE
        assert [w.tx_type for w in outcome.writes] == [
            TransactionType.SWAP,
            TransactionType.APPROVE,
            TransactionType.DEPOSIT,
        ]
        assert outcome.deposit_amount == Decimal("99.5")
        assert wallet.sent[-1].data[74:138] == format(_usdc("99.5"), "064x")
        assert wallet.calls == [("switch", 1)]
        _, gas_plan, executing = executor.calls[0]
        assert executing is True
        assert gas_plan.gas_limit == 250_000
        assert engine.is_executing is False

    @pytest.mark.asyncio
    async def test_deposit_failure_after_swap_is_partial(self, swap_setup, swap_request, rpc, fake_wallet_cls):
        orchestrator, _, _, _ = swap_setup
        wallet = fake_wallet_cls(rpc, chain_id=42161)
        wallet.fail_on["deposit"] = WalletRequestError("User rejected the request.", code=4001)

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100", swap_request=swap_request)

        assert outcome.status == TransferStatus.FAILED
        assert outcome.partial_failure is True
        assert outcome.failed_step == FailureStep.DEPOSIT
        assert outcome.message.endswith("Your swap completed, the USDC is in your wallet on Ethereum.")

    @pytest.mark.asyncio
    async def test_uses_engine_quote_for_current_request(self, swap_setup, swap_request, rpc, fake_wallet_cls):
        orchestrator, engine, _, provider = swap_setup
        engine.submit(swap_request)
        await engine.wait_settled()

        outcome = await orchestrator.swap(fake_wallet_cls(rpc, chain_id=42161), swap_request)

        assert outcome.is_success
        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_quote_for_previous_input_never_executed(self, swap_request, rpc, fake_wallet_cls):
        provider = AmountPricedProvider()
        engine = QuoteEngine(provider, debounce_seconds=10)
        executor = CreditingSwapExecutor(rpc, engine)
        orchestrator = TransferOrchestrator(
            rpc,
            chain_switch=ChainSwitchCoordinator(settle_seconds=0),
            quote_engine=engine,
            swap_executor=executor,
            confirmation_timeout=1,
        )
        await engine.fetch_now(replace(swap_request, amount="1"))
        # The amount changes and the user executes inside the debounce window.
        engine.submit(swap_request)

        outcome = await orchestrator.swap(fake_wallet_cls(rpc, chain_id=42161), swap_request)

        assert outcome.is_success
        quote = executor.calls[0][0]
        assert quote.route_id == "route-100"
        assert quote.expected_output_amount == Decimal("99.5")
        await engine.stop()

    @pytest.mark.asyncio
    async def test_missing_swap_output_is_pending_not_deposited(self, swap_setup, swap_request, rpc, fake_wallet_cls):
        orchestrator, _, executor, _ = swap_setup
        executor.delivered = "0"
        wallet = fake_wallet_cls(rpc, chain_id=42161)

        outcome = await orchestrator.deposit(wallet, VAULT, USDC, "100", swap_request=swap_request)

        assert outcome.status == TransferStatus.PENDING
        assert outcome.state == OrchestratorState.PENDING
        assert outcome.failed_step == FailureStep.SWAP
        assert [w.tx_type for w in outcome.writes] == [TransactionType.SWAP]
        assert outcome.explorer_url == "https://arbiscan.io/tx/0x" + "ab" * 32
        assert "Your swap completed" not in outcome.message
        assert wallet.calls == []

    @pytest.mark.asyncio
    async def test_quote_failure_before_any_write(self, swap_request, rpc, fake_wallet_cls, quote_provider_cls):
        engine = QuoteEngine(quote_provider_cls(error=QuoteProviderError("no route")), debounce_seconds=0)
        orchestrator = TransferOrchestrator(
            rpc,
            chain_switch=ChainSwitchCoordinator(settle_seconds=0),
            quote_engine=engine,
            swap_executor=CreditingSwapExecutor(rpc, engine),
        )

        outcome = await orchestrator.swap(fake_wallet_cls(rpc, chain_id=42161), swap_request)

        assert outcome.failed_step == FailureStep.QUOTE
        assert outcome.writes == []

    @pytest.mark.asyncio
    async def test_swap_confirmation_timeout_is_pending(self, swap_setup, swap_request, rpc, fake_wallet_cls):
        orchestrator, _, _, _ = swap_setup
        rpc.timeouts.add("0x" + "ab" * 32)

        outcome = await orchestrator.swap(fake_wallet_cls(rpc, chain_id=42161), swap_request)

        assert outcome.status == TransferStatus.PENDING
        assert outcome.explorer_url == "https://arbiscan.io/tx/0x" + "ab" * 32
