"""
Approval + Deposit/Swap Orchestrator

Drives one user-initiated transfer through its on-chain steps:

    Idle -> ChainVerified -> [QuoteAccepted -> Swapped] -> BalanceChecked
         -> AllowanceChecked -> [AllowanceReset] -> Approved -> Deposited -> Done

with Failed reachable from every non-terminal state and Pending used when a
broadcast transaction has not confirmed in time. Each write waits for one
confirmation before the next is submitted. Nothing is retried: resubmitting
a signed transaction needs the user's consent.
"""

from __future__ import annotations

import asyncio
import secrets
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass, field
from decimal import Decimal
from typing import AsyncIterator, List, Optional, Tuple, Union

from ...config import settings
from ...logging_config import get_logger
from ..catalog.chains import ChainInfo, get_chain_by_id
from ..catalog.tokens import Token
from ..catalog.vaults import Vault
from ..gas.strategy import GasStrategy, Urgency
from ..quotes.engine import QuoteEngine
from ..quotes.models import Quote, TransferRequest, parse_amount
from ..recovery.errors import (
    AltverseError,
    ChainMismatchError,
    ConfirmationTimeoutError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidTransitionError,
    QuoteProviderError,
    TransactionRevertedError,
    TransferInProgressError,
    classify_error,
    friendly_message,
)
from ..wallet.chain_switch import ChainSwitchCoordinator
from ..wallet.context import WalletContext
from .chain_rpc import ChainRpc
from .models import (
    TRANSITIONS,
    ApprovalState,
    FailureStep,
    OrchestratorState,
    PreparedTransaction,
    StateTransition,
    StepRecord,
    TransactionStatus,
    TransactionType,
    TransferOutcome,
    TransferStatus,
    derive_approval_state,
)
from .swap_executor import SwapExecutor
from .tx_builder import TransactionBuilder, from_base_units, to_base_units

logger = get_logger(__name__)


@dataclass
class TransferRun:
    """Step pointer and write log of one transfer. Lives only for that call."""

    transfer_id: str = field(default_factory=lambda: f"xfer_{secrets.token_hex(8)}")
    state: OrchestratorState = OrchestratorState.IDLE
    step: FailureStep = FailureStep.CHAIN_SWITCH
    history: List[StateTransition] = field(default_factory=list)
    writes: List[StepRecord] = field(default_factory=list)
    swapped_into: Optional[Token] = None
    swapped_chain: Optional[ChainInfo] = None
    deposit_amount: Optional[Decimal] = None

    def transition_to(self, to_state: OrchestratorState, reason: Optional[str] = None) -> None:
        if to_state not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, to_state)
        self.history.append(StateTransition(from_state=self.state, to_state=to_state, reason=reason))
        self.state = to_state


class TransferOrchestrator:
    """
    Executes approvals, swaps and vault deposits for a connected wallet.

    Wallets are passed per call. One transfer runs at a time per
    orchestrator; a second concurrent call raises ``TransferInProgressError``.
    """

    def __init__(
        self,
        rpc: ChainRpc,
        *,
        chain_switch: Optional[ChainSwitchCoordinator] = None,
        gas_strategy: Optional[GasStrategy] = None,
        quote_engine: Optional[QuoteEngine] = None,
        swap_executor: Optional[SwapExecutor] = None,
        confirmation_timeout: Optional[float] = None,
        arrival_timeout: Optional[float] = None,
        arrival_poll_interval: Optional[float] = None,
    ):
        self.rpc = rpc
        self.chain_switch = chain_switch or ChainSwitchCoordinator()
        self.gas_strategy = gas_strategy or GasStrategy(oracle=rpc)
        self.quote_engine = quote_engine
        self.swap_executor = swap_executor
        self.confirmation_timeout = (
            settings.confirmation_timeout_seconds if confirmation_timeout is None else confirmation_timeout
        )
        self.arrival_timeout = self.confirmation_timeout if arrival_timeout is None else arrival_timeout
        self.arrival_poll_interval = (
            settings.confirmation_poll_interval_seconds if arrival_poll_interval is None else arrival_poll_interval
        )
        self._lock = asyncio.Lock()

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def _single_flight(self) -> AsyncIterator[None]:
        if self._lock.locked():
            raise TransferInProgressError()
        async with self._lock:
            guard = self.quote_engine.executing() if self.quote_engine is not None else nullcontext()
            async with guard:
                yield

    # ------------------------------------------------------------------
    # Public flows
    # ------------------------------------------------------------------

    async def deposit(
        self,
        wallet: WalletContext,
        vault: Vault,
        token: Token,
        amount: Union[str, Decimal],
        *,
        swap_request: Optional[TransferRequest] = None,
        swap_wallet: Optional[WalletContext] = None,
    ) -> TransferOutcome:
        """
        Deposit ``amount`` of ``token`` into ``vault``.

        With ``swap_request`` the funds are first swapped/bridged (from
        ``swap_wallet``, default ``wallet``) and the received amount of the
        request's target token is deposited instead. The two phases are not
        atomic: a deposit failure after a completed swap is reported as a
        partial failure.
        """
        deposit_chain = self._chain(vault.chain_id)
        teller = vault.resolved_teller_address
        if swap_request is not None and self.swap_executor is None:
            raise ValueError("A swap executor is required for deposits that start with a swap")
        if swap_request is None:
            self._validate_amount(amount)

        async with self._single_flight():
            run = TransferRun()
            log = logger.bind(transfer_id=run.transfer_id, vault=vault.name)
            log.info("deposit_started", amount=str(amount), token=token.symbol, swap=swap_request is not None)
            try:
                if teller is None:
                    run.step = FailureStep.DEPOSIT
                    raise AltverseError(
                        f"No teller configured for vault {vault.id}",
                        user_message="Deposits are not available for this vault right now.",
                    )

                if swap_request is not None:
                    token, amount = await self._swap_phase(
                        run, swap_wallet or wallet, swap_request, deposit_owner=wallet.address,
                    )
                    run.step = FailureStep.CHAIN_SWITCH
                    await self._ensure_chain(wallet, deposit_chain)
                else:
                    await self._ensure_chain(wallet, deposit_chain)
                    run.transition_to(OrchestratorState.CHAIN_VERIFIED)

                base_amount = to_base_units(amount, token.decimals)
                run.deposit_amount = Decimal(str(amount))

                balance = await self._check_balance(run, wallet, deposit_chain, token, base_amount)
                sufficient = await self._ensure_allowance(
                    run, wallet, deposit_chain, token, vault.address, base_amount, balance,
                )

                run.step = FailureStep.DEPOSIT
                # Balance and allowance can change between steps; check again before the deposit.
                await self._verify_before_deposit(wallet, deposit_chain, token, vault.address, base_amount)
                tx = TransactionBuilder.build_teller_deposit(
                    chain_id=deposit_chain.chain_id,
                    owner_address=wallet.address,
                    teller_address=teller,
                    token_address=token.address,
                    amount=base_amount,
                    description=f"Deposit {amount} {token.symbol} into {vault.name}",
                )
                await self._submit(run, wallet, tx, Urgency.HIGH)
                run.transition_to(
                    OrchestratorState.DEPOSITED,
                    reason="allowance already sufficient" if sufficient else None,
                )
                run.transition_to(OrchestratorState.DONE)
            except Exception as e:
                return self._finish(run, e, log)
            return self._finish(run, None, log, message=f"Deposited {amount} {token.symbol} into {vault.name}.")

    async def approve(
        self,
        wallet: WalletContext,
        chain: ChainInfo,
        token: Token,
        spender: str,
        amount: Union[str, Decimal],
    ) -> TransferOutcome:
        """Approval-only flow: reset if needed, then approve exactly ``amount``."""
        self._validate_amount(amount)
        async with self._single_flight():
            run = TransferRun()
            log = logger.bind(transfer_id=run.transfer_id, spender=spender)
            try:
                await self._ensure_chain(wallet, chain)
                run.transition_to(OrchestratorState.CHAIN_VERIFIED)
                base_amount = to_base_units(amount, token.decimals)
                balance = await self._check_balance(run, wallet, chain, token, base_amount)
                await self._ensure_allowance(run, wallet, chain, token, spender, base_amount, balance)
                run.transition_to(OrchestratorState.DONE)
            except Exception as e:
                return self._finish(run, e, log)
            return self._finish(run, None, log, message=f"{token.symbol} approved.")

    async def swap(self, wallet: WalletContext, request: TransferRequest) -> TransferOutcome:
        """Swap or bridge using the quote engine's accepted quote."""
        if self.swap_executor is None:
            raise ValueError("A swap executor is required for swaps")
        async with self._single_flight():
            run = TransferRun()
            log = logger.bind(transfer_id=run.transfer_id, kind=request.kind.value)
            try:
                await self._swap_phase(run, wallet, request, deposit_owner=None)
                run.transition_to(OrchestratorState.DONE)
            except Exception as e:
                return self._finish(run, e, log)
            target = request.target_token
            return self._finish(
                run, None, log,
                message=f"Swap submitted, receiving about {run.deposit_amount} {target.symbol if target else ''}".strip() + ".",
            )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _ensure_chain(self, wallet: WalletContext, chain: ChainInfo) -> None:
        if not await self.chain_switch.ensure(wallet, chain):
            raise ChainMismatchError(chain.chain_id, reason=self.chain_switch.last_error)

    async def _swap_phase(
        self,
        run: TransferRun,
        wallet: WalletContext,
        request: TransferRequest,
        deposit_owner: Optional[str],
    ) -> Tuple[Optional[Token], Decimal]:
        run.step = FailureStep.CHAIN_SWITCH
        await self._ensure_chain(wallet, request.source_chain)
        run.transition_to(OrchestratorState.CHAIN_VERIFIED)

        run.step = FailureStep.QUOTE
        quote = await self._accepted_quote(request)
        run.transition_to(OrchestratorState.QUOTE_ACCEPTED, reason=quote.route_id)

        target = request.target_token
        destination = request.destination_chain
        balance_before = None
        if deposit_owner is not None and target is not None:
            balance_before = await self.rpc.get_balance(destination.chain_id, target.address, deposit_owner)

        run.step = FailureStep.SWAP
        gas_plan = None
        if request.source_chain.is_evm:
            gas_plan = await self.gas_strategy.plan(
                TransactionType.SWAP.gas_type, Urgency.MEDIUM, chain_id=request.source_chain.chain_id,
            )
        tx_hash = await self.swap_executor.submit_swap(quote, request, wallet, gas_plan)
        record = self._record(run, TransactionType.SWAP, request.source_chain, tx_hash)
        await self._confirm(record, request.source_chain)
        run.transition_to(OrchestratorState.SWAPPED)
        run.swapped_into = target
        run.swapped_chain = destination

        received = quote.expected_output_amount
        if balance_before is not None and target is not None:
            expected_base = to_base_units(received, target.decimals)
            arrived = await self._await_arrival(destination, target, deposit_owner, balance_before, expected_base)
            if arrived is None:
                # The source leg confirmed but nothing reached the deposit wallet.
                logger.warning(
                    "swap_output_not_arrived", chain=destination.name, token=target.symbol, tx_hash=tx_hash,
                )
                raise ConfirmationTimeoutError(
                    tx_hash, chain_id=destination.chain_id, timeout_seconds=self.arrival_timeout,
                )
            received = from_base_units(arrived, target.decimals)
        run.deposit_amount = received
        return target, received

    async def _accepted_quote(self, request: TransferRequest) -> Quote:
        engine = self.quote_engine
        quote: Optional[Quote] = None
        if engine is not None:
            quote = engine.quote_for(request)
            if quote is None:
                quote = await engine.fetch_now(request)
        if quote is None:
            raise QuoteProviderError("No route available for this transfer")
        return quote

    async def _await_arrival(
        self,
        chain: ChainInfo,
        token: Token,
        owner: str,
        balance_before: int,
        expected: int,
    ) -> Optional[int]:
        """
        Poll the destination balance until the swap output shows up.

        Returns the observed increase capped at ``expected``, or None if
        nothing arrived before the timeout.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.arrival_timeout
        while True:
            try:
                balance = await self.rpc.get_balance(chain.chain_id, token.address, owner)
            except Exception as e:
                logger.warning("arrival_poll_failed", chain=chain.name, error=str(e))
                balance = balance_before
            increase = balance - balance_before
            if increase >= expected or (increase > 0 and loop.time() >= deadline):
                return min(increase, expected)
            if loop.time() >= deadline:
                return None
            await asyncio.sleep(self.arrival_poll_interval)

    async def _check_balance(
        self,
        run: TransferRun,
        wallet: WalletContext,
        chain: ChainInfo,
        token: Token,
        amount: int,
    ) -> int:
        run.step = FailureStep.BALANCE_CHECK
        balance = await self.rpc.get_balance(chain.chain_id, token.address, wallet.address)
        if balance < amount:
            raise InsufficientBalanceError(
                token.symbol,
                required=str(from_base_units(amount, token.decimals)),
                available=str(from_base_units(balance, token.decimals)),
            )
        run.transition_to(OrchestratorState.BALANCE_CHECKED)
        return balance

    async def _ensure_allowance(
        self,
        run: TransferRun,
        wallet: WalletContext,
        chain: ChainInfo,
        token: Token,
        spender: str,
        amount: int,
        balance: int,
    ) -> bool:
        """Returns True when the existing allowance already covered ``amount``."""
        run.step = FailureStep.ALLOWANCE_CHECK
        allowance = await self.rpc.get_allowance(chain.chain_id, token.address, wallet.address, spender)
        approval = derive_approval_state(balance, allowance, amount)
        if approval == ApprovalState.INSUFFICIENT_BALANCE:
            raise InsufficientBalanceError(
                token.symbol,
                required=str(from_base_units(amount, token.decimals)),
                available=str(from_base_units(balance, token.decimals)),
            )
        run.transition_to(OrchestratorState.ALLOWANCE_CHECKED, reason=approval.value)
        if approval == ApprovalState.APPROVED:
            return True

        if approval == ApprovalState.NEEDS_RESET:
            # Some tokens (USDT) reject changing a non-zero allowance.
            run.step = FailureStep.ALLOWANCE_RESET
            reset = TransactionBuilder.build_erc20_approve(
                chain_id=chain.chain_id,
                owner_address=wallet.address,
                token_address=token.address,
                spender_address=spender,
                amount=0,
                description=f"Reset {token.symbol} allowance",
            )
            await self._submit(run, wallet, reset, Urgency.MEDIUM)
            run.transition_to(OrchestratorState.ALLOWANCE_RESET)

        run.step = FailureStep.APPROVE
        approve = TransactionBuilder.build_erc20_approve(
            chain_id=chain.chain_id,
            owner_address=wallet.address,
            token_address=token.address,
            spender_address=spender,
            amount=amount,
            description=f"Approve {from_base_units(amount, token.decimals)} {token.symbol}",
        )
        await self._submit(run, wallet, approve, Urgency.MEDIUM)
        run.transition_to(OrchestratorState.APPROVED)
        return False

    async def _verify_before_deposit(
        self,
        wallet: WalletContext,
        chain: ChainInfo,
        token: Token,
        spender: str,
        amount: int,
    ) -> None:
        balance = await self.rpc.get_balance(chain.chain_id, token.address, wallet.address)
        if balance < amount:
            raise InsufficientBalanceError(
                token.symbol,
                required=str(from_base_units(amount, token.decimals)),
                available=str(from_base_units(balance, token.decimals)),
            )
        allowance = await self.rpc.get_allowance(chain.chain_id, token.address, wallet.address, spender)
        if allowance < amount:
            raise InsufficientAllowanceError(
                token.symbol,
                required=str(from_base_units(amount, token.decimals)),
                allowance=str(from_base_units(allowance, token.decimals)),
            )

    async def _submit(
        self,
        run: TransferRun,
        wallet: WalletContext,
        tx: PreparedTransaction,
        urgency: Urgency,
    ) -> StepRecord:
        """Plan gas, broadcast through the wallet and wait for one confirmation."""
        chain = self._chain(tx.chain_id)
        tx.gas_plan = await self.gas_strategy.plan(tx.tx_type.gas_type, urgency, chain_id=tx.chain_id)
        tx_hash = await wallet.send_transaction(tx)
        record = self._record(run, tx.tx_type, chain, tx_hash)
        await self._confirm(record, chain)
        return record

    def _record(self, run: TransferRun, tx_type: TransactionType, chain: ChainInfo, tx_hash: str) -> StepRecord:
        record = StepRecord(
            tx_type=tx_type,
            chain_id=chain.chain_id,
            tx_hash=tx_hash,
            explorer_url=chain.explorer_tx_url(tx_hash),
        )
        run.writes.append(record)
        logger.info("transaction_submitted", tx_type=tx_type.value, chain=chain.name, tx_hash=tx_hash)
        return record

    async def _confirm(self, record: StepRecord, chain: ChainInfo) -> None:
        try:
            receipt = await self.rpc.wait_for_receipt(
                chain.chain_id, record.tx_hash, confirmations=1, timeout=self.confirmation_timeout,
            )
        except ConfirmationTimeoutError:
            record.status = TransactionStatus.TIMEOUT
            raise
        if not receipt.succeeded:
            record.status = TransactionStatus.REVERTED
            raise TransactionRevertedError(tx_hash=record.tx_hash, chain_id=chain.chain_id)
        record.status = TransactionStatus.CONFIRMED

    # ------------------------------------------------------------------
    # Outcome
    # ------------------------------------------------------------------

    def _finish(self, run: TransferRun, error: Optional[BaseException], log, message: str = "") -> TransferOutcome:
        last_write = run.writes[-1] if run.writes else None
        explorer_url = last_write.explorer_url if last_write else None

        if error is None:
            log.info("transfer_completed", writes=len(run.writes))
            return TransferOutcome(
                status=TransferStatus.DONE,
                state=run.state,
                message=message,
                writes=run.writes,
                history=run.history,
                deposit_amount=run.deposit_amount,
                explorer_url=explorer_url,
            )

        if isinstance(error, ConfirmationTimeoutError):
            run.transition_to(OrchestratorState.PENDING, reason=error.message)
            log.warning("transfer_pending", tx_hash=error.tx_hash, step=run.step.value)
            return TransferOutcome(
                status=TransferStatus.PENDING,
                state=run.state,
                message=error.user_message,
                failed_step=run.step,
                error_category=classify_error(error),
                writes=run.writes,
                history=run.history,
                partial_failure=run.swapped_into is not None,
                deposit_amount=run.deposit_amount,
                explorer_url=explorer_url,
            )

        if isinstance(error, InvalidTransitionError):
            # A bug in the step sequence, not a user-facing condition.
            raise error

        log.warning(
            "transfer_failed",
            step=run.step.value,
            state=run.state.value,
            error=str(error),
            exc_info=not isinstance(error, AltverseError),
        )
        run.transition_to(OrchestratorState.FAILED, reason=str(error))
        user_message = friendly_message(error)
        partial = run.swapped_into is not None
        if partial:
            chain_name = run.swapped_chain.name.title() if run.swapped_chain else "the destination chain"
            user_message = (
                f"{user_message} Your swap completed, the {run.swapped_into.symbol} "
                f"is in your wallet on {chain_name}."
            )
        return TransferOutcome(
            status=TransferStatus.FAILED,
            state=run.state,
            message=user_message,
            failed_step=run.step,
            error_category=classify_error(error),
            writes=run.writes,
            history=run.history,
            partial_failure=partial,
            deposit_amount=run.deposit_amount,
            explorer_url=explorer_url,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _chain(chain_id: int) -> ChainInfo:
        chain = get_chain_by_id(chain_id)
        if chain is None:
            raise ValueError(f"Unsupported chain id: {chain_id}")
        return chain

    @staticmethod
    def _validate_amount(amount: Union[str, Decimal]) -> None:
        value = amount if isinstance(amount, Decimal) else parse_amount(amount)
        if value is None or value <= 0:
            raise ValueError(f"Invalid amount: {amount!r}")
