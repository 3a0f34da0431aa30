"""
Transfer session: the object a UI handler keeps per open transfer form.

Wires the quote engine, fee calculator and orchestrator together so the
handler only forwards input changes and button presses.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Optional, Set, Union

from ..core.catalog.tokens import Token
from ..core.catalog.vaults import Vault
from ..core.execution.models import TransferOutcome
from ..core.execution.orchestrator import TransferOrchestrator
from ..core.fees.calculator import FeeBreakdown, FeeCalculator
from ..core.quotes.engine import QuoteEngine
from ..core.quotes.models import QuoteState, TransferRequest
from ..core.wallet.context import WalletContext

logger = logging.getLogger(__name__)


class TransferSession:
    """
    One transfer form: live quote, fee breakdown and the execute buttons.

    ``fees`` is recomputed for every quote the engine accepts; a breakdown
    computed for a superseded generation is dropped.
    """

    def __init__(
        self,
        wallet: WalletContext,
        quote_engine: QuoteEngine,
        orchestrator: TransferOrchestrator,
        fee_calculator: Optional[FeeCalculator] = None,
        *,
        deposit_wallet: Optional[WalletContext] = None,
    ) -> None:
        self.wallet = wallet
        self.deposit_wallet = deposit_wallet or wallet
        self.quote_engine = quote_engine
        self.orchestrator = orchestrator
        self.fee_calculator = fee_calculator or FeeCalculator()
        self._fees = FeeBreakdown()
        self._fee_tasks: Set[asyncio.Task] = set()
        self._unsubscribe = quote_engine.subscribe(self._on_quote_state)

    @property
    def state(self) -> QuoteState:
        return self.quote_engine.state

    @property
    def fees(self) -> FeeBreakdown:
        return self._fees

    def update(self, request: Optional[TransferRequest]) -> None:
        self.quote_engine.submit(request)

    def _on_quote_state(self, state: QuoteState) -> None:
        if state.quote is None or state.request is None:
            self._fees = FeeBreakdown()
            return
        if state.loading:
            # A refresh keeps the fees of the quote still on display.
            return
        task = asyncio.get_running_loop().create_task(self._recompute_fees(state))
        self._fee_tasks.add(task)
        task.add_done_callback(self._fee_tasks.discard)

    async def _recompute_fees(self, state: QuoteState) -> None:
        try:
            fees = await self.fee_calculator.calculate(state.request, state.quote)
        except Exception:
            logger.exception("Fee calculation failed")
            fees = FeeBreakdown()
        if state.generation == self.quote_engine.generation:
            self._fees = fees

    async def settle(self) -> None:
        """Wait for pending quote requests and fee recomputation."""
        await self.quote_engine.wait_settled()
        if self._fee_tasks:
            await asyncio.gather(*list(self._fee_tasks), return_exceptions=True)

    async def execute_swap(self) -> TransferOutcome:
        request = self.quote_engine.request
        if request is None or not request.is_quotable:
            raise ValueError("Enter an amount and select tokens before swapping")
        return await self.orchestrator.swap(self.wallet, request)

    async def execute_deposit(
        self,
        vault: Vault,
        token: Optional[Token] = None,
        amount: Optional[Union[str, Decimal]] = None,
    ) -> TransferOutcome:
        """
        Deposit into ``vault``.

        With ``token`` and ``amount`` the deposit runs directly from the
        deposit wallet; otherwise the current form request is swapped first
        and its output is deposited.
        """
        if token is not None and amount is not None:
            return await self.orchestrator.deposit(self.deposit_wallet, vault, token, amount)

        request = self.quote_engine.request
        if request is None or not request.is_quotable or request.target_token is None:
            raise ValueError("Enter an amount and select tokens before depositing")
        return await self.orchestrator.deposit(
            self.deposit_wallet,
            vault,
            request.target_token,
            request.amount,
            swap_request=request,
            swap_wallet=self.wallet,
        )

    async def close(self) -> None:
        self._unsubscribe()
        await self.quote_engine.stop()
        for task in list(self._fee_tasks):
            task.cancel()
