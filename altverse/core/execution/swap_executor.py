"""Routing-service transaction submission."""

from abc import ABC, abstractmethod
from typing import Optional

from ..gas.strategy import GasPlan
from ..quotes.models import Quote, TransferRequest
from ..wallet.context import WalletContext


class SwapExecutor(ABC):
    """
    Turns an accepted quote into a broadcast source-chain transaction.

    Route transaction construction belongs to the routing service's SDK;
    the orchestrator only needs the resulting transaction hash.
    """

    @abstractmethod
    async def submit_swap(
        self,
        quote: Quote,
        request: TransferRequest,
        wallet: WalletContext,
        gas_plan: Optional[GasPlan] = None,
    ) -> str:
        """Sign and broadcast the swap; ``gas_plan`` is set for EVM source chains."""
