"""
Wallet capability.

The transfer core never reaches into global wallet state; UI handlers
pass a :class:`WalletContext` for the connected wallet at call time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..catalog.chains import ChainInfo, WalletType
from ..chain_types import ChainFamily, ChainId

if TYPE_CHECKING:
    from ..execution.models import PreparedTransaction


_FAMILIES = {
    WalletType.EVM: ChainFamily.EVM,
    WalletType.SOLANA: ChainFamily.SOLANA,
    WalletType.SUI: ChainFamily.SUI,
}


class WalletContext(ABC):
    """A connected wallet able to switch networks and submit transactions."""

    address: str
    wallet_type: WalletType = WalletType.EVM

    @property
    def family(self) -> ChainFamily:
        return _FAMILIES[self.wallet_type]

    @abstractmethod
    async def get_chain_id(self) -> ChainId:
        """Chain the wallet is currently connected to."""

    @abstractmethod
    async def switch_chain(self, chain: ChainInfo) -> None:
        """
        Ask the wallet to switch networks.

        Raises:
            UnknownChainError: the wallet has no definition for ``chain``
            WalletRequestError: any other wallet failure (code 4001 on user rejection)
        """

    @abstractmethod
    async def add_chain(self, chain: ChainInfo) -> None:
        """Ask the wallet to add ``chain`` (``wallet_addEthereumChain``)."""

    @abstractmethod
    async def send_transaction(self, tx: "PreparedTransaction") -> str:
        """Sign and broadcast ``tx``; returns the transaction hash."""
