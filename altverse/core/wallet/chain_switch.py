"""
Chain-Switch Coordinator

Keeps the connected wallet on the chain a transfer needs. One switch
request, one add-then-switch fallback for chains the wallet does not know,
no automatic retries otherwise.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from ...config import settings
from ..catalog.chains import ChainInfo
from ..chain_types import ChainFamily, parse_chain_id
from ..recovery.errors import (
    UNRECOGNIZED_CHAIN_CODE,
    USER_REJECTED_CODE,
    UnknownChainError,
    classify_error,
    ErrorCategory,
)
from .context import WalletContext

logger = logging.getLogger(__name__)


class SwitchOutcome(str, Enum):
    ALREADY_CONNECTED = "already_connected"
    SWITCHED = "switched"
    ADDED_AND_SWITCHED = "added_and_switched"
    FAILED = "failed"


@dataclass(frozen=True)
class SwitchResult:
    outcome: SwitchOutcome
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not SwitchOutcome.FAILED


_WALLET_NAMES = {
    ChainFamily.EVM: "an EVM",
    ChainFamily.SOLANA: "a Solana",
    ChainFamily.SUI: "a Sui",
}


def _is_unknown_chain(error: Exception) -> bool:
    return isinstance(error, UnknownChainError) or getattr(error, "code", None) == UNRECOGNIZED_CHAIN_CODE


def _is_user_rejection(error: Exception) -> bool:
    if getattr(error, "code", None) == USER_REJECTED_CODE:
        return True
    return classify_error(error) is ErrorCategory.REJECTED


class ChainSwitchCoordinator:
    """
    Ensures the wallet is connected to a required chain.

    ``ensure`` returns a bool; the reason for the last failure is kept in
    :attr:`last_error` as a single sentence suitable for display.
    """

    def __init__(
        self,
        settle_seconds: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable[object]]] = None,
    ):
        self.settle_seconds = settings.chain_switch_settle_seconds if settle_seconds is None else settle_seconds
        self._sleep = sleep or asyncio.sleep
        self.last_error: Optional[str] = None
        self.last_result: Optional[SwitchResult] = None

    async def ensure(self, wallet: WalletContext, required_chain: ChainInfo) -> bool:
        result = await self.ensure_detailed(wallet, required_chain)
        return result.ok

    async def ensure_detailed(self, wallet: WalletContext, required_chain: ChainInfo) -> SwitchResult:
        result = await self._ensure(wallet, required_chain)
        self.last_result = result
        self.last_error = result.reason
        if not result.ok:
            logger.warning(f"Chain switch to {required_chain.name} failed: {result.reason}")
        elif result.outcome is not SwitchOutcome.ALREADY_CONNECTED:
            logger.info(f"Wallet switched to {required_chain.name} ({result.outcome.value})")
        return result

    async def _ensure(self, wallet: WalletContext, chain: ChainInfo) -> SwitchResult:
        if wallet.family is not chain.family:
            return SwitchResult(
                SwitchOutcome.FAILED,
                f"Connect {_WALLET_NAMES[chain.family]} wallet to use {chain.name.title()}.",
            )

        try:
            current = parse_chain_id(await wallet.get_chain_id())
        except Exception as e:
            logger.warning(f"Could not read wallet chain id: {e}", exc_info=True)
            return SwitchResult(SwitchOutcome.FAILED, "Could not read the network your wallet is connected to.")

        if current == chain.chain_id:
            return SwitchResult(SwitchOutcome.ALREADY_CONNECTED)

        # Sui wallets expose a single mainnet; there is nothing to switch.
        if chain.family is ChainFamily.SUI:
            return SwitchResult(SwitchOutcome.ALREADY_CONNECTED)

        outcome = SwitchOutcome.SWITCHED
        try:
            await wallet.switch_chain(chain)
        except Exception as e:
            if not _is_unknown_chain(e):
                return self._failure(chain, e)
            logger.info(f"Wallet does not know {chain.name}, requesting add-chain")
            try:
                await wallet.add_chain(chain)
                await wallet.switch_chain(chain)
            except Exception as retry_error:
                return self._failure(chain, retry_error)
            outcome = SwitchOutcome.ADDED_AND_SWITCHED

        if self.settle_seconds:
            await self._sleep(self.settle_seconds)

        try:
            current = parse_chain_id(await wallet.get_chain_id())
        except Exception as e:
            logger.warning(f"Could not re-read wallet chain id: {e}", exc_info=True)
            return SwitchResult(SwitchOutcome.FAILED, "Could not confirm the network switch.")
        if current != chain.chain_id:
            return SwitchResult(
                SwitchOutcome.FAILED,
                f"Wallet is still on another network. Please switch to {chain.name.title()} manually.",
            )
        return SwitchResult(outcome)

    @staticmethod
    def _failure(chain: ChainInfo, error: Exception) -> SwitchResult:
        logger.warning(f"Wallet rejected switch to {chain.name}: {error}", exc_info=True)
        if _is_user_rejection(error):
            return SwitchResult(SwitchOutcome.FAILED, "You declined the network switch in your wallet.")
        return SwitchResult(
            SwitchOutcome.FAILED,
            f"Failed to switch chains. Please switch to {chain.name.title()} in your wallet.",
        )
