"""
Wallet capability and chain switching.

Usage:
    from altverse.core.wallet import ChainSwitchCoordinator

    coordinator = ChainSwitchCoordinator()
    if not await coordinator.ensure(wallet, get_chain("base")):
        show_error(coordinator.last_error)
"""

from .chain_switch import ChainSwitchCoordinator, SwitchOutcome, SwitchResult
from .context import WalletContext

__all__ = [
    "ChainSwitchCoordinator",
    "SwitchOutcome",
    "SwitchResult",
    "WalletContext",
]
