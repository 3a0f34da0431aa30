"""
Transaction Execution Layer

Provides the approve/deposit/swap orchestration for a connected wallet:
- TransferOrchestrator: runs the step sequence for one transfer
- TransactionBuilder: ERC-20 approvals and vault teller deposits
- ChainRpc: the read/confirm capability the orchestrator depends on

Usage:
    from altverse.core.execution import TransferOrchestrator

    orchestrator = TransferOrchestrator(rpc, quote_engine=engine)
    outcome = await orchestrator.deposit(wallet, get_vault(1), get_deposit_token("weth"), "1.5")
    if not outcome.is_success:
        show_error(outcome.message)
"""

from .chain_rpc import ChainRpc, ChainRpcRouter
from .models import (
    ApprovalState,
    FailureStep,
    OrchestratorState,
    PreparedTransaction,
    StepRecord,
    TransactionReceipt,
    TransactionStatus,
    TransactionType,
    TransferOutcome,
    TransferStatus,
    TRANSITIONS,
    derive_approval_state,
)
from .orchestrator import TransferOrchestrator, TransferRun
from .swap_executor import SwapExecutor
from .tx_builder import MAX_UINT256, TransactionBuilder, from_base_units, to_base_units

__all__ = [
    "ChainRpc",
    "ChainRpcRouter",
    "ApprovalState",
    "FailureStep",
    "OrchestratorState",
    "PreparedTransaction",
    "StepRecord",
    "TransactionReceipt",
    "TransactionStatus",
    "TransactionType",
    "TransferOutcome",
    "TransferStatus",
    "TRANSITIONS",
    "derive_approval_state",
    "TransferOrchestrator",
    "TransferRun",
    "SwapExecutor",
    "MAX_UINT256",
    "TransactionBuilder",
    "from_base_units",
    "to_base_units",
]
