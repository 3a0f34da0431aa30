"""
Transaction execution models and types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from ..gas.strategy import GasPlan, GasTxType
from ..recovery.errors import ErrorCategory


class TransactionType(str, Enum):
    """On-chain writes the orchestrator submits."""
    ALLOWANCE_RESET = "allowance_reset"
    APPROVE = "approve"
    SWAP = "swap"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"

    @property
    def gas_type(self) -> GasTxType:
        return _GAS_TYPES[self]


_GAS_TYPES: Dict[TransactionType, GasTxType] = {
    TransactionType.ALLOWANCE_RESET: GasTxType.ALLOWANCE_RESET,
    TransactionType.APPROVE: GasTxType.APPROVAL,
    TransactionType.SWAP: GasTxType.SWAP,
    TransactionType.DEPOSIT: GasTxType.DEPOSIT,
    TransactionType.WITHDRAWAL: GasTxType.WITHDRAWAL,
}


class TransactionStatus(str, Enum):
    """Transaction lifecycle status."""
    SUBMITTED = "submitted"      # Broadcast to network
    CONFIRMED = "confirmed"      # Receipt with status 1
    REVERTED = "reverted"        # Receipt with status 0
    TIMEOUT = "timeout"          # No receipt yet; may still land


class OrchestratorState(str, Enum):
    IDLE = "idle"
    CHAIN_VERIFIED = "chain_verified"
    QUOTE_ACCEPTED = "quote_accepted"
    SWAPPED = "swapped"
    BALANCE_CHECKED = "balance_checked"
    ALLOWANCE_CHECKED = "allowance_checked"
    ALLOWANCE_RESET = "allowance_reset"
    APPROVED = "approved"
    DEPOSITED = "deposited"
    DONE = "done"
    PENDING = "pending"
    FAILED = "failed"


TERMINAL_STATES: Set[OrchestratorState] = {
    OrchestratorState.DONE,
    OrchestratorState.PENDING,
    OrchestratorState.FAILED,
}

# FAILED is reachable from every non-terminal state and is added below.
TRANSITIONS: Dict[OrchestratorState, Set[OrchestratorState]] = {
    OrchestratorState.IDLE: {OrchestratorState.CHAIN_VERIFIED},
    OrchestratorState.CHAIN_VERIFIED: {
        OrchestratorState.QUOTE_ACCEPTED,
        OrchestratorState.BALANCE_CHECKED,
    },
    OrchestratorState.QUOTE_ACCEPTED: {
        OrchestratorState.SWAPPED,
        OrchestratorState.PENDING,
    },
    OrchestratorState.SWAPPED: {
        OrchestratorState.BALANCE_CHECKED,
        OrchestratorState.DONE,
        OrchestratorState.PENDING,
    },
    OrchestratorState.BALANCE_CHECKED: {OrchestratorState.ALLOWANCE_CHECKED},
    OrchestratorState.ALLOWANCE_CHECKED: {
        OrchestratorState.ALLOWANCE_RESET,
        OrchestratorState.APPROVED,
        OrchestratorState.DEPOSITED,
        OrchestratorState.DONE,
        OrchestratorState.PENDING,
    },
    OrchestratorState.ALLOWANCE_RESET: {
        OrchestratorState.APPROVED,
        OrchestratorState.PENDING,
    },
    OrchestratorState.APPROVED: {
        OrchestratorState.DEPOSITED,
        OrchestratorState.DONE,
        OrchestratorState.PENDING,
    },
    OrchestratorState.DEPOSITED: {OrchestratorState.DONE},
    OrchestratorState.DONE: set(),
    OrchestratorState.PENDING: set(),
    OrchestratorState.FAILED: set(),
}
for _state, _targets in TRANSITIONS.items():
    if _state not in TERMINAL_STATES:
        _targets.add(OrchestratorState.FAILED)


class ApprovalState(str, Enum):
    NOT_CHECKED = "not_checked"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NEEDS_RESET = "needs_reset"
    NEEDS_APPROVAL = "needs_approval"
    APPROVED = "approved"


def derive_approval_state(
    balance: Optional[int],
    allowance: Optional[int],
    amount: int,
) -> ApprovalState:
    """Read-driven approval state for ``amount`` base units."""
    if balance is None or allowance is None:
        return ApprovalState.NOT_CHECKED
    if balance < amount:
        return ApprovalState.INSUFFICIENT_BALANCE
    if allowance >= amount:
        return ApprovalState.APPROVED
    if allowance > 0:
        return ApprovalState.NEEDS_RESET
    return ApprovalState.NEEDS_APPROVAL


class FailureStep(str, Enum):
    """Where a transfer stopped."""
    CHAIN_SWITCH = "chain_switch"
    QUOTE = "quote"
    SWAP = "swap"
    BALANCE_CHECK = "balance_check"
    ALLOWANCE_CHECK = "allowance_check"
    ALLOWANCE_RESET = "allowance_reset"
    APPROVE = "approve"
    DEPOSIT = "deposit"


class TransferStatus(str, Enum):
    DONE = "done"
    FAILED = "failed"
    PENDING = "pending"


@dataclass
class PreparedTransaction:
    """A transaction ready to be signed and broadcast by the wallet."""
    tx_type: TransactionType
    chain_id: int
    from_address: str
    to_address: str
    data: str                                   # Encoded calldata (hex)
    value: int = 0                              # Wei to send
    gas_plan: Optional[GasPlan] = None
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to an ``eth_sendTransaction`` request object."""
        tx = {
            "from": self.from_address,
            "to": self.to_address,
            "data": self.data,
            "value": hex(self.value),
            "chainId": hex(self.chain_id),
        }
        if self.gas_plan:
            tx.update(self.gas_plan.to_tx_params())
        return tx


@dataclass(frozen=True)
class TransactionReceipt:
    tx_hash: str
    status: int                                 # 1 success, 0 reverted
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    confirmations: int = 1

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass
class StepRecord:
    """One on-chain write and how it ended."""
    tx_type: TransactionType
    chain_id: int
    tx_hash: Optional[str] = None
    status: TransactionStatus = TransactionStatus.SUBMITTED
    explorer_url: Optional[str] = None
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class StateTransition:
    from_state: OrchestratorState
    to_state: OrchestratorState
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class TransferOutcome:
    """Result of one user-initiated transfer."""
    status: TransferStatus
    state: OrchestratorState
    message: str = ""
    failed_step: Optional[FailureStep] = None
    error_category: Optional[ErrorCategory] = None
    writes: List[StepRecord] = field(default_factory=list)
    history: List[StateTransition] = field(default_factory=list)
    partial_failure: bool = False
    deposit_amount: Optional[Decimal] = None
    explorer_url: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == TransferStatus.DONE

    @property
    def write_count(self) -> int:
        return len(self.writes)

    def writes_of(self, tx_type: TransactionType) -> List[StepRecord]:
        return [w for w in self.writes if w.tx_type == tx_type]
