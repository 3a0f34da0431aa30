"""
Gas Strategy

Turns the network's reported EIP-1559 fee data into a per-transaction
GasPlan. One oracle read, then arithmetic; a missing or failing oracle
falls back to fixed per-urgency fees instead of failing the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple, Union

from ..chain_types import ChainId

logger = logging.getLogger(__name__)

GWEI = 10**9
EIP1559_TX_TYPE = 2


class GasTxType(str, Enum):
    APPROVAL = "approval"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    SWAP = "swap"
    ALLOWANCE_RESET = "allowance_reset"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


DEFAULT_GAS_LIMITS: Dict[GasTxType, int] = {
    GasTxType.APPROVAL: 90_000,
    GasTxType.DEPOSIT: 180_000,
    GasTxType.WITHDRAWAL: 180_000,
    GasTxType.SWAP: 250_000,
    GasTxType.ALLOWANCE_RESET: 70_000,
}

# (max fee multiplier, priority fee multiplier)
FEE_MULTIPLIERS: Dict[Urgency, Tuple[Decimal, Decimal]] = {
    Urgency.LOW: (Decimal("1.01"), Decimal("1.05")),
    Urgency.MEDIUM: (Decimal("1.05"), Decimal("1.2")),
    Urgency.HIGH: (Decimal("1.1"), Decimal("1.5")),
    Urgency.VERY_HIGH: (Decimal("1.2"), Decimal("2.0")),
}

# (max fee, priority fee) in gwei, used when the oracle has nothing
FALLBACK_FEES_GWEI: Dict[Urgency, Tuple[Decimal, Decimal]] = {
    Urgency.LOW: (Decimal("8"), Decimal("0.5")),
    Urgency.MEDIUM: (Decimal("10"), Decimal("1")),
    Urgency.HIGH: (Decimal("15"), Decimal("1.5")),
    Urgency.VERY_HIGH: (Decimal("20"), Decimal("2")),
}


@dataclass(frozen=True)
class FeeData:
    """Network fee suggestion in wei; either field may be unknown."""

    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    base_fee_per_gas: Optional[int] = None


@dataclass(frozen=True)
class GasPlan:
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    urgency: Urgency = Urgency.MEDIUM
    tx_type: int = EIP1559_TX_TYPE
    used_fallback: bool = False

    @property
    def max_cost_wei(self) -> int:
        return self.gas_limit * self.max_fee_per_gas

    def to_tx_params(self) -> Dict[str, Any]:
        """Fields merged into an ``eth_sendTransaction`` request."""
        return {
            "type": hex(self.tx_type),
            "gas": hex(self.gas_limit),
            "maxFeePerGas": hex(self.max_fee_per_gas),
            "maxPriorityFeePerGas": hex(self.max_priority_fee_per_gas),
        }


class FeeOracle(Protocol):
    async def get_fee_data(self, chain_id: ChainId) -> Optional[FeeData]:
        ...


def _coerce_urgency(urgency: Union[Urgency, str, None]) -> Urgency:
    try:
        return Urgency(urgency) if urgency is not None else Urgency.MEDIUM
    except ValueError:
        logger.warning(f"Unknown urgency {urgency!r}, using medium")
        return Urgency.MEDIUM


def _coerce_tx_type(tx_type: Union[GasTxType, str]) -> Optional[GasTxType]:
    if isinstance(tx_type, GasTxType):
        return tx_type
    try:
        return GasTxType(tx_type.replace("-", "_"))
    except (AttributeError, ValueError):
        return None


def _scale(value: int, multiplier: Decimal) -> int:
    return int((Decimal(value) * multiplier).to_integral_value(rounding=ROUND_FLOOR))


def _gwei(value: Decimal) -> int:
    return int(value * GWEI)


def plan_from_fee_data(
    fee_data: Optional[FeeData],
    tx_type: Union[GasTxType, str],
    urgency: Union[Urgency, str, None] = Urgency.MEDIUM,
    gas_limit: Optional[int] = None,
) -> GasPlan:
    """Pure half of :meth:`GasStrategy.plan`."""
    tier = _coerce_urgency(urgency)
    kind = _coerce_tx_type(tx_type)

    if gas_limit is None:
        if kind is None:
            logger.warning(f"Unknown transaction type {tx_type!r}, using deposit gas limit")
        gas_limit = DEFAULT_GAS_LIMITS[kind or GasTxType.DEPOSIT]

    max_fee_mult, priority_mult = FEE_MULTIPLIERS[tier]
    fallback_max_fee, fallback_priority = FALLBACK_FEES_GWEI[tier]
    used_fallback = False

    if fee_data is not None and fee_data.max_fee_per_gas:
        max_fee = _scale(fee_data.max_fee_per_gas, max_fee_mult)
    else:
        max_fee = _gwei(fallback_max_fee)
        used_fallback = True

    if fee_data is not None and fee_data.max_priority_fee_per_gas:
        priority_fee = _scale(fee_data.max_priority_fee_per_gas, priority_mult)
    else:
        priority_fee = _gwei(fallback_priority)
        used_fallback = True

    # Nodes reject a tip above the fee cap
    max_fee = max(max_fee, priority_fee)

    return GasPlan(
        gas_limit=int(gas_limit),
        max_fee_per_gas=max_fee,
        max_priority_fee_per_gas=priority_fee,
        urgency=tier,
        used_fallback=used_fallback,
    )


class GasStrategy:
    """Builds a fresh GasPlan for every submitted transaction."""

    def __init__(self, oracle: Optional[FeeOracle] = None):
        self.oracle = oracle

    async def plan(
        self,
        tx_type: Union[GasTxType, str],
        urgency: Union[Urgency, str, None] = Urgency.MEDIUM,
        *,
        chain_id: ChainId = 1,
        gas_limit: Optional[int] = None,
    ) -> GasPlan:
        fee_data: Optional[FeeData] = None
        if self.oracle is not None:
            try:
                fee_data = await self.oracle.get_fee_data(chain_id)
            except Exception as e:
                logger.warning(f"Fee data unavailable on chain {chain_id}, using fallback fees: {e}")

        plan = plan_from_fee_data(fee_data, tx_type, urgency, gas_limit)
        logger.debug(
            f"Gas plan for {getattr(tx_type, 'value', tx_type)} ({plan.urgency.value}) on chain {chain_id}: "
            f"limit={plan.gas_limit} maxFee={plan.max_fee_per_gas} "
            f"priority={plan.max_priority_fee_per_gas} fallback={plan.used_fallback}"
        )
        return plan
