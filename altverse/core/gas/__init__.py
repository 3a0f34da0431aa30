"""Urgency-tiered EIP-1559 gas planning."""

from .strategy import (
    DEFAULT_GAS_LIMITS,
    FALLBACK_FEES_GWEI,
    FEE_MULTIPLIERS,
    FeeData,
    FeeOracle,
    GasPlan,
    GasStrategy,
    GasTxType,
    Urgency,
    plan_from_fee_data,
)

__all__ = [
    "DEFAULT_GAS_LIMITS",
    "FALLBACK_FEES_GWEI",
    "FEE_MULTIPLIERS",
    "FeeData",
    "FeeOracle",
    "GasPlan",
    "GasStrategy",
    "GasTxType",
    "Urgency",
    "plan_from_fee_data",
]
