"""
Chain identification types and utilities.

Numeric chain ids are used for every chain, EVM or not: the routing
service and the wallet layer identify Solana as 101 and Sui as 999. The
chain *family* decides which wallet and RPC request shapes apply.
"""

from __future__ import annotations

from enum import Enum

ChainId = int

SOLANA_CHAIN_ID: ChainId = 101
SUI_CHAIN_ID: ChainId = 999

# Placeholder chain id some wallets report before a network is selected
UNSET_CHAIN_ID: ChainId = 0

DEFAULT_CHAIN_ID: ChainId = 1  # Ethereum mainnet


class ChainFamily(str, Enum):
    """Wallet/RPC families with distinct request shapes."""

    EVM = "evm"
    SOLANA = "solana"
    SUI = "sui"


def family_for_chain_id(chain_id: ChainId) -> ChainFamily:
    if chain_id == SOLANA_CHAIN_ID:
        return ChainFamily.SOLANA
    if chain_id == SUI_CHAIN_ID:
        return ChainFamily.SUI
    return ChainFamily.EVM


def is_evm_chain_id(chain_id: ChainId) -> bool:
    """Check if the chain ID represents an EVM-compatible chain."""
    return family_for_chain_id(chain_id) is ChainFamily.EVM and chain_id != UNSET_CHAIN_ID


def to_hex_chain_id(chain_id: ChainId) -> str:
    """Format a chain id the way EIP-3085/3326 wallet requests expect it."""
    return hex(int(chain_id))


def parse_chain_id(value: str | int | None) -> ChainId:
    """
    Normalize a wallet-reported chain id.

    Wallets report ``"0x1"``, ``"1"`` or ``1`` depending on the connector;
    ``None`` maps to :data:`UNSET_CHAIN_ID`.

    >>> parse_chain_id("0x89")
    137
    """
    if value is None:
        return UNSET_CHAIN_ID
    if isinstance(value, int):
        return value
    text = value.strip().lower()
    if text.startswith("0x"):
        return int(text, 16)
    if ":" in text:
        # CAIP-2 style "eip155:1"
        text = text.rsplit(":", 1)[1]
    return int(text)
