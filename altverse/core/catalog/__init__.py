"""
Static catalogs

Chains, tokens and vaults, loaded once at import time.
"""

from .chains import (
    CHAINS,
    ChainInfo,
    DEFAULT_DESTINATION_CHAIN,
    DEFAULT_SOURCE_CHAIN,
    WalletType,
    get_chain,
    get_chain_by_id,
    list_chains,
)
from .tokens import (
    NATIVE_TOKEN_ADDRESS,
    VAULT_DEPOSIT_TOKENS,
    Token,
    TokenRegistry,
    default_registry,
    get_deposit_token,
    token_key,
)
from .vaults import VAULTS, Vault, get_vault, list_vaults

__all__ = [
    "CHAINS",
    "ChainInfo",
    "DEFAULT_DESTINATION_CHAIN",
    "DEFAULT_SOURCE_CHAIN",
    "WalletType",
    "get_chain",
    "get_chain_by_id",
    "list_chains",
    "NATIVE_TOKEN_ADDRESS",
    "VAULT_DEPOSIT_TOKENS",
    "Token",
    "TokenRegistry",
    "default_registry",
    "get_deposit_token",
    "token_key",
    "VAULTS",
    "Vault",
    "get_vault",
    "list_vaults",
]
