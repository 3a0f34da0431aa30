"""External service clients: routing quotes, EVM JSON-RPC and token prices."""

from .base import PriceProvider, Provider
from .evm_rpc import EvmRpcClient
from .mayan import MayanQuoteProvider
from .token_api import TokenApiClient

__all__ = [
    "Provider",
    "PriceProvider",
    "EvmRpcClient",
    "MayanQuoteProvider",
    "TokenApiClient",
]
