"""Service layer helpers"""

from .transfer import TransferSession
from .tvl import VaultTvlService

__all__ = [
    "TransferSession",
    "VaultTvlService",
]
