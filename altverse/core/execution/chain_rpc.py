"""
Chain RPC capability.

The orchestrator only needs a handful of reads plus receipt waiting.
Implementations exist per chain family; :class:`ChainRpcRouter` picks the
right one by chain id so callers can hold a single handle.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..chain_types import ChainFamily, ChainId, family_for_chain_id
from ..gas.strategy import FeeData
from ..recovery.errors import RpcError
from .models import TransactionReceipt


class ChainRpc(ABC):
    """Read chain state and wait for confirmations."""

    @abstractmethod
    async def get_balance(self, chain_id: ChainId, token_address: str, owner: str) -> int:
        """Balance in base units; the zero address means the native coin."""

    @abstractmethod
    async def get_allowance(self, chain_id: ChainId, token_address: str, owner: str, spender: str) -> int:
        ...

    @abstractmethod
    async def get_fee_data(self, chain_id: ChainId) -> Optional[FeeData]:
        ...

    @abstractmethod
    async def wait_for_receipt(
        self,
        chain_id: ChainId,
        tx_hash: str,
        confirmations: int = 1,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        """
        Wait until ``tx_hash`` has ``confirmations`` confirmations.

        Raises:
            ConfirmationTimeoutError: no receipt within ``timeout`` seconds
        """


class ChainRpcRouter(ChainRpc):
    """Dispatch to a per-family implementation."""

    def __init__(self, clients: Dict[ChainFamily, ChainRpc]):
        self._clients = dict(clients)

    def client_for(self, chain_id: ChainId) -> ChainRpc:
        family = family_for_chain_id(chain_id)
        client = self._clients.get(family)
        if client is None:
            raise RpcError(f"No RPC client configured for {family.value} chains", chain_id=chain_id)
        return client

    async def get_balance(self, chain_id: ChainId, token_address: str, owner: str) -> int:
        return await self.client_for(chain_id).get_balance(chain_id, token_address, owner)

    async def get_allowance(self, chain_id: ChainId, token_address: str, owner: str, spender: str) -> int:
        return await self.client_for(chain_id).get_allowance(chain_id, token_address, owner, spender)

    async def get_fee_data(self, chain_id: ChainId) -> Optional[FeeData]:
        return await self.client_for(chain_id).get_fee_data(chain_id)

    async def wait_for_receipt(
        self,
        chain_id: ChainId,
        tx_hash: str,
        confirmations: int = 1,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        return await self.client_for(chain_id).wait_for_receipt(chain_id, tx_hash, confirmations, timeout)
