"""JSON-RPC client for EVM chains."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.catalog.chains import get_chain_by_id
from ..core.catalog.tokens import NATIVE_TOKEN_ADDRESS
from ..core.execution.chain_rpc import ChainRpc
from ..core.execution.models import TransactionReceipt
from ..core.execution.tx_builder import (
    ERC20_DECIMALS_SELECTOR,
    ERC20_TOTAL_SUPPLY_SELECTOR,
    decode_uint256,
    encode_allowance,
    encode_balance_of,
)
from ..core.gas.strategy import FeeData
from ..core.recovery.errors import ConfirmationTimeoutError, RpcError

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_FEE_WEI = 1_000_000_000


class EvmRpcClient(ChainRpc):
    """
    Reads balances, allowances and fee data and waits for receipts.

    RPC URLs come from the chain catalog (``RPC_URL_OVERRIDES`` wins); an
    explicit ``rpc_urls`` mapping replaces both.
    """

    def __init__(
        self,
        rpc_urls: Optional[Dict[int, str]] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ):
        self._rpc_urls = dict(rpc_urls or {})
        self._client = client or httpx.AsyncClient(timeout=timeout_s or settings.rpc_timeout_seconds)
        self.poll_interval = settings.confirmation_poll_interval_seconds if poll_interval is None else poll_interval
        self._request_id = 0

    async def aclose(self) -> None:
        await self._client.aclose()

    def rpc_url(self, chain_id: int) -> str:
        url = self._rpc_urls.get(chain_id)
        if url:
            return url
        chain = get_chain_by_id(chain_id)
        if chain is None or not chain.is_evm:
            raise RpcError(f"No RPC URL configured for chain {chain_id}", chain_id=chain_id)
        return chain.resolved_rpc_url

    async def _rpc_call(self, chain_id: int, method: str, params: List[Any]) -> Any:
        """Make an RPC call to the chain."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }
        try:
            response = await self._client.post(self.rpc_url(chain_id), json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            raise RpcError(f"{method} failed on chain {chain_id}: {e}", chain_id=chain_id) from e
        except ValueError as e:
            raise RpcError(f"{method} returned invalid JSON on chain {chain_id}", chain_id=chain_id) from e

        if "error" in result:
            error = result["error"] or {}
            raise RpcError(
                f"RPC error: {error.get('message', error)}",
                code=error.get("code") if isinstance(error, dict) else None,
                chain_id=chain_id,
            )
        return result.get("result")

    async def eth_call(self, chain_id: int, to: str, data: str) -> str:
        return await self._rpc_call(chain_id, "eth_call", [{"to": to, "data": data}, "latest"])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balance(self, chain_id: int, token_address: str, owner: str) -> int:
        if token_address.lower() == NATIVE_TOKEN_ADDRESS:
            result = await self._rpc_call(chain_id, "eth_getBalance", [owner, "latest"])
            return int(result, 16)
        return decode_uint256(await self.eth_call(chain_id, token_address, encode_balance_of(owner)))

    async def get_allowance(self, chain_id: int, token_address: str, owner: str, spender: str) -> int:
        data = encode_allowance(owner, spender)
        return decode_uint256(await self.eth_call(chain_id, token_address, data))

    async def get_total_supply(self, chain_id: int, token_address: str) -> int:
        return decode_uint256(await self.eth_call(chain_id, token_address, ERC20_TOTAL_SUPPLY_SELECTOR))

    async def get_decimals(self, chain_id: int, token_address: str) -> int:
        return decode_uint256(await self.eth_call(chain_id, token_address, ERC20_DECIMALS_SELECTOR))

    async def get_fee_data(self, chain_id: int) -> Optional[FeeData]:
        """
        EIP-1559 fee suggestion: ``maxFee = 2 * baseFee + priorityFee``.

        Returns None on chains whose latest block has no base fee.
        """
        fee_history = await self._rpc_call(chain_id, "eth_feeHistory", [1, "latest", [50]])
        base_fees = (fee_history or {}).get("baseFeePerGas") or []
        if not base_fees:
            return None
        base_fee = int(base_fees[-1], 16)

        try:
            priority_fee = int(await self._rpc_call(chain_id, "eth_maxPriorityFeePerGas", []), 16)
        except RpcError as e:
            logger.debug(f"eth_maxPriorityFeePerGas unavailable on chain {chain_id}: {e}")
            rewards = fee_history.get("reward") or []
            priority_fee = int(rewards[0][0], 16) if rewards and rewards[0] else DEFAULT_PRIORITY_FEE_WEI

        return FeeData(
            max_fee_per_gas=2 * base_fee + priority_fee,
            max_priority_fee_per_gas=priority_fee,
            base_fee_per_gas=base_fee,
        )

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    async def wait_for_receipt(
        self,
        chain_id: int,
        tx_hash: str,
        confirmations: int = 1,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        timeout = settings.confirmation_timeout_seconds if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            try:
                receipt = await self._rpc_call(chain_id, "eth_getTransactionReceipt", [tx_hash])
                if receipt:
                    block_number = int(receipt["blockNumber"], 16)
                    status = int(receipt.get("status", "0x1"), 16)
                    gas_used = int(receipt.get("gasUsed", "0x0"), 16)
                    if status == 0:
                        return TransactionReceipt(tx_hash, 0, block_number, gas_used)

                    current_block = int(await self._rpc_call(chain_id, "eth_blockNumber", []), 16)
                    seen = current_block - block_number + 1
                    if seen >= confirmations:
                        logger.info(f"Transaction confirmed: {tx_hash} (block {block_number}, {seen} confirmations)")
                        return TransactionReceipt(tx_hash, 1, block_number, gas_used, seen)
            except RpcError as e:
                logger.warning(f"Error checking transaction status: {e}")

            if loop.time() >= deadline:
                raise ConfirmationTimeoutError(tx_hash, chain_id=chain_id, timeout_seconds=timeout)
            await asyncio.sleep(self.poll_interval)
