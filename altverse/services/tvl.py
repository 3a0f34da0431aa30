"""Vault TVL reporting backed by the retrying TTL cache."""

from __future__ import annotations

import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Protocol

from ..cache import RetryingTTLCache
from ..core.catalog.tokens import VAULT_DEPOSIT_TOKENS, Token
from ..core.catalog.vaults import Vault, get_vault, list_vaults
from ..core.execution.tx_builder import from_base_units
from ..providers.base import PriceProvider

logger = logging.getLogger(__name__)

UNAVAILABLE = "N/A"


class SupplyReader(Protocol):
    async def get_total_supply(self, chain_id: int, token_address: str) -> int: ...

    async def get_decimals(self, chain_id: int, token_address: str) -> int: ...


class VaultTvlService:
    """Share supply per vault, optionally valued in USD through the deposit asset price."""

    def __init__(
        self,
        rpc: SupplyReader,
        prices: Optional[PriceProvider] = None,
        cache: Optional[RetryingTTLCache[Decimal]] = None,
    ) -> None:
        self._rpc = rpc
        self._prices = prices
        self._cache: RetryingTTLCache[Decimal] = cache or RetryingTTLCache()

    @staticmethod
    def _key(vault_id: int) -> str:
        return f"tvl:{vault_id}"

    async def _fetch_tvl(self, vault: Vault) -> Decimal:
        total_supply = await self._rpc.get_total_supply(vault.chain_id, vault.address)
        decimals = vault.share_decimals
        if decimals is None:
            decimals = await self._rpc.get_decimals(vault.chain_id, vault.address)
        return from_base_units(total_supply, decimals)

    async def get_vault_tvl(self, vault_id: int) -> Decimal:
        vault = get_vault(vault_id)
        return await self._cache.get_with(self._key(vault_id), lambda: self._fetch_tvl(vault))

    async def get_all_tvl(self) -> Dict[int, Optional[Decimal]]:
        """TVL for every catalog vault; a vault that cannot be read maps to None."""
        vaults = list_vaults()
        results = await asyncio.gather(
            *(self.get_vault_tvl(vault.id) for vault in vaults),
            return_exceptions=True,
        )
        tvl: Dict[int, Optional[Decimal]] = {}
        for vault, result in zip(vaults, results):
            if isinstance(result, BaseException):
                logger.error(f"Error fetching TVL for vault {vault.id}: {result}")
                tvl[vault.id] = None
            else:
                tvl[vault.id] = result
        return tvl

    async def _deposit_price(self, vault: Vault) -> Decimal:
        token: Optional[Token] = VAULT_DEPOSIT_TOKENS.get(vault.expected_symbol.lower())
        if token is None or self._prices is None:
            return Decimal(1)
        try:
            prices = await self._prices.get_token_prices([token])
        except Exception as e:
            logger.warning(f"Price lookup failed for {token.symbol}, valuing vault {vault.id} at 1: {e}")
            return Decimal(1)
        return prices.get(token.key, Decimal(1))

    async def get_tvl_usd(self, vault_id: int) -> Decimal:
        vault = get_vault(vault_id)
        tvl = await self.get_vault_tvl(vault_id)
        return tvl * await self._deposit_price(vault)

    async def format_tvl_usd(self, vault_id: int) -> str:
        try:
            value = await self.get_tvl_usd(vault_id)
        except Exception as e:
            logger.error(f"TVL unavailable for vault {vault_id}: {e}")
            return UNAVAILABLE
        return format(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP), "f")

    def invalidate(self, vault_id: Optional[int] = None) -> None:
        self._cache.invalidate(None if vault_id is None else self._key(vault_id))
