"""Client for the token price/balance indexing service."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ..config import settings
from ..core.catalog.chains import get_chain_by_id
from ..core.catalog.tokens import Token
from .base import PriceProvider

logger = logging.getLogger(__name__)

# The /prices endpoint accepts at most this many addresses per call.
PRICE_BATCH_SIZE = 25


class TokenApiClient(PriceProvider):
    """POST-only JSON API: ``/prices``, ``/balances``, ``/allowance``, ``/metadata``."""

    name = "token_api"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.token_api_base_url).rstrip("/")
        self.timeout_s = timeout_s or settings.token_api_timeout_seconds
        self._transport = transport

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            transport=self._transport,
        ) as client:
            response = await client.post(
                f"/{endpoint}",
                json=body,
                headers={"accept": "application/json", "content-type": "application/json"},
            )
            response.raise_for_status()
            return response.json() if response.content else None

    @staticmethod
    def network_for(chain_id: int) -> Optional[str]:
        chain = get_chain_by_id(chain_id)
        return chain.network_name if chain else None

    async def get_prices(self, addresses: List[Dict[str, str]]) -> List[Dict[str, Any]]:
        """Raw price results for ``{network, address}`` pairs."""
        results: List[Dict[str, Any]] = []
        for start in range(0, len(addresses), PRICE_BATCH_SIZE):
            batch = addresses[start:start + PRICE_BATCH_SIZE]
            payload = await self._post("prices", {"addresses": batch})
            results.extend((payload or {}).get("data") or [])
        return results

    async def get_token_prices(self, tokens: Iterable[Token]) -> Dict[str, Decimal]:
        wanted: Dict[tuple, Token] = {}
        for token in tokens:
            network = self.network_for(token.chain_id)
            if network is None:
                logger.debug(f"No indexing network for chain {token.chain_id}, skipping {token.symbol}")
                continue
            wanted[(network, token.address.lower())] = token

        if not wanted:
            return {}

        results = await self.get_prices(
            [{"network": network, "address": address} for network, address in wanted]
        )

        prices: Dict[str, Decimal] = {}
        for result in results:
            if result.get("error"):
                logger.debug(f"Price unavailable for {result.get('address')}: {result['error']}")
                continue
            token = wanted.get((result.get("network"), str(result.get("address", "")).lower()))
            if token is None:
                continue
            price = _usd_price(result.get("prices") or [])
            if price is not None:
                prices[token.key] = price
        return prices

    async def get_balances(
        self,
        network: str,
        owner: str,
        contract_addresses: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        body: Dict[str, Any] = {"network": network, "userAddress": owner}
        if contract_addresses:
            body["contractAddresses"] = ",".join(contract_addresses)
        return await self._post("balances", body) or []

    async def get_allowance(self, network: str, owner: str, token_address: str, spender: str) -> int:
        payload = await self._post(
            "allowance",
            {
                "network": network,
                "userAddress": owner,
                "contractAddress": token_address,
                "spenderAddress": spender,
            },
        )
        allowance = (payload or {}).get("allowance") or "0x0"
        return int(allowance, 16)

    async def get_metadata(self, network: str, token_address: str) -> Dict[str, Any]:
        return await self._post("metadata", {"network": network, "contractAddress": token_address}) or {}


def _usd_price(prices: List[Dict[str, Any]]) -> Optional[Decimal]:
    for entry in prices:
        if str(entry.get("currency", "")).lower() != "usd":
            continue
        try:
            return Decimal(str(entry["value"]))
        except (KeyError, InvalidOperation):
            return None
    return None
