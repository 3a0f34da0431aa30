"""Async client for Mayan's cross-chain quote API."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.catalog.chains import ChainInfo
from ..core.catalog.tokens import Token
from ..core.quotes.models import AUTO_SLIPPAGE, Quote, TransferRequest
from ..core.quotes.provider import QuoteProvider
from ..core.recovery.errors import QuoteProviderError
from .base import Provider

logger = logging.getLogger(__name__)


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def _int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class MayanQuoteProvider(Provider, QuoteProvider):
    """Thin wrapper around the Mayan ``/quote`` endpoint."""

    name = "mayan"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        referrer: Optional[str] = None,
        referrer_bps: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.mayan_api_base_url).rstrip("/")
        self.timeout_s = timeout_s or settings.quote_timeout_seconds
        self.referrer = referrer if referrer is not None else settings.quote_referrer_address
        self.referrer_bps = settings.quote_referrer_bps if referrer_bps is None else referrer_bps
        self._transport = transport

    async def ready(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        return {"accept": "application/json"}

    @staticmethod
    def _chain_name(chain: ChainInfo) -> str:
        if not chain.mayan_name:
            raise QuoteProviderError(f"Chain {chain.name} is not supported for routing", provider="mayan")
        return chain.mayan_name

    def build_params(self, request: TransferRequest) -> Dict[str, Any]:
        amount = request.amount_value
        if amount is None or amount <= 0:
            raise QuoteProviderError("Invalid amount", provider=self.name)
        source: Optional[Token] = request.source_token
        target: Optional[Token] = request.target_token
        if source is None or target is None:
            raise QuoteProviderError("Source and destination tokens are required", provider=self.name)

        params: Dict[str, Any] = {
            "amountIn": format(amount, "f"),
            "fromToken": source.address,
            "fromChain": self._chain_name(request.source_chain),
            "toToken": target.address,
            "toChain": self._chain_name(request.destination_chain),
            "slippageBps": AUTO_SLIPPAGE if request.slippage == AUTO_SLIPPAGE else int(request.slippage),
            "gasDrop": format(request.gas_drop, "f"),
            "sdkVersion": settings.mayan_sdk_version,
        }
        if self.referrer:
            params["referrer"] = self.referrer
            params["referrerBps"] = self.referrer_bps
        return params

    async def _request(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.get(path, params=params, headers=self._headers())
                payload = response.json()
        except httpx.HTTPError as exc:
            raise QuoteProviderError(f"Mayan request failed: {exc}", provider=self.name) from exc
        except ValueError as exc:
            raise QuoteProviderError("Mayan returned a non-JSON response", provider=self.name) from exc

        # Error bodies carry {code, msg}, sometimes with a 4xx status.
        if isinstance(payload, dict) and payload.get("msg") and "quotes" not in payload:
            raise QuoteProviderError(str(payload["msg"]), provider=self.name)
        if response.status_code >= 400:
            raise QuoteProviderError(f"Mayan responded with HTTP {response.status_code}", provider=self.name)
        if not isinstance(payload, dict):
            raise QuoteProviderError("Unexpected response from Mayan quote API", provider=self.name)
        return payload

    def _to_quote(self, item: Dict[str, Any]) -> Optional[Quote]:
        expected = _decimal(item.get("expectedAmountOut"))
        if expected is None:
            logger.warning(f"Skipping Mayan quote without expectedAmountOut: {item.get('type')}")
            return None

        relayer_fee = _decimal(item.get("clientRelayerFeeSuccess"))
        if relayer_fee is None:
            relayer_fee = _decimal(item.get("clientRelayerFeeRefund"))

        return Quote(
            expected_output_amount=expected,
            route_id=str(item.get("type") or "unknown"),
            eta_seconds=_int(item.get("etaSeconds")),
            protocol_fee_bps=_int(item.get("protocolBps")),
            relayer_fee_estimate=relayer_fee,
            source_token_price_usd=_decimal(item.get("fromTokenPrice")),
            destination_token_price_usd=_decimal(item.get("toTokenPrice")),
            min_output_amount=_decimal(item.get("minAmountOut")),
            provider=self.name,
            raw=item,
        )

    async def get_quotes(self, request: TransferRequest) -> List[Quote]:
        params = self.build_params(request)
        payload = await self._request("/quote", params)
        quotes = []
        for item in payload.get("quotes") or []:
            quote = self._to_quote(item)
            if quote is not None:
                quotes.append(quote)
        logger.debug(f"Mayan returned {len(quotes)} quote(s) for {params['fromChain']}->{params['toChain']}")
        return quotes
