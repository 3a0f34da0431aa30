"""
Fee & Valuation Calculator

Derives display values from the accepted quote and the raw input amount.
The realized total fee is input minus expected output, so slippage and
price movement are included. Unknown stays ``None``: zero means "free",
which is a different statement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Optional, Protocol, Union

from ..catalog.tokens import Token
from ..quotes.models import Quote, TransferRequest, parse_amount

logger = logging.getLogger(__name__)

DISPLAY_QUANTUM = Decimal("0.000001")
BPS_DENOMINATOR = Decimal(10_000)


@dataclass(frozen=True)
class FeeBreakdown:
    total_fee_usd: Optional[Decimal] = None
    protocol_fee_usd: Optional[Decimal] = None
    relayer_fee_usd: Optional[Decimal] = None
    protocol_fee_bps: Optional[int] = None
    eta_seconds: Optional[int] = None
    input_value_usd: Optional[Decimal] = None
    output_value_usd: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    price_approximated: bool = False


def _round(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    return value.quantize(DISPLAY_QUANTUM, rounding=ROUND_HALF_UP)


def _times(amount: Decimal, price: Optional[Decimal]) -> Optional[Decimal]:
    return None if price is None else amount * price


def calculate_fees(
    amount: Union[str, Decimal, None],
    quote: Optional[Quote],
    *,
    same_chain: bool = False,
) -> FeeBreakdown:
    """
    Pure fee derivation.

    Both sides are valued in USD when both prices are known (the source
    price stands in for a missing destination price on same-chain
    transfers). With no prices at all the quote's token amounts are the
    reference unit. With only one side priced the total is unknown.
    """
    input_amount = amount if isinstance(amount, Decimal) else parse_amount(amount)
    if quote is None or input_amount is None:
        return FeeBreakdown()

    output_amount = quote.expected_output_amount
    source_price = quote.source_token_price_usd
    destination_price = quote.destination_token_price_usd
    approximated = False
    if destination_price is None and source_price is not None and same_chain:
        destination_price = source_price
        approximated = True

    input_value = _times(input_amount, source_price)
    output_value = _times(output_amount, destination_price)

    if input_value is not None and output_value is not None:
        total_fee = input_value - output_value
    elif source_price is None and destination_price is None:
        total_fee = input_amount - output_amount
    else:
        total_fee = None

    protocol_fee = None
    if quote.protocol_fee_bps is not None:
        protocol_fee = input_amount * (Decimal(quote.protocol_fee_bps) / BPS_DENOMINATOR)
        if source_price is not None:
            protocol_fee *= source_price

    exchange_rate = output_amount / input_amount if input_amount > 0 else None

    return FeeBreakdown(
        total_fee_usd=_round(total_fee),
        protocol_fee_usd=_round(protocol_fee),
        relayer_fee_usd=_round(quote.relayer_fee_estimate),
        protocol_fee_bps=quote.protocol_fee_bps,
        eta_seconds=quote.eta_seconds,
        input_value_usd=_round(input_value),
        output_value_usd=_round(output_value),
        exchange_rate=exchange_rate,
        price_approximated=approximated,
    )


class PriceLookup(Protocol):
    async def get_token_prices(self, tokens: Iterable[Token]) -> Dict[str, Decimal]:
        """USD prices keyed by composite token key; unknown tokens are omitted."""
        ...


class FeeCalculator:
    """
    Fee derivation with price enrichment.

    Quotes that arrive without USD prices are priced from the indexing
    service in one batched lookup before the pure calculation runs.
    """

    def __init__(self, prices: Optional[PriceLookup] = None):
        self.prices = prices

    async def enrich_quote(self, request: TransferRequest, quote: Quote) -> Quote:
        if self.prices is None:
            return quote
        wanted = []
        if quote.source_token_price_usd is None and request.source_token is not None:
            wanted.append(request.source_token)
        target = request.target_token
        if quote.destination_token_price_usd is None and target is not None:
            wanted.append(target)
        if not wanted:
            return quote

        try:
            prices = await self.prices.get_token_prices(wanted)
        except Exception as e:
            logger.warning(f"Price lookup failed, fees shown without USD values: {e}", exc_info=True)
            return quote

        updates = {}
        if quote.source_token_price_usd is None and request.source_token is not None:
            updates["source_token_price_usd"] = prices.get(request.source_token.key)
        if quote.destination_token_price_usd is None and target is not None:
            updates["destination_token_price_usd"] = prices.get(target.key)
        return replace(quote, **updates)

    async def calculate(self, request: TransferRequest, quote: Optional[Quote]) -> FeeBreakdown:
        if quote is None:
            return FeeBreakdown()
        quote = await self.enrich_quote(request, quote)
        return calculate_fees(request.amount, quote, same_chain=request.is_same_chain)
