"""
Quote request/response models.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from ..catalog.chains import ChainInfo
from ..catalog.tokens import Token

AUTO_SLIPPAGE: Literal["auto"] = "auto"
MAX_SLIPPAGE_BPS = 10_000

SlippageSpec = Union[Literal["auto"], int]


def parse_slippage(value: Union[str, int, float, Decimal, None]) -> SlippageSpec:
    """
    Normalize user slippage input to ``"auto"`` or basis points.

    Strings are percentages (``"3.25%"`` or ``"3.25"`` -> 325); ints are
    already basis points.
    """
    if value is None:
        return AUTO_SLIPPAGE
    if isinstance(value, bool):
        raise ValueError(f"Invalid slippage: {value!r}")
    if isinstance(value, int):
        bps = value
    elif isinstance(value, str):
        text = value.strip().lower()
        if text in ("", AUTO_SLIPPAGE):
            return AUTO_SLIPPAGE
        try:
            percent = Decimal(text.rstrip("%").strip())
        except InvalidOperation:
            raise ValueError(f"Invalid slippage: {value!r}") from None
        bps = int((percent * 100).to_integral_value())
    else:
        bps = int((Decimal(str(value)) * 100).to_integral_value())

    if bps < 0 or bps > MAX_SLIPPAGE_BPS:
        raise ValueError(f"Slippage out of range: {value!r}")
    return bps


def parse_amount(amount: Optional[str]) -> Optional[Decimal]:
    """Decimal value of a user amount string, or None when it is not a usable number."""
    if amount is None:
        return None
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def format_receive_amount(amount: Optional[Decimal], decimals: int) -> str:
    """Display string with at most 6 (or the token's) decimals, trailing zeros trimmed."""
    if amount is None:
        return ""
    places = max(0, min(decimals, 6))
    quantum = Decimal(1).scaleb(-places)
    text = format(amount.quantize(quantum, rounding=ROUND_DOWN), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class TransferKind(str, Enum):
    SWAP = "swap"
    BRIDGE = "bridge"


@dataclass(frozen=True)
class TransferRequest:
    """What the user currently has in the transfer form."""

    amount: str
    source_token: Optional[Token]
    destination_token: Optional[Token]
    source_chain: ChainInfo
    destination_chain: ChainInfo
    slippage: SlippageSpec = AUTO_SLIPPAGE
    kind: TransferKind = TransferKind.SWAP
    gas_drop: Decimal = Decimal("0")
    receive_address: Optional[str] = None

    @property
    def amount_value(self) -> Optional[Decimal]:
        return parse_amount(self.amount)

    @property
    def target_token(self) -> Optional[Token]:
        """Token received on the destination chain; bridges reuse the source token."""
        if self.kind is TransferKind.BRIDGE:
            return self.destination_token or self.source_token
        return self.destination_token

    @property
    def is_same_chain(self) -> bool:
        return self.source_chain.chain_id == self.destination_chain.chain_id

    @property
    def is_quotable(self) -> bool:
        amount = self.amount_value
        if amount is None or amount <= 0 or self.source_token is None:
            return False
        return self.target_token is not None


@dataclass(frozen=True)
class Quote:
    """A priced route candidate. Immutable once received."""

    expected_output_amount: Decimal
    route_id: str
    eta_seconds: Optional[int] = None
    protocol_fee_bps: Optional[int] = None
    relayer_fee_estimate: Optional[Decimal] = None
    source_token_price_usd: Optional[Decimal] = None
    destination_token_price_usd: Optional[Decimal] = None
    min_output_amount: Optional[Decimal] = None
    provider: str = ""
    received_at: float = field(default_factory=time.monotonic, compare=False)
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class QuoteState:
    """Display state owned by the quote engine. Replaced, never mutated."""

    request: Optional[TransferRequest] = None
    quote: Optional[Quote] = None
    loading: bool = False
    error: Optional[str] = None
    generation: int = 0

    @property
    def receive_amount(self) -> str:
        if self.quote is None or self.request is None or self.request.target_token is None:
            return ""
        return format_receive_amount(self.quote.expected_output_amount, self.request.target_token.decimals)

    @property
    def eta_seconds(self) -> Optional[int]:
        return self.quote.eta_seconds if self.quote else None
