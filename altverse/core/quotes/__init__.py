"""
Quote Engine

Debounced, generation-guarded quoting against an external routing service.

Usage:
    engine = QuoteEngine(MayanQuoteProvider())
    engine.subscribe(render)
    engine.start()                 # periodic refresh
    engine.submit(request)         # on every input change
"""

from .engine import QuoteEngine
from .models import (
    AUTO_SLIPPAGE,
    Quote,
    QuoteState,
    SlippageSpec,
    TransferKind,
    TransferRequest,
    format_receive_amount,
    parse_amount,
    parse_slippage,
)
from .provider import QuoteProvider

__all__ = [
    "QuoteEngine",
    "QuoteProvider",
    "AUTO_SLIPPAGE",
    "Quote",
    "QuoteState",
    "SlippageSpec",
    "TransferKind",
    "TransferRequest",
    "format_receive_amount",
    "parse_amount",
    "parse_slippage",
]
