from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Iterable

from ..core.catalog.tokens import Token


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        if not await self.ready():
            return {"status": "unavailable", "reason": "Provider not configured"}
        return {"status": "configured"}


class PriceProvider(Provider):
    """Provider for token price data"""

    @abstractmethod
    async def get_token_prices(self, tokens: Iterable[Token]) -> Dict[str, Decimal]:
        """USD prices keyed by composite token key; unknown tokens are omitted"""
        pass
