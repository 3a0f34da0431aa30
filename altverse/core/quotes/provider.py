"""Quote provider capability."""

from abc import ABC, abstractmethod
from typing import List

from .models import Quote, TransferRequest


class QuoteProvider(ABC):
    """
    External routing service: a request in, ranked route candidates out.

    The first element is the best route. Implementations raise
    ``QuoteProviderError`` on failure and return an empty list when no
    route exists.
    """

    name: str = "quote"

    @abstractmethod
    async def get_quotes(self, request: TransferRequest) -> List[Quote]:
        ...
