"""
Quote Engine

Re-quotes the user's transfer while they type. Input changes are
debounced; every dispatched request captures a generation number and its
response is applied only if that number is still current, which is how
superseded requests are cancelled against a provider with no abort API.
A periodic refresh keeps an idle quote fresh unless a request is loading
or a transfer is executing.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Callable, List, Optional, Set

from ...config import settings
from ..recovery.errors import QuoteProviderError, StaleResponse, TransferInProgressError
from .models import Quote, QuoteState, TransferRequest
from .provider import QuoteProvider

logger = logging.getLogger(__name__)

QuoteListener = Callable[[QuoteState], None]


class QuoteEngine:
    def __init__(
        self,
        provider: QuoteProvider,
        *,
        debounce_seconds: Optional[float] = None,
        refresh_interval_seconds: Optional[float] = None,
    ):
        self.provider = provider
        self.debounce_seconds = (
            settings.quote_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.refresh_interval_seconds = (
            settings.quote_refresh_interval_seconds
            if refresh_interval_seconds is None
            else refresh_interval_seconds
        )

        self._generation = 0
        self._request: Optional[TransferRequest] = None
        self._state = QuoteState()
        self._executing = False

        self._debounce_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._listeners: List[QuoteListener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> QuoteState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def request(self) -> Optional[TransferRequest]:
        return self._request

    @property
    def latest_quote(self) -> Optional[Quote]:
        return self._state.quote

    def quote_for(self, request: TransferRequest) -> Optional[Quote]:
        """The settled quote fetched for ``request``; None while loading or for other input."""
        state = self._state
        if state.loading or state.request != request:
            return None
        return state.quote

    @property
    def is_loading(self) -> bool:
        return self._state.loading

    @property
    def is_executing(self) -> bool:
        return self._executing

    def subscribe(self, listener: QuoteListener) -> Callable[[], None]:
        """Call ``listener`` with every new state; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: QuoteState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Quote listener failed")

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def submit(self, request: Optional[TransferRequest]) -> None:
        """
        Record new user input and restart the debounce window.

        Any input change supersedes the request still in flight and clears
        the displayed quote.
        """
        self._cancel_debounce()
        self._request = request
        self._generation += 1

        if request is None or not request.is_quotable:
            self._set_state(QuoteState(request=request, generation=self._generation))
            return

        # The displayed quote belongs to the previous input; never show it under this one.
        self._set_state(QuoteState(request=request, loading=True, generation=self._generation))
        self._debounce_task = asyncio.get_running_loop().create_task(
            self._debounced_dispatch(request)
        )

    async def _debounced_dispatch(self, request: TransferRequest) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if self._debounce_task is asyncio.current_task():
            self._debounce_task = None
        await self.dispatch(request)

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, request: TransferRequest) -> asyncio.Task:
        """Issue a quote request now. The generation advances immediately."""
        self._generation += 1
        generation = self._generation
        self._request = request
        # A refresh of the same request keeps showing its quote while loading.
        quote = self._state.quote if self._state.request == request else None
        self._set_state(QuoteState(request=request, quote=quote, loading=True, generation=generation))

        task = asyncio.get_running_loop().create_task(self._fetch(generation, request))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _fetch(self, generation: int, request: TransferRequest) -> Optional[Quote]:
        try:
            quotes = await self.provider.get_quotes(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation != self._generation:
                logger.debug(f"Discarding error from superseded quote request {generation}: {e}")
                return None
            logger.warning(f"Quote request {generation} failed: {e}", exc_info=True)
            message = e.user_message if isinstance(e, QuoteProviderError) else QuoteProviderError().user_message
            self._set_state(QuoteState(request=request, error=message, generation=generation))
            return None

        if generation != self._generation:
            logger.debug(f"Discarding superseded quote response {generation} (current {self._generation})")
            return None

        if not quotes:
            logger.info(f"No route available for quote request {generation}")
            self._set_state(QuoteState(request=request, generation=generation))
            return None

        best = quotes[0]
        self._set_state(QuoteState(request=request, quote=best, generation=generation))
        return best

    async def refresh(self) -> bool:
        """
        Re-issue the current request unless one is loading or a transfer is
        executing. Returns whether a request was sent.
        """
        request = self._request
        if request is None or not request.is_quotable:
            return False
        if self.is_loading or self._executing:
            logger.debug("Skipping quote refresh: request loading or transfer executing")
            return False
        await self.dispatch(request)
        return True

    async def fetch_now(self, request: Optional[TransferRequest] = None) -> Optional[Quote]:
        """
        Fetch a fresh quote for ``request`` (default: the current input)
        bypassing the debounce, and wait for it.

        Raises:
            StaleResponse: newer input superseded this request while it ran
            QuoteProviderError: the provider failed
        """
        request = request or self._request
        if request is None or not request.is_quotable:
            return None
        self._cancel_debounce()
        task = self.dispatch(request)
        generation = self._generation
        quote = await task
        if generation != self._generation:
            raise StaleResponse(generation, self._generation)
        if quote is None and self._state.error:
            raise QuoteProviderError(self._state.error, provider=getattr(self.provider, "name", None))
        return quote

    async def wait_settled(self) -> None:
        """Wait until no debounce timer or request is outstanding."""
        while True:
            pending = list(self._inflight)
            if self._debounce_task is not None and not self._debounce_task.done():
                pending.append(self._debounce_task)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Periodic refresh / execution guard
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval_seconds)
            try:
                await self.refresh()
            except Exception:
                logger.exception("Periodic quote refresh failed")

    async def stop(self) -> None:
        """Cancel the refresh loop, the debounce timer and in-flight requests."""
        tasks = [t for t in (self._refresh_task, self._debounce_task) if t is not None]
        tasks.extend(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_task = None
        self._debounce_task = None
        if self._state.loading:
            self._set_state(replace(self._state, loading=False))

    @asynccontextmanager
    async def executing(self) -> AsyncIterator[Optional[Quote]]:
        """Mark a transfer as running; yields the accepted quote."""
        if self._executing:
            raise TransferInProgressError()
        self._executing = True
        try:
            yield self.latest_quote
        finally:
            self._executing = False
