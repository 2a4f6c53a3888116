"""Price lookup combining the file cache with the remote quote providers."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, Sequence

from portfolio_ledger.domain.models import PriceQuote

from .providers import PriceProviderError, QuoteProvider

logger = logging.getLogger(__name__)


class PriceCache(Protocol):
    def get(self, code: str) -> PriceQuote | None:
        ...

    def set(self, code: str, quote: PriceQuote) -> None:
        ...


class CachedPriceService:
    """``PriceLookup`` that prefers a fresh cached quote and falls back to a stale one.

    Providers are tried in order; one without an API key is skipped, and the skip is
    logged once per service instance.
    """

    def __init__(
        self,
        cache: PriceCache,
        providers: Sequence[QuoteProvider],
        max_age: timedelta,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._cache = cache
        self._providers = list(providers)
        self._max_age = max_age
        self._clock = clock or datetime.now
        self._skipped: set[str] = set()
        self._lock = threading.Lock()

    def _log_skip_once(self, provider: QuoteProvider) -> None:
        with self._lock:
            if provider.name in self._skipped:
                return
            self._skipped.add(provider.name)
        logger.warning("API key for %s is not set, skipping it (logged only once).", provider.name)

    def _fetch(self, symbol: str) -> PriceQuote | None:
        for provider in self._providers:
            if not provider.enabled:
                self._log_skip_once(provider)
                continue
            try:
                quote = provider.fetch(symbol)
            except PriceProviderError as error:
                logger.warning("Error fetching price from %s for symbol %s: %s", provider.name, symbol, error)
                continue
            logger.info("Fetched price from %s: %s = %s", provider.name, symbol, quote.price)
            return quote
        return None

    def get_price(self, code: str) -> PriceQuote | None:
        cached = self._cache.get(code)
        if cached is not None and self._clock() - cached.observed_at <= self._max_age:
            return cached
        quote = self._fetch(code.upper())
        if quote is None:
            logger.warning("All providers failed to fetch price for %s", code)
            return cached
        self._cache.set(code, quote)
        return quote
