"""Remote quote providers used to value open positions."""
from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import requests

from portfolio_ledger.config import SETTINGS
from portfolio_ledger.domain.models import PriceQuote
from portfolio_ledger.domain.results import PortfolioError


class PriceProviderError(PortfolioError):
    """One provider could not deliver a usable quote."""


def _positive_price(value: object, symbol: str) -> Decimal:
    if isinstance(value, bool):
        raise PriceProviderError(f"Invalid price {value!r} for symbol {symbol}")
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise PriceProviderError(f"Not a number: {value!r}") from exc
    if not math.isfinite(number) or number <= 0:
        raise PriceProviderError(f"Invalid price {value!r} for symbol {symbol}")
    return Decimal(str(value)) if isinstance(value, str) else Decimal(repr(number))


def _check_symbol(received: object, symbol: str) -> None:
    if received != symbol:
        raise PriceProviderError(f'Invalid symbol "{received}" data received for symbol "{symbol}"')


class QuoteProvider:
    """Base class: issues a GET request and turns the payload into a ``PriceQuote``."""

    name = "provider"
    requires_api_key = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else SETTINGS.http_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.api_key) or not self.requires_api_key

    def _get_json(self, url: str, params: Optional[dict[str, str]] = None) -> Any:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise PriceProviderError(f"{self.name} request failed: {exc}") from exc
        if response.status_code != 200:
            raise PriceProviderError(f"{self.name} HTTP error {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise PriceProviderError(f"{self.name} returned invalid JSON") from exc

    def fetch(self, symbol: str) -> PriceQuote:
        raise NotImplementedError


class FinancialModelingPrepProvider(QuoteProvider):
    name = "Financial Modeling Prep"
    url = "https://financialmodelingprep.com/stable/quote-short"

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(api_key if api_key is not None else SETTINGS.fmp_api_key, **kwargs)

    def fetch(self, symbol: str) -> PriceQuote:
        data = self._get_json(self.url, {"symbol": symbol, "apikey": self.api_key})
        if not isinstance(data, list) or not data:
            raise PriceProviderError(f"No data found for symbol: {symbol}")
        quote = data[0]
        _check_symbol(quote.get("symbol"), symbol)
        price = quote.get("price")
        if not isinstance(price, (int, float)):
            raise PriceProviderError(f"Not a number: {price!r}")
        return PriceQuote(price=_positive_price(price, symbol), observed_at=datetime.now())


class AlphaVantageProvider(QuoteProvider):
    name = "Alpha Vantage"
    url = "https://www.alphavantage.co/query"

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(api_key if api_key is not None else SETTINGS.alpha_vantage_api_key, **kwargs)

    def fetch(self, symbol: str) -> PriceQuote:
        data = self._get_json(self.url, {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.api_key})
        if not isinstance(data, dict):
            raise PriceProviderError(f"No data found for symbol: {symbol}")
        if data.get("Error Message"):
            raise PriceProviderError(f"API Error: {data['Error Message']}")
        if data.get("Note"):
            raise PriceProviderError(f"API Limit: {data['Note']}")
        quote = data.get("Global Quote")
        if not quote:
            raise PriceProviderError(f"Price data not found for symbol: {symbol}")
        _check_symbol(quote.get("01. symbol"), symbol)
        return PriceQuote(price=_positive_price(quote.get("05. price"), symbol), observed_at=datetime.now())


class YahooFinanceProvider(QuoteProvider):
    name = "Yahoo Finance"
    url = "https://query1.finance.yahoo.com/v8/finance/chart"
    requires_api_key = False

    def fetch(self, symbol: str) -> PriceQuote:
        data = self._get_json(f"{self.url}/{symbol}")
        if not isinstance(data, dict):
            raise PriceProviderError(f"No data found for symbol: {symbol}")
        results = (data.get("chart") or {}).get("result") or []
        if not results:
            raise PriceProviderError(f"No data found for symbol: {symbol}")
        meta = results[0].get("meta") or {}
        _check_symbol(meta.get("symbol"), symbol)
        price = meta.get("regularMarketPrice") or meta.get("previousClose")
        if not isinstance(price, (int, float)):
            raise PriceProviderError(f"Invalid price data from Yahoo Finance for symbol: {symbol}")
        return PriceQuote(price=_positive_price(price, symbol), observed_at=datetime.now())


def default_providers(session: Optional[requests.Session] = None) -> list[QuoteProvider]:
    session = session or requests.Session()
    return [
        FinancialModelingPrepProvider(session=session),
        AlphaVantageProvider(session=session),
        YahooFinanceProvider(session=session),
    ]


__all__ = [
    "AlphaVantageProvider",
    "FinancialModelingPrepProvider",
    "PriceProviderError",
    "QuoteProvider",
    "YahooFinanceProvider",
    "default_providers",
]
