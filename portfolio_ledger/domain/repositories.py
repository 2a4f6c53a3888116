"""Collaborator interfaces anchoring the domain layer."""
from __future__ import annotations

from typing import Protocol

from .models import PriceQuote


class PriceLookup(Protocol):
    """Provides the best known price of an asset as of now."""

    def get_price(self, code: str) -> PriceQuote | None:
        ...


class NullPriceLookup:
    """Offline lookup: holdings keep their latest transaction price."""

    def get_price(self, code: str) -> PriceQuote | None:
        return None
