"""Shared value types for the portfolio domain."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class AssetKind(str, Enum):
    CASH = "Cash"
    STOCK = "Stock"
    BOND = "Bond"
    INDEX_FUND = "IndexFund"

    @property
    def label(self) -> str:
        return "Index Fund" if self is AssetKind.INDEX_FUND else self.value


@dataclass(frozen=True)
class PriceQuote:
    """Most recent known unit price of an asset and when it was observed."""

    price: Decimal
    observed_at: datetime
