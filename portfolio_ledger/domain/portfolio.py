"""Portfolio aggregate: every platform plus the chronological watermark of the ledger."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterator

from portfolio_ledger.config import SETTINGS, XirrSettings

from .holdings import AssetHolding, CashHolding, Holding
from .models import AssetKind, PriceQuote
from .platform import Platform
from .repositories import NullPriceLookup, PriceLookup
from .results import InvariantViolation, LedgerError, ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryRecord:
    platform: str
    asset_type: AssetKind
    friendly_name: str
    code: str
    currency: str
    count: Decimal | None
    current_value: Decimal | None
    value_date: date | None
    buy_cash: Decimal | None = None
    sell_cash: Decimal | None = None
    income_cash: Decimal | None = None
    other_cash: Decimal | None = None
    total_cash: Decimal | None = None
    xirr: str | None = None


class Portfolio:
    def __init__(self) -> None:
        self._platforms: dict[str, Platform] = {}
        self._latest_date: date | None = None
        self._finalized = False

    @property
    def latest_date(self) -> date | None:
        return self._latest_date

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def platforms(self) -> tuple[Platform, ...]:
        return tuple(self._platforms.values())

    def has_platform(self, name: str) -> bool:
        return name in self._platforms

    def get_platform(self, name: str) -> Platform:
        platform = self._platforms.get(name)
        if platform is None:
            raise LedgerError(f'Platform "{name}" does not exist')
        return platform

    def add_platform(self, platform: Platform) -> None:
        if platform.name in self._platforms:
            raise LedgerError(f'Platform "{platform.name}" exists')
        self._platforms[platform.name] = platform

    def advance_date(self, when: date) -> ValidationResult[date]:
        if self._latest_date is not None and when < self._latest_date:
            return ValidationResult.failure(
                f'Date "{when:%Y.%m.%d}" earlier than "{self._latest_date:%Y.%m.%d}"'
            )
        self._latest_date = when
        return ValidationResult.success(when)

    def iter_holdings(self) -> Iterator[tuple[Platform, Holding]]:
        for platform in self._platforms.values():
            for holding in platform.holdings():
                yield platform, holding

    def validate_and_finalize(
        self,
        price_lookup: PriceLookup | None = None,
        as_of: date | None = None,
        max_workers: int | None = None,
        xirr_settings: XirrSettings | None = None,
    ) -> None:
        """Fetch prices for held assets concurrently, then finalize every holding once."""
        if self._finalized:
            raise InvariantViolation("Portfolio is already finalized")
        lookup = price_lookup or NullPriceLookup()
        as_of = as_of or date.today()
        held_codes = sorted(
            {
                holding.code
                for _, holding in self.iter_holdings()
                if isinstance(holding, AssetHolding) and holding.shares > 0
            }
        )
        quotes: dict[str, PriceQuote | None] = {}
        if held_codes:
            workers = max(1, min(max_workers or SETTINGS.price_workers, len(held_codes)))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                for code, quote in zip(held_codes, executor.map(lambda c: _safe_lookup(lookup, c), held_codes)):
                    quotes[code] = quote
        for _, holding in self.iter_holdings():
            if isinstance(holding, CashHolding):
                holding.validate_and_finalize()
            else:
                holding.validate_and_finalize(quotes.get(holding.code), as_of, xirr_settings)
        self._finalized = True
        logger.info("Finalized portfolio with %d platform(s) as of %s", len(self._platforms), as_of)

    def summary(self) -> list[SummaryRecord]:
        records: list[SummaryRecord] = []
        for platform, holding in self.iter_holdings():
            if isinstance(holding, CashHolding):
                records.append(
                    SummaryRecord(
                        platform=platform.name,
                        asset_type=AssetKind.CASH,
                        friendly_name=holding.currency,
                        code=holding.currency,
                        currency=holding.currency,
                        count=None,
                        current_value=holding.balance,
                        value_date=self._latest_date,
                    )
                )
                continue
            records.append(
                SummaryRecord(
                    platform=platform.name,
                    asset_type=holding.kind,
                    friendly_name=holding.friendly_name,
                    code=holding.code,
                    currency=holding.currency,
                    count=holding.shares,
                    current_value=holding.total_value,
                    value_date=holding.latest_value_date,
                    buy_cash=holding.buy_cash,
                    sell_cash=holding.sell_cash,
                    income_cash=holding.income_cash + holding.interest_cash,
                    other_cash=holding.other_cash,
                    total_cash=holding.total_cash,
                    xirr=holding.xirr_str,
                )
            )
        return records


def _safe_lookup(lookup: PriceLookup, code: str) -> PriceQuote | None:
    try:
        return lookup.get_price(code)
    except Exception as error:  # noqa: BLE001
        logger.warning("Price lookup for %s failed: %s", code, error)
        return None
