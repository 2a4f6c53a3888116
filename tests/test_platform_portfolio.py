from datetime import date, datetime
from decimal import Decimal

import pytest

from portfolio_ledger.domain.history import AssetChangeType, CashChangeType
from portfolio_ledger.domain.holdings import BondHolding, CashHolding, StockHolding
from portfolio_ledger.domain.models import AssetKind, PriceQuote
from portfolio_ledger.domain.platform import Platform
from portfolio_ledger.domain.portfolio import Portfolio
from portfolio_ledger.domain.results import InvariantViolation, LedgerError


class FakeLookup:
    def __init__(self, quotes=None, failing=()):
        self.quotes = quotes or {}
        self.failing = set(failing)
        self.calls = []

    def get_price(self, code):
        self.calls.append(code)
        if code in self.failing:
            raise RuntimeError("network down")
        return self.quotes.get(code)


def make_platform() -> Platform:
    platform = Platform("Broker")
    platform.add_holding(CashHolding("USD"))
    platform.add_holding(StockHolding("AAPL", "Apple", "USD"))
    return platform


def test_code_is_unique_across_kinds():
    platform = make_platform()

    with pytest.raises(LedgerError, match='Stock holding "AAPL" exists'):
        platform.add_holding(BondHolding("AAPL", "Apple bond", "USD"))
    with pytest.raises(LedgerError):
        platform.add_holding(CashHolding("USD"))


def test_friendly_name_is_unique_across_assets():
    platform = make_platform()

    with pytest.raises(LedgerError, match="named"):
        platform.add_holding(BondHolding("AAPL30", "Apple", "USD"))


def test_lookup_of_missing_holding_fails():
    platform = make_platform()

    with pytest.raises(LedgerError, match='No bond holding "XYZ" on platform "Broker"'):
        platform.asset(AssetKind.BOND, "XYZ")
    assert platform.cash("USD").currency == "USD"
    assert platform.asset(AssetKind.STOCK, "AAPL").friendly_name == "Apple"


def test_portfolio_platforms_and_watermark():
    portfolio = Portfolio()
    portfolio.add_platform(Platform("Bank"))

    with pytest.raises(LedgerError, match='Platform "Bank" exists'):
        portfolio.add_platform(Platform("Bank"))
    with pytest.raises(LedgerError, match='Platform "Other" does not exist'):
        portfolio.get_platform("Other")

    assert portfolio.advance_date(date(2024, 1, 2)).ok
    assert portfolio.advance_date(date(2024, 1, 2)).ok
    result = portfolio.advance_date(date(2024, 1, 1))
    assert result.message == 'Date "2024.01.01" earlier than "2024.01.02"'
    assert portfolio.latest_date == date(2024, 1, 2)


def test_finalize_looks_up_only_held_assets_and_survives_failures():
    portfolio = Portfolio()
    platform = make_platform()
    platform.add_holding(StockHolding("MSFT", "Microsoft", "USD"))
    platform.add_holding(StockHolding("GONE", "Sold out", "USD"))
    portfolio.add_platform(platform)
    platform.cash("USD").update_value(Decimal("5000"), date(2023, 1, 1), CashChangeType.DEPOSIT)
    platform.asset(AssetKind.STOCK, "AAPL").update_shares(
        Decimal("10"), Decimal("-1000"), date(2023, 1, 1), AssetChangeType.BUY, unit_value=Decimal("100")
    )
    platform.asset(AssetKind.STOCK, "MSFT").update_shares(
        Decimal("2"), Decimal("-600"), date(2023, 1, 1), AssetChangeType.BUY, unit_value=Decimal("300")
    )
    lookup = FakeLookup({"AAPL": PriceQuote(Decimal("120"), datetime(2023, 6, 1))}, failing={"MSFT"})

    portfolio.validate_and_finalize(lookup, as_of=date(2023, 6, 1), max_workers=2)

    assert sorted(lookup.calls) == ["AAPL", "MSFT"]
    assert platform.asset(AssetKind.STOCK, "AAPL").total_value == Decimal("1200")
    assert platform.asset(AssetKind.STOCK, "MSFT").total_value == Decimal("600")
    assert portfolio.finalized
    with pytest.raises(InvariantViolation):
        portfolio.validate_and_finalize()


def test_summary_has_one_record_per_holding():
    portfolio = Portfolio()
    platform = make_platform()
    portfolio.add_platform(platform)
    portfolio.advance_date(date(2023, 1, 1))
    platform.cash("USD").update_value(Decimal("100"), date(2023, 1, 1), CashChangeType.DEPOSIT)
    portfolio.validate_and_finalize(as_of=date(2023, 2, 1))

    records = {record.code: record for record in portfolio.summary()}

    assert set(records) == {"USD", "AAPL"}
    assert records["USD"].asset_type is AssetKind.CASH
    assert records["USD"].current_value == Decimal("100")
    assert records["USD"].value_date == date(2023, 1, 1)
    assert records["AAPL"].count == Decimal(0)
    assert records["AAPL"].xirr is None
