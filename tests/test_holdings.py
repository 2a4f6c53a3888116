import random
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from portfolio_ledger.domain.history import AssetChangeType, CashChangeType
from portfolio_ledger.domain.holdings import BondHolding, CashHolding, IndexFundHolding, StockHolding
from portfolio_ledger.domain.models import PriceQuote
from portfolio_ledger.domain.results import InvariantViolation, LedgerError


def make_stock() -> StockHolding:
    return StockHolding("AAPL", "Apple", "USD")


def test_cash_deposit_and_negative_warning():
    cash = CashHolding("USD")

    assert cash.update_value(Decimal("100.00"), date(2024, 1, 1), CashChangeType.DEPOSIT) == []
    warnings = cash.update_value(Decimal("-150"), date(2024, 1, 2), CashChangeType.STOCK_BUY)

    assert cash.balance == Decimal("-50.00")
    assert warnings == ['Cash "USD" value -50.00 has become negative.']
    assert len(cash.history) == 2


def test_cash_rejects_zero_diff_and_out_of_order_dates():
    cash = CashHolding("EUR")
    cash.update_value(Decimal("1"), date(2024, 2, 1), CashChangeType.DEPOSIT)

    with pytest.raises(LedgerError):
        cash.update_value(Decimal("0"), date(2024, 2, 1), CashChangeType.DEPOSIT)
    with pytest.raises(LedgerError):
        cash.update_value(Decimal("1"), date(2024, 1, 31), CashChangeType.DEPOSIT)
    assert cash.balance == Decimal("1")


def test_cash_finalize_is_one_shot():
    cash = CashHolding("USD")
    cash.update_value(Decimal("5"), date(2024, 1, 1), CashChangeType.DEPOSIT)

    cash.validate_and_finalize()

    assert cash.finalized
    with pytest.raises(InvariantViolation):
        cash.validate_and_finalize()
    with pytest.raises(InvariantViolation):
        cash.update_value(Decimal("5"), date(2024, 1, 2), CashChangeType.DEPOSIT)


def test_buy_tracks_shares_cash_categories_and_price():
    stock = make_stock()

    stock.update_shares(Decimal("10"), Decimal("-1005"), date(2024, 1, 1), AssetChangeType.BUY, unit_value=Decimal("100"))
    stock.update_shares(Decimal("0"), Decimal("12.5"), date(2024, 2, 1), AssetChangeType.DIVIDEND, zero_diff=True)
    stock.update_shares(Decimal("-4"), Decimal("440"), date(2024, 3, 1), AssetChangeType.SELL, unit_value=Decimal("110"))

    assert stock.shares == Decimal("6")
    assert stock.buy_cash == Decimal("1005")
    assert stock.sell_cash == Decimal("440")
    assert stock.income_cash == Decimal("12.5")
    assert stock.total_cash == Decimal("-552.5")
    assert stock.category_total() == stock.total_cash
    assert stock.latest_unit_value == Decimal("110")
    assert stock.latest_value_date == date(2024, 3, 1)


def test_negative_share_count_is_a_warning():
    stock = make_stock()

    warnings = stock.update_shares(
        Decimal("-1"), Decimal("50"), date(2024, 1, 1), AssetChangeType.SELL, unit_value=Decimal("50")
    )

    assert warnings == ['Asset "Apple" count -1 has become negative.']
    assert stock.shares == Decimal("-1")


def test_zero_flags_are_enforced():
    stock = make_stock()

    with pytest.raises(LedgerError, match="diff"):
        stock.update_shares(Decimal("0"), Decimal("-5"), date(2024, 1, 1), AssetChangeType.BUY, unit_value=Decimal("1"))
    with pytest.raises(LedgerError, match="diff"):
        stock.update_shares(Decimal("1"), Decimal("5"), date(2024, 1, 1), AssetChangeType.DIVIDEND, zero_diff=True)
    with pytest.raises(LedgerError, match="cashChange"):
        stock.update_shares(Decimal("2"), Decimal("1"), date(2024, 1, 1), AssetChangeType.SPLIT)
    assert stock.history == ()


def test_unit_value_only_for_trades():
    stock = make_stock()

    with pytest.raises(LedgerError, match="unitValue"):
        stock.update_shares(Decimal("1"), Decimal("-1"), date(2024, 1, 1), AssetChangeType.BUY)
    with pytest.raises(LedgerError, match="unitValue"):
        stock.update_shares(Decimal("1"), Decimal("-1"), date(2024, 1, 1), AssetChangeType.BUY, unit_value=Decimal("0"))
    with pytest.raises(LedgerError, match="unitValue"):
        stock.update_shares(
            Decimal("0"), Decimal("1"), date(2024, 1, 1), AssetChangeType.DIVIDEND, zero_diff=True, unit_value=Decimal("1")
        )


def test_unsupported_change_types_are_rejected():
    with pytest.raises(LedgerError):
        BondHolding("B1", "Bond one", "USD").update_shares(
            Decimal("0"), Decimal("5"), date(2024, 1, 1), AssetChangeType.DIVIDEND, zero_diff=True
        )
    with pytest.raises(LedgerError):
        IndexFundHolding("IF1", "Fund one", "USD").update_shares(
            Decimal("0"), Decimal("5"), date(2024, 1, 1), AssetChangeType.INTEREST, zero_diff=True
        )


def test_bond_interest_accumulates_in_interest_cash():
    bond = BondHolding("B1", "Bond one", "USD")
    bond.update_shares(Decimal("1"), Decimal("-1000"), date(2024, 1, 1), AssetChangeType.BUY, unit_value=Decimal("1000"))
    bond.update_shares(Decimal("0"), Decimal("40"), date(2024, 7, 1), AssetChangeType.INTEREST, zero_diff=True)

    assert bond.interest_cash == Decimal("40")
    assert bond.category_total() == bond.total_cash == Decimal("-960")


def test_random_updates_keep_history_consistent():
    rng = random.Random(20240101)
    stock = make_stock()
    when = date(2020, 1, 1)
    change_types = list(StockHolding.categories)

    for _ in range(300):
        when += timedelta(days=rng.randint(0, 3))
        change_type = rng.choice(change_types)
        if change_type in (AssetChangeType.BUY, AssetChangeType.SELL, AssetChangeType.SPLIT):
            diff = Decimal(rng.choice([-1, 1]) * rng.randint(1, 500)) / 10
            zero_diff = False
        else:
            diff = Decimal(0)
            zero_diff = True
        if change_type is AssetChangeType.SPLIT:
            cash_change = Decimal(0)
            zero_cash = True
        else:
            cash_change = Decimal(rng.choice([-1, 1]) * rng.randint(1, 100_000)) / 100
            zero_cash = False
        unit_value = Decimal(rng.randint(1, 50_000)) / 100 if change_type in (AssetChangeType.BUY, AssetChangeType.SELL) else None

        stock.update_shares(diff, cash_change, when, change_type, zero_diff, zero_cash, unit_value)

        assert sum((record.value_change for record in stock.history), Decimal(0)) == stock.shares
        assert sum((record.cash_change for record in stock.history), Decimal(0)) == stock.total_cash
        assert stock.category_total() == stock.total_cash
        assert stock.validate().ok


def test_finalize_computes_value_and_xirr_from_quote():
    stock = make_stock()
    stock.update_shares(Decimal("10"), Decimal("-1000"), date(2023, 1, 1), AssetChangeType.BUY, unit_value=Decimal("100"))

    stock.validate_and_finalize(PriceQuote(Decimal("110"), datetime(2024, 1, 1, 12, 0)), as_of=date(2024, 1, 1))

    assert stock.latest_unit_value == Decimal("110")
    assert stock.total_value == Decimal("1100")
    assert stock.xirr == pytest.approx(0.1, abs=1e-6)
    assert stock.xirr_str == "10.00%"
    with pytest.raises(InvariantViolation):
        stock.validate_and_finalize()


def test_finalize_ignores_quote_older_than_last_trade():
    stock = make_stock()
    stock.update_shares(Decimal("10"), Decimal("-1000"), date(2023, 6, 1), AssetChangeType.BUY, unit_value=Decimal("100"))

    stock.validate_and_finalize(PriceQuote(Decimal("50"), datetime(2023, 5, 1)), as_of=date(2023, 12, 1))

    assert stock.latest_unit_value == Decimal("100")
    assert stock.total_value == Decimal("1000")


def test_finalize_without_unit_value_keeps_failure_text():
    stock = make_stock()
    stock.update_shares(Decimal("0"), Decimal("5"), date(2023, 6, 1), AssetChangeType.DIVIDEND, zero_diff=True)

    stock.validate_and_finalize(as_of=date(2023, 12, 1))

    assert stock.xirr is None
    assert stock.total_value is None
    assert stock.xirr_str == "XIRR calculation failed: no known unit value"


def test_empty_holding_finalizes_without_valuation():
    stock = make_stock()

    stock.validate_and_finalize(as_of=date(2023, 12, 1))

    assert stock.finalized
    assert stock.xirr_str is None
