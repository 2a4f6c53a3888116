"""Domain service applying parsed ledger entries to a portfolio."""
from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Callable

from .entries import (
    AccountingIncomeEntry,
    AssetCheckEntry,
    BondInterestEntry,
    BuyEntry,
    CashCheckEntry,
    CashInterestEntry,
    CurrencyConversionEntry,
    DepositEntry,
    DividendEntry,
    LedgerEntry,
    NewAssetEntry,
    NewCashEntry,
    NewPlatformEntry,
    SellEntry,
    ShareConversionEntry,
    SplitEntry,
    TransferEntry,
    parse_entry,
)
from .history import AssetChangeType, CashChangeType
from .holdings import ASSET_HOLDING_TYPES, AssetHolding, CashHolding
from .models import AssetKind
from .platform import Platform
from .portfolio import Portfolio
from .results import LedgerError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
SHARE_QUANTUM = Decimal("0.000000001")

_BUY_CASH_TYPES = {
    AssetKind.STOCK: CashChangeType.STOCK_BUY,
    AssetKind.BOND: CashChangeType.BOND_BUY,
    AssetKind.INDEX_FUND: CashChangeType.INDEX_FUND_BUY,
}
_SELL_CASH_TYPES = {
    AssetKind.STOCK: CashChangeType.STOCK_SELL,
    AssetKind.BOND: CashChangeType.BOND_SELL,
    AssetKind.INDEX_FUND: CashChangeType.INDEX_FUND_SELL,
}


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise LedgerError(message)


def _require_positive(value: Decimal, name: str) -> None:
    _require(value > 0, f"{name} {value} must be positive")


def _require_not_negative(value: Decimal, name: str) -> None:
    _require(value >= 0, f"{name} {value} must not be negative")


class ActionProcessor:
    """Validates one raw ledger entry at a time and mutates the portfolio accordingly.

    ``process`` returns the warnings of the entry; any fatal condition is raised as
    ``LedgerError`` and leaves the remaining entries unprocessed by the caller.
    """

    def __init__(self, portfolio: Portfolio) -> None:
        self._portfolio = portfolio
        self._handlers: dict[type[LedgerEntry], Callable[..., list[str]]] = {
            NewPlatformEntry: self._new_platform,
            NewCashEntry: self._new_cash,
            NewAssetEntry: self._new_asset,
            DepositEntry: self._deposit,
            CashCheckEntry: self._cash_check,
            AssetCheckEntry: self._asset_check,
            BuyEntry: self._buy,
            SellEntry: self._sell,
            DividendEntry: self._dividend,
            BondInterestEntry: self._bond_interest,
            CashInterestEntry: self._cash_interest,
            CurrencyConversionEntry: self._currency_conversion,
            TransferEntry: self._transfer,
            ShareConversionEntry: self._share_conversion,
            AccountingIncomeEntry: self._accounting_income,
            SplitEntry: self._split,
        }

    @property
    def portfolio(self) -> Portfolio:
        return self._portfolio

    def process(self, raw: object) -> list[str]:
        entry = parse_entry(raw).get_or_raise()
        return self.apply(entry)

    def apply(self, entry: LedgerEntry) -> list[str]:
        self._portfolio.advance_date(entry.date).get_or_raise()
        handler = self._handlers.get(type(entry))
        if handler is None:
            raise LedgerError(f'Action "{entry.action}" is not supported')
        logger.debug("Applying %s dated %s", type(entry).__name__, entry.date)
        try:
            return handler(entry)
        except ArithmeticError as error:
            # decimal.InvalidOperation once a product exceeds the context precision
            raise LedgerError(f"{entry.action}: values out of range ({type(error).__name__})") from error

    def _asset(self, platform: Platform, kind: AssetKind, code: str, currency: str | None = None) -> AssetHolding:
        asset = platform.asset(kind, code)
        if currency is not None:
            _require(
                asset.currency == currency,
                f'Currency "{currency}" does not match {kind.label.lower()} "{code}" currency "{asset.currency}"',
            )
        return asset

    def _new_platform(self, entry: NewPlatformEntry) -> list[str]:
        self._portfolio.add_platform(Platform(entry.platform))
        return []

    def _new_cash(self, entry: NewCashEntry) -> list[str]:
        self._portfolio.get_platform(entry.platform).add_holding(CashHolding(entry.currency))
        return []

    def _new_asset(self, entry: NewAssetEntry) -> list[str]:
        platform = self._portfolio.get_platform(entry.platform)
        holding_type = ASSET_HOLDING_TYPES[entry.asset_type]
        platform.add_holding(holding_type(entry.asset_code, entry.friendly_name, entry.currency))
        return []

    def _deposit(self, entry: DepositEntry) -> list[str]:
        _require_positive(entry.total_value, "Deposit value")
        cash = self._portfolio.get_platform(entry.platform).cash(entry.currency)
        return cash.update_value(entry.total_value, entry.date, CashChangeType.DEPOSIT)

    def _cash_check(self, entry: CashCheckEntry) -> list[str]:
        cash = self._portfolio.get_platform(entry.platform).cash(entry.currency)
        if cash.balance != entry.total_value:
            return [
                f'Current cash amount for currency "{entry.currency}" is {cash.balance} '
                f"but expected {entry.total_value}"
            ]
        return []

    def _asset_check(self, entry: AssetCheckEntry) -> list[str]:
        platform = self._portfolio.get_platform(entry.platform)
        asset = self._asset(platform, entry.asset_type, entry.asset_code)
        if asset.shares != entry.total_shares:
            return [
                f'Current shares amount for {entry.asset_type.label.lower()} "{entry.asset_code}" '
                f"is {asset.shares} but expected {entry.total_shares}"
            ]
        return []

    def _trade_warnings(self, entry: BuyEntry | SellEntry) -> list[str]:
        warnings: list[str] = []
        _require_positive(entry.total_shares, "Share count")
        if entry.unit_value <= 0:
            _require(entry.asset_type is not AssetKind.INDEX_FUND, f"Unit value {entry.unit_value} must be positive")
            warnings.append(f"Unit value {entry.unit_value} is not positive.")
        if entry.total_value <= 0:
            warnings.append(f"Total value {entry.total_value} is not positive.")
        _require_not_negative(entry.fee_value, "Fee")
        expected = (entry.unit_value * entry.total_shares).quantize(CENT, rounding=ROUND_HALF_UP)
        if entry.total_value != expected:
            warnings.append(
                f"Total value {entry.total_value} does not match unit value {entry.unit_value} "
                f"times share count {entry.total_shares} ({expected})."
            )
        return warnings

    def _buy(self, entry: BuyEntry) -> list[str]:
        platform = self._portfolio.get_platform(entry.platform)
        asset = self._asset(platform, entry.asset_type, entry.asset_code, entry.currency)
        cash = platform.cash(entry.currency)
        warnings = self._trade_warnings(entry)
        cash_change = -(entry.total_value + entry.fee_value)
        warnings += asset.update_shares(
            entry.total_shares,
            cash_change,
            entry.date,
            AssetChangeType.BUY,
            unit_value=entry.unit_value,
        )
        warnings += cash.update_value(cash_change, entry.date, _BUY_CASH_TYPES[entry.asset_type])
        return warnings

    def _sell(self, entry: SellEntry) -> list[str]:
        platform = self._portfolio.get_platform(entry.platform)
        asset = self._asset(platform, entry.asset_type, entry.asset_code, entry.currency)
        cash = platform.cash(entry.currency)
        warnings = self._trade_warnings(entry)
        _require(
            entry.fee_value < entry.total_value,
            f"Fee {entry.fee_value} must be smaller than total value {entry.total_value}",
        )
        cash_change = entry.total_value - entry.fee_value
        warnings += asset.update_shares(
            -entry.total_shares,
            cash_change,
            entry.date,
            AssetChangeType.SELL,
            unit_value=entry.unit_value,
        )
        warnings += cash.update_value(cash_change, entry.date, _SELL_CASH_TYPES[entry.asset_type])
        return warnings

    @staticmethod
    def _validate_income(gross: Decimal, net: Decimal, tax: Decimal) -> None:
        _require_positive(gross, "Gross value")
        _require_positive(net, "Net value")
        _require_not_negative(tax, "Tax value")
        _require(net <= gross, f"Net value {net} exceeds gross value {gross}")
        _require(tax <= gross, f"Tax value {tax} exceeds gross value {gross}")
        _require(net + tax == gross, f"Net value {net} plus tax {tax} does not equal gross value {gross}")

    def _asset_income(
        self,
        entry: DividendEntry | BondInterestEntry,
        change_type: AssetChangeType,
        cash_type: CashChangeType,
    ) -> list[str]:
        platform = self._portfolio.get_platform(entry.platform)
        asset = self._asset(platform, entry.asset_type, entry.asset_code, entry.currency)
        cash = platform.cash(entry.currency)
        self._validate_income(entry.gross_value, entry.net_value, entry.tax_value)
        warnings = asset.update_shares(Decimal(0), entry.net_value, entry.date, change_type, zero_diff=True)
        return warnings + cash.update_value(entry.net_value, entry.date, cash_type)

    def _dividend(self, entry: DividendEntry) -> list[str]:
        return self._asset_income(entry, AssetChangeType.DIVIDEND, CashChangeType.STOCK_DIVIDEND)

    def _bond_interest(self, entry: BondInterestEntry) -> list[str]:
        return self._asset_income(entry, AssetChangeType.INTEREST, CashChangeType.BOND_INTEREST)

    def _cash_interest(self, entry: CashInterestEntry) -> list[str]:
        cash = self._portfolio.get_platform(entry.platform).cash(entry.currency)
        self._validate_income(entry.gross_value, entry.net_value, entry.tax_value)
        return cash.update_value(entry.net_value, entry.date, CashChangeType.INTEREST)

    def _currency_conversion(self, entry: CurrencyConversionEntry) -> list[str]:
        _require_positive(entry.from_value, "From value")
        _require_positive(entry.to_value, "To value")
        _require_positive(entry.from_to_coefficient, "Conversion coefficient")
        _require_not_negative(entry.fee_value, "Fee")
        _require(
            entry.from_currency != entry.to_currency,
            f'Cannot convert currency "{entry.from_currency}" into itself',
        )
        platform = self._portfolio.get_platform(entry.platform)
        source = platform.cash(entry.from_currency)
        target = platform.cash(entry.to_currency)
        warnings: list[str] = []
        product = entry.from_value * entry.from_to_coefficient
        rounded = product.quantize(CENT, rounding=ROUND_HALF_UP)
        floored = product.quantize(CENT, rounding=ROUND_FLOOR)
        if entry.to_value not in (rounded, floored):
            warnings.append(
                f"To value {entry.to_value} does not match from value {entry.from_value} "
                f"times coefficient {entry.from_to_coefficient} ({rounded})."
            )
        warnings += source.update_value(
            -(entry.from_value + entry.fee_value), entry.date, CashChangeType.CURRENCY_CONVERSION
        )
        warnings += target.update_value(entry.to_value, entry.date, CashChangeType.CURRENCY_CONVERSION)
        return warnings

    def _transfer(self, entry: TransferEntry) -> list[str]:
        source = self._portfolio.get_platform(entry.from_platform).cash(entry.currency)
        target = self._portfolio.get_platform(entry.to_platform).cash(entry.currency)
        _require_positive(entry.total_value, "Transfer value")
        _require_not_negative(entry.fee_value, "Fee")
        warnings = source.update_value(-(entry.total_value + entry.fee_value), entry.date, CashChangeType.TRANSFER)
        return warnings + target.update_value(entry.total_value, entry.date, CashChangeType.TRANSFER)

    def _share_conversion(self, entry: ShareConversionEntry) -> list[str]:
        platform = self._portfolio.get_platform(entry.platform)
        asset = self._asset(platform, AssetKind.STOCK, entry.asset_code, entry.currency)
        cash = platform.cash(entry.currency)
        warnings: list[str] = []
        if entry.fee_value <= 0:
            warnings.append(f"Conversion fee {entry.fee_value} is not positive.")
        cash_change = -entry.fee_value
        warnings += asset.update_shares(
            Decimal(0),
            cash_change,
            entry.date,
            AssetChangeType.SHARE_CONVERSION,
            zero_diff=True,
        )
        warnings += cash.update_value(cash_change, entry.date, CashChangeType.STOCK_SHARE_CONVERSION)
        return warnings

    def _accounting_income(self, entry: AccountingIncomeEntry) -> list[str]:
        platform = self._portfolio.get_platform(entry.platform)
        asset = self._asset(platform, AssetKind.STOCK, entry.asset_code, entry.currency)
        cash = platform.cash(entry.currency)
        warnings: list[str] = []
        if entry.total_value <= 0:
            warnings.append(f"Accounting income {entry.total_value} is not positive.")
        warnings += asset.update_shares(
            Decimal(0),
            entry.total_value,
            entry.date,
            AssetChangeType.ACCOUNTING_INCOME,
            zero_diff=True,
        )
        warnings += cash.update_value(entry.total_value, entry.date, CashChangeType.STOCK_ACCOUNTING_INCOME)
        return warnings

    def _split(self, entry: SplitEntry) -> list[str]:
        _require_positive(entry.from_to_coefficient, "Split coefficient")
        _require_positive(entry.from_total_shares, "From share count")
        _require_positive(entry.to_total_shares, "To share count")
        platform = self._portfolio.get_platform(entry.platform)
        asset = self._asset(platform, AssetKind.STOCK, entry.asset_code, entry.currency)
        _require(
            entry.from_total_shares == asset.shares,
            f"From share count {entry.from_total_shares} does not match current share count {asset.shares}",
        )
        warnings: list[str] = []
        expected = (entry.from_total_shares * entry.from_to_coefficient).quantize(SHARE_QUANTUM, rounding=ROUND_HALF_UP)
        if entry.to_total_shares != expected:
            warnings.append(
                f"To share count {entry.to_total_shares} does not match from share count "
                f"{entry.from_total_shares} times coefficient {entry.from_to_coefficient} ({expected})."
            )
        diff = entry.to_total_shares - entry.from_total_shares
        warnings += asset.update_shares(
            diff,
            Decimal(0),
            entry.date,
            AssetChangeType.SPLIT,
            zero_cash=True,
        )
        return warnings
