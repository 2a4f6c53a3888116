"""Holding state machines: one cash balance or asset position on one platform.

Balances only move through signed deltas recorded in the holding's history, so the
history always sums to the current balance. A holding accumulates changes while the
ledger is replayed and is finalized exactly once afterwards.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import ClassVar, Mapping, Union

from portfolio_ledger.config import SETTINGS, XirrSettings

from .history import (
    AssetChangeRecord,
    AssetChangeType,
    CashChangeRecord,
    CashChangeType,
    validate_history_chronological,
    validate_history_field_sum,
    validate_next_date,
)
from .models import AssetKind, PriceQuote
from .results import InvariantViolation, ValidationResult
from .xirr import calculate_xirr

logger = logging.getLogger(__name__)


def validate_non_blank(value: object) -> ValidationResult[str]:
    if not isinstance(value, str):
        return ValidationResult.failure("Not a string")
    if not value.strip():
        return ValidationResult.failure("Blank string")
    return ValidationResult.success(value)


def validate_non_zero(value: Decimal) -> ValidationResult[Decimal]:
    if not value.is_finite():
        return ValidationResult.failure("Not finite")
    if value.is_zero():
        return ValidationResult.failure("Zero")
    return ValidationResult.success(value)


def validate_zero(value: Decimal) -> ValidationResult[Decimal]:
    if not value.is_zero():
        return ValidationResult.failure(f"Expected zero, got {value}")
    return ValidationResult.success(value)


class CashHolding:
    kind: ClassVar[AssetKind] = AssetKind.CASH

    def __init__(self, currency: str) -> None:
        validate_non_blank(currency).get_or_raise("currency")
        self._currency = currency
        self._balance = Decimal(0)
        self._history: list[CashChangeRecord] = []
        self._finalized = False

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def code(self) -> str:
        return self._currency

    @property
    def friendly_name(self) -> str:
        return self._currency

    @property
    def balance(self) -> Decimal:
        return self._balance

    @property
    def history(self) -> tuple[CashChangeRecord, ...]:
        return tuple(self._history)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def update_value(self, diff: Decimal, when: date, change_type: CashChangeType) -> list[str]:
        if self._finalized:
            raise InvariantViolation(f'Cash "{self._currency}" is already finalized')
        validate_non_zero(diff).get_or_raise("diff")
        validate_next_date(self._history, when).get_or_raise(f'Cash "{self._currency}"')
        self._balance += diff
        self._history.append(CashChangeRecord(when, diff, change_type))
        if self._balance < 0:
            return [f'Cash "{self._currency}" value {self._balance} has become negative.']
        return []

    def validate(self) -> ValidationResult[None]:
        return validate_history_chronological(self._history).and_then(
            lambda _: validate_history_field_sum(self._history, "value_change", self._balance)
        )

    def validate_and_finalize(self) -> None:
        if self._finalized:
            raise InvariantViolation(f'Cash "{self._currency}" is already finalized')
        result = self.validate()
        if not result.ok:
            raise InvariantViolation(f'Cash "{self._currency}": {result.message}')
        self._finalized = True


class AssetHolding:
    """Common bookkeeping of stock, bond and index fund positions."""

    kind: ClassVar[AssetKind]
    # Change type -> cash category it accumulates into; None means no cash is allowed.
    categories: ClassVar[Mapping[AssetChangeType, str | None]]

    def __init__(self, code: str, friendly_name: str, currency: str) -> None:
        validate_non_blank(code).get_or_raise("code")
        validate_non_blank(friendly_name).get_or_raise("friendlyName")
        validate_non_blank(currency).get_or_raise("currency")
        self._code = code
        self._friendly_name = friendly_name
        self._currency = currency
        self._shares = Decimal(0)
        self._cash = {
            "buy": Decimal(0),
            "sell": Decimal(0),
            "income": Decimal(0),
            "interest": Decimal(0),
            "other": Decimal(0),
        }
        self._total_cash = Decimal(0)
        self._latest_unit_value: Decimal | None = None
        self._latest_value_date: date | None = None
        self._total_value: Decimal | None = None
        self._xirr: float | None = None
        self._xirr_str: str | None = None
        self._history: list[AssetChangeRecord] = []
        self._finalized = False

    @property
    def code(self) -> str:
        return self._code

    @property
    def friendly_name(self) -> str:
        return self._friendly_name

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def shares(self) -> Decimal:
        return self._shares

    @property
    def buy_cash(self) -> Decimal:
        return self._cash["buy"]

    @property
    def sell_cash(self) -> Decimal:
        return self._cash["sell"]

    @property
    def income_cash(self) -> Decimal:
        return self._cash["income"]

    @property
    def interest_cash(self) -> Decimal:
        return self._cash["interest"]

    @property
    def other_cash(self) -> Decimal:
        return self._cash["other"]

    @property
    def total_cash(self) -> Decimal:
        return self._total_cash

    @property
    def latest_unit_value(self) -> Decimal | None:
        return self._latest_unit_value

    @property
    def latest_value_date(self) -> date | None:
        return self._latest_value_date

    @property
    def total_value(self) -> Decimal | None:
        return self._total_value

    @property
    def xirr(self) -> float | None:
        return self._xirr

    @property
    def xirr_str(self) -> str | None:
        return self._xirr_str

    @property
    def history(self) -> tuple[AssetChangeRecord, ...]:
        return tuple(self._history)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def category_total(self) -> Decimal:
        return (
            -self._cash["buy"]
            + self._cash["sell"]
            + self._cash["income"]
            + self._cash["interest"]
            + self._cash["other"]
        )

    def update_shares(
        self,
        diff: Decimal,
        cash_change: Decimal,
        when: date,
        change_type: AssetChangeType,
        zero_diff: bool = False,
        zero_cash: bool = False,
        unit_value: Decimal | None = None,
    ) -> list[str]:
        """Apply a signed share delta and the cash it moved.

        ``zero_diff``/``zero_cash`` mark operations that must leave shares/cash untouched;
        otherwise the corresponding delta must be non-zero.
        """
        if self._finalized:
            raise InvariantViolation(f'Asset "{self._friendly_name}" is already finalized')
        if change_type not in self.categories:
            ValidationResult.failure(
                f"{self.kind.label} does not support {change_type.value} changes"
            ).get_or_raise(f'Asset "{self._friendly_name}"')
        (validate_zero(diff) if zero_diff else validate_non_zero(diff)).get_or_raise("diff")
        (validate_zero(cash_change) if zero_cash else validate_non_zero(cash_change)).get_or_raise("cashChange")
        if change_type in (AssetChangeType.BUY, AssetChangeType.SELL):
            if unit_value is None:
                ValidationResult.failure("Missing").get_or_raise("unitValue")
            validate_non_zero(unit_value).get_or_raise("unitValue")
        elif unit_value is not None:
            ValidationResult.failure(f"Unexpected for {change_type.value}").get_or_raise("unitValue")
        category = self.categories[change_type]
        if category is None:
            validate_zero(cash_change).get_or_raise("cashChange")
        validate_next_date(self._history, when).get_or_raise(f'Asset "{self._friendly_name}"')

        self._shares += diff
        if category == "buy":
            self._cash["buy"] -= cash_change
        elif category is not None:
            self._cash[category] += cash_change
        self._total_cash += cash_change
        if unit_value is not None:
            self._latest_unit_value = unit_value
            self._latest_value_date = when
        self._history.append(AssetChangeRecord(when, diff, cash_change, change_type))
        if self._shares < 0:
            return [f'Asset "{self._friendly_name}" count {self._shares} has become negative.']
        return []

    def validate(self) -> ValidationResult[None]:
        result = (
            validate_history_chronological(self._history)
            .and_then(lambda _: validate_history_field_sum(self._history, "value_change", self._shares))
            .and_then(lambda _: validate_history_field_sum(self._history, "cash_change", self._total_cash))
        )
        if result.ok and self.category_total() != self._total_cash:
            return ValidationResult.failure(
                f"Cash categories sum {self.category_total()} does not match total cash {self._total_cash}"
            )
        return result

    def validate_and_finalize(
        self,
        quote: PriceQuote | None = None,
        as_of: date | None = None,
        xirr_settings: XirrSettings | None = None,
    ) -> None:
        if self._finalized:
            raise InvariantViolation(f'Asset "{self._friendly_name}" is already finalized')
        result = self.validate()
        if not result.ok:
            raise InvariantViolation(f'Asset "{self._friendly_name}": {result.message}')
        as_of = as_of or date.today()
        if quote is not None and self._shares > 0:
            quote_date = quote.observed_at.date()
            if self._latest_value_date is None or quote_date > self._latest_value_date:
                self._latest_unit_value = quote.price
                self._latest_value_date = quote_date
        if self._history:
            self._finalize_valuation(as_of, xirr_settings or SETTINGS.xirr)
        self._finalized = True

    def _finalize_valuation(self, as_of: date, settings: XirrSettings) -> None:
        if self._latest_unit_value is None:
            self._xirr_str = "XIRR calculation failed: no known unit value"
            return
        self._total_value = self._shares * self._latest_unit_value
        flows = [(record.date, record.cash_change) for record in self._history]
        flows.append((as_of, self._total_value))
        result = calculate_xirr(
            flows,
            lower=settings.lower_rate,
            upper=settings.upper_rate,
            budget=settings.evaluation_budget,
            tolerance=settings.tolerance,
            max_iterations=settings.max_iterations,
        ).extend("XIRR calculation failed")
        if result.ok:
            self._xirr = result.value
            self._xirr_str = f"{result.value:.2%}"
        else:
            logger.info("%s %s: %s", self.kind.label, self._code, result.message)
            self._xirr_str = result.message


class StockHolding(AssetHolding):
    kind = AssetKind.STOCK
    categories = {
        AssetChangeType.BUY: "buy",
        AssetChangeType.SELL: "sell",
        AssetChangeType.DIVIDEND: "income",
        AssetChangeType.ACCOUNTING_INCOME: "income",
        AssetChangeType.SHARE_CONVERSION: "other",
        AssetChangeType.SPLIT: None,
    }


class BondHolding(AssetHolding):
    kind = AssetKind.BOND
    categories = {
        AssetChangeType.BUY: "buy",
        AssetChangeType.SELL: "sell",
        AssetChangeType.INTEREST: "interest",
    }


class IndexFundHolding(AssetHolding):
    kind = AssetKind.INDEX_FUND
    categories = {
        AssetChangeType.BUY: "buy",
        AssetChangeType.SELL: "sell",
    }


Holding = Union[CashHolding, StockHolding, BondHolding, IndexFundHolding]

ASSET_HOLDING_TYPES: dict[AssetKind, type[AssetHolding]] = {
    AssetKind.STOCK: StockHolding,
    AssetKind.BOND: BondHolding,
    AssetKind.INDEX_FUND: IndexFundHolding,
}
