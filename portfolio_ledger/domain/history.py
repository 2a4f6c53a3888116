"""Immutable change records kept by every holding, plus aggregate checks over them."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Sequence, Union

from .results import ValidationResult


class CashChangeType(str, Enum):
    DEPOSIT = "CASH_DEPOSIT"
    TRANSFER = "CASH_TRANSFER"
    CURRENCY_CONVERSION = "CASH_CURRENCY_CONVERSION"
    INTEREST = "CASH_INTEREST"
    STOCK_BUY = "STOCK_BUY"
    STOCK_SELL = "STOCK_SELL"
    STOCK_DIVIDEND = "STOCK_DIVIDEND"
    STOCK_SHARE_CONVERSION = "STOCK_PUBLIC_TO_PRIVATE_SHARE_CONVERSION"
    STOCK_ACCOUNTING_INCOME = "STOCK_UNSPECIFIC_ACCOUNTING_INCOME"
    BOND_BUY = "BOND_BUY"
    BOND_SELL = "BOND_SELL"
    BOND_INTEREST = "BOND_INTEREST"
    INDEX_FUND_BUY = "INDEX_FUND_BUY"
    INDEX_FUND_SELL = "INDEX_FUND_SELL"


class AssetChangeType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND = "DIVIDEND"
    INTEREST = "INTEREST"
    SHARE_CONVERSION = "PUBLIC_TO_PRIVATE_SHARE_CONVERSION"
    ACCOUNTING_INCOME = "UNSPECIFIC_ACCOUNTING_INCOME"
    SPLIT = "STOCK_SPLIT"


@dataclass(frozen=True)
class CashChangeRecord:
    date: date
    value_change: Decimal
    change_type: CashChangeType


@dataclass(frozen=True)
class AssetChangeRecord:
    """Share count change of a stock, bond or index fund together with the cash it moved."""

    date: date
    value_change: Decimal
    cash_change: Decimal
    change_type: AssetChangeType


ChangeRecord = Union[CashChangeRecord, AssetChangeRecord]


def history_field_sum(history: Sequence[ChangeRecord], field_name: str) -> Decimal:
    return sum((getattr(record, field_name) for record in history), Decimal(0))


def validate_history_chronological(history: Sequence[ChangeRecord]) -> ValidationResult[None]:
    for previous, current in zip(history, history[1:]):
        if current.date < previous.date:
            return ValidationResult.failure(
                f"History is not in chronological order: {current.date} follows {previous.date}"
            )
    return ValidationResult.success()


def validate_history_field_sum(
    history: Sequence[ChangeRecord], field_name: str, expected: Decimal
) -> ValidationResult[None]:
    total = history_field_sum(history, field_name)
    if total != expected:
        return ValidationResult.failure(
            f'History "{field_name}" sum {total} does not match expected sum {expected}'
        )
    return ValidationResult.success()


def validate_next_date(history: Sequence[ChangeRecord], when: date) -> ValidationResult[None]:
    if history and when < history[-1].date:
        return ValidationResult.failure(f"Date {when} is earlier than the last recorded change {history[-1].date}")
    return ValidationResult.success()
