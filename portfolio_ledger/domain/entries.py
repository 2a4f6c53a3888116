"""Typed ledger entries and the parser that maps raw JSON objects onto them.

Each supported (action, assetType) pair has an explicit record type and an exact set of
fields. ``parse_entry`` rejects unknown fields, missing required fields, fields that do
not belong to the pair and values that fail their own validator.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any, Callable, ClassVar, Mapping

from .fields import (
    decimal_parser,
    format_date,
    format_decimal,
    parse_asset_code,
    parse_choice,
    parse_currency,
    parse_date,
    parse_friendly_name,
    parse_notes,
    parse_platform_name,
)
from .models import AssetKind
from .results import ValidationResult

RECOGNIZED_FIELDS: tuple[str, ...] = (
    "date",
    "action",
    "platform",
    "fromPlatform",
    "toPlatform",
    "assetType",
    "assetCode",
    "currency",
    "fromCurrency",
    "toCurrency",
    "totalShares",
    "fromTotalShares",
    "toTotalShares",
    "unitValue",
    "totalValue",
    "feeValue",
    "grossValue",
    "netValue",
    "taxValue",
    "fromValue",
    "toValue",
    "fromToCoefficient",
    "friendlyName",
    "notes",
)

# Action -> whether it needs an assetType.
ACTIONS: dict[str, bool] = {
    "Check": True,
    "NewPlatform": False,
    "NewAsset": True,
    "Buy": True,
    "Deposit": True,
    "Dividend": True,
    "CurrencyConversion": True,
    "PublicToPrivateShareConversion": True,
    "Split": True,
    "Transfer": True,
    "UnspecificAccountingIncomeAction": True,
    "Sell": True,
    "Interest": True,
}

ASSET_TYPES: tuple[str, ...] = tuple(kind.value for kind in AssetKind)

OPTIONAL_FIELDS = frozenset({"notes", "feeValue"})
COMMON_FIELDS: tuple[str, ...] = ("date", "action", "notes")


@dataclass(frozen=True, kw_only=True)
class LedgerEntry:
    action: ClassVar[str]

    date: date
    notes: str | None = None


@dataclass(frozen=True, kw_only=True)
class NewPlatformEntry(LedgerEntry):
    action = "NewPlatform"

    platform: str


@dataclass(frozen=True, kw_only=True)
class NewCashEntry(LedgerEntry):
    action = "NewAsset"

    platform: str
    currency: str
    asset_type: AssetKind = AssetKind.CASH


@dataclass(frozen=True, kw_only=True)
class NewAssetEntry(LedgerEntry):
    action = "NewAsset"

    platform: str
    asset_type: AssetKind
    asset_code: str
    currency: str
    friendly_name: str


@dataclass(frozen=True, kw_only=True)
class DepositEntry(LedgerEntry):
    action = "Deposit"

    platform: str
    currency: str
    total_value: Decimal
    asset_type: AssetKind = AssetKind.CASH


@dataclass(frozen=True, kw_only=True)
class CashCheckEntry(LedgerEntry):
    action = "Check"

    platform: str
    currency: str
    total_value: Decimal
    asset_type: AssetKind = AssetKind.CASH


@dataclass(frozen=True, kw_only=True)
class AssetCheckEntry(LedgerEntry):
    action = "Check"

    platform: str
    asset_type: AssetKind
    asset_code: str
    total_shares: Decimal


@dataclass(frozen=True, kw_only=True)
class BuyEntry(LedgerEntry):
    action = "Buy"

    platform: str
    asset_type: AssetKind
    asset_code: str
    currency: str
    total_shares: Decimal
    unit_value: Decimal
    total_value: Decimal
    fee_value: Decimal = Decimal(0)


@dataclass(frozen=True, kw_only=True)
class SellEntry(LedgerEntry):
    action = "Sell"

    platform: str
    asset_type: AssetKind
    asset_code: str
    currency: str
    total_shares: Decimal
    unit_value: Decimal
    total_value: Decimal
    fee_value: Decimal = Decimal(0)


@dataclass(frozen=True, kw_only=True)
class DividendEntry(LedgerEntry):
    action = "Dividend"

    platform: str
    asset_code: str
    currency: str
    gross_value: Decimal
    net_value: Decimal
    tax_value: Decimal
    asset_type: AssetKind = AssetKind.STOCK


@dataclass(frozen=True, kw_only=True)
class BondInterestEntry(LedgerEntry):
    action = "Interest"

    platform: str
    asset_code: str
    currency: str
    gross_value: Decimal
    net_value: Decimal
    tax_value: Decimal
    asset_type: AssetKind = AssetKind.BOND


@dataclass(frozen=True, kw_only=True)
class CashInterestEntry(LedgerEntry):
    action = "Interest"

    platform: str
    currency: str
    gross_value: Decimal
    net_value: Decimal
    tax_value: Decimal
    asset_type: AssetKind = AssetKind.CASH


@dataclass(frozen=True, kw_only=True)
class CurrencyConversionEntry(LedgerEntry):
    action = "CurrencyConversion"

    platform: str
    from_currency: str
    to_currency: str
    from_value: Decimal
    to_value: Decimal
    from_to_coefficient: Decimal
    fee_value: Decimal = Decimal(0)
    asset_type: AssetKind = AssetKind.CASH


@dataclass(frozen=True, kw_only=True)
class TransferEntry(LedgerEntry):
    action = "Transfer"

    from_platform: str
    to_platform: str
    currency: str
    total_value: Decimal
    fee_value: Decimal = Decimal(0)
    asset_type: AssetKind = AssetKind.CASH


@dataclass(frozen=True, kw_only=True)
class ShareConversionEntry(LedgerEntry):
    """Conversion of publicly traded shares into private ones; only a fee changes hands."""

    action = "PublicToPrivateShareConversion"

    platform: str
    asset_code: str
    currency: str
    fee_value: Decimal = Decimal(0)
    asset_type: AssetKind = AssetKind.STOCK


@dataclass(frozen=True, kw_only=True)
class AccountingIncomeEntry(LedgerEntry):
    """Cash paid out by a company without touching the share count, e.g. a nominal value
    reduction. Tax is not withheld at payout."""

    action = "UnspecificAccountingIncomeAction"

    platform: str
    asset_code: str
    currency: str
    total_value: Decimal
    asset_type: AssetKind = AssetKind.STOCK


@dataclass(frozen=True, kw_only=True)
class SplitEntry(LedgerEntry):
    action = "Split"

    platform: str
    asset_code: str
    currency: str
    from_total_shares: Decimal
    to_total_shares: Decimal
    from_to_coefficient: Decimal
    asset_type: AssetKind = AssetKind.STOCK


_TRADE_WITH_FEE = ("platform", "assetType", "assetCode", "currency", "totalShares", "unitValue", "totalValue", "feeValue")
_TRADE_WITHOUT_FEE = _TRADE_WITH_FEE[:-1]
_NEW_ASSET = ("platform", "assetType", "assetCode", "currency", "friendlyName")
_ASSET_CHECK = ("platform", "assetType", "assetCode", "totalShares")
_INCOME = ("platform", "assetType", "assetCode", "currency", "grossValue", "netValue", "taxValue")

ENTRY_SCHEMAS: dict[tuple[str, str | None], tuple[type[LedgerEntry], tuple[str, ...]]] = {
    ("NewPlatform", None): (NewPlatformEntry, ("platform",)),
    ("NewAsset", "Cash"): (NewCashEntry, ("platform", "assetType", "currency")),
    ("NewAsset", "Stock"): (NewAssetEntry, _NEW_ASSET),
    ("NewAsset", "Bond"): (NewAssetEntry, _NEW_ASSET),
    ("NewAsset", "IndexFund"): (NewAssetEntry, _NEW_ASSET),
    ("Deposit", "Cash"): (DepositEntry, ("platform", "assetType", "currency", "totalValue")),
    ("Check", "Cash"): (CashCheckEntry, ("platform", "assetType", "currency", "totalValue")),
    ("Check", "Stock"): (AssetCheckEntry, _ASSET_CHECK),
    ("Check", "Bond"): (AssetCheckEntry, _ASSET_CHECK),
    ("Check", "IndexFund"): (AssetCheckEntry, _ASSET_CHECK),
    ("Buy", "Stock"): (BuyEntry, _TRADE_WITH_FEE),
    ("Buy", "Bond"): (BuyEntry, _TRADE_WITH_FEE),
    ("Buy", "IndexFund"): (BuyEntry, _TRADE_WITHOUT_FEE),
    ("Sell", "Stock"): (SellEntry, _TRADE_WITH_FEE),
    ("Sell", "Bond"): (SellEntry, _TRADE_WITH_FEE),
    ("Sell", "IndexFund"): (SellEntry, _TRADE_WITHOUT_FEE),
    ("Dividend", "Stock"): (DividendEntry, _INCOME),
    ("Interest", "Bond"): (BondInterestEntry, _INCOME),
    ("Interest", "Cash"): (
        CashInterestEntry,
        ("platform", "assetType", "currency", "grossValue", "netValue", "taxValue"),
    ),
    ("CurrencyConversion", "Cash"): (
        CurrencyConversionEntry,
        ("platform", "assetType", "fromCurrency", "toCurrency", "fromValue", "toValue", "fromToCoefficient", "feeValue"),
    ),
    ("Transfer", "Cash"): (
        TransferEntry,
        ("fromPlatform", "toPlatform", "assetType", "currency", "totalValue", "feeValue"),
    ),
    ("PublicToPrivateShareConversion", "Stock"): (
        ShareConversionEntry,
        ("platform", "assetType", "assetCode", "currency", "feeValue"),
    ),
    ("UnspecificAccountingIncomeAction", "Stock"): (
        AccountingIncomeEntry,
        ("platform", "assetType", "assetCode", "currency", "totalValue"),
    ),
    ("Split", "Stock"): (
        SplitEntry,
        ("platform", "assetType", "assetCode", "currency", "fromTotalShares", "toTotalShares", "fromToCoefficient"),
    ),
}


def _parse_asset_type(value: object) -> ValidationResult[AssetKind]:
    return parse_choice(ASSET_TYPES, "Asset type")(value).and_then(
        lambda name: ValidationResult.success(AssetKind(name))
    )


FIELD_PARSERS: dict[str, Callable[[object], ValidationResult[Any]]] = {
    "date": parse_date,
    "action": parse_choice(tuple(ACTIONS), "Action"),
    "platform": parse_platform_name,
    "fromPlatform": parse_platform_name,
    "toPlatform": parse_platform_name,
    "assetType": _parse_asset_type,
    "assetCode": parse_asset_code,
    "currency": parse_currency,
    "fromCurrency": parse_currency,
    "toCurrency": parse_currency,
    "totalShares": decimal_parser(9),
    "fromTotalShares": decimal_parser(4),
    "toTotalShares": decimal_parser(4),
    "unitValue": decimal_parser(8),
    "totalValue": decimal_parser(4),
    "feeValue": decimal_parser(2),
    "grossValue": decimal_parser(4),
    "netValue": decimal_parser(4),
    "taxValue": decimal_parser(4),
    "fromValue": decimal_parser(4),
    "toValue": decimal_parser(4),
    "fromToCoefficient": decimal_parser(5),
    "friendlyName": parse_friendly_name,
    "notes": parse_notes,
}


def attribute_name(field_name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", field_name).lower()


def expected_fields(action: str, asset_type: str | None) -> tuple[str, ...] | None:
    schema = ENTRY_SCHEMAS.get((action, asset_type))
    if schema is None:
        return None
    return COMMON_FIELDS + schema[1]


def parse_entry(raw: object) -> ValidationResult[LedgerEntry]:
    """Map a raw JSON object onto its typed entry, or explain why it cannot be."""
    if not isinstance(raw, Mapping):
        return ValidationResult.failure("Not a JSON object")
    for key in raw:
        if key not in RECOGNIZED_FIELDS:
            return ValidationResult.failure(f'Unhandled property: "{key}"')

    if "action" not in raw:
        return ValidationResult.failure('Missing required field "action"')
    action_result = FIELD_PARSERS["action"](raw["action"]).extend("action")
    if not action_result.ok:
        return action_result
    action = action_result.value
    asset_type: str | None = None
    if ACTIONS[action]:
        if "assetType" not in raw:
            return ValidationResult.failure('Missing required field "assetType"')
        type_result = _parse_asset_type(raw["assetType"]).extend("assetType")
        if not type_result.ok:
            return type_result
        asset_type = type_result.value.value

    schema = ENTRY_SCHEMAS.get((action, asset_type))
    if schema is None:
        return ValidationResult.failure(f'Action "{action}" is not supported for "{asset_type}"')
    entry_type, _ = schema
    allowed = expected_fields(action, asset_type) or ()
    for key in raw:
        if key not in allowed:
            return ValidationResult.failure(f'Property "{key}" is unexpected')

    values: dict[str, Any] = {}
    for field_name in allowed:
        if field_name == "action":
            continue
        if field_name not in raw:
            if field_name in OPTIONAL_FIELDS:
                continue
            return ValidationResult.failure(f'Missing required field: "{field_name}"')
        result = FIELD_PARSERS[field_name](raw[field_name]).extend(field_name)
        if not result.ok:
            return result
        values[attribute_name(field_name)] = result.value
    return ValidationResult.success(entry_type(**values))


def serialize_entry(entry: LedgerEntry) -> dict[str, Any]:
    """Canonical raw form of an entry; parsing it again yields an equal entry."""
    asset_type = getattr(entry, "asset_type", None)
    field_names = expected_fields(entry.action, asset_type.value if asset_type else None) or ()
    attributes = {item.name for item in fields(entry)}
    raw: dict[str, Any] = {}
    for field_name in field_names:
        if field_name == "action":
            raw["action"] = entry.action
            continue
        name = attribute_name(field_name)
        if name not in attributes:
            continue
        value = getattr(entry, name)
        if value is None:
            continue
        if isinstance(value, AssetKind):
            raw[field_name] = value.value
        elif isinstance(value, Decimal):
            raw[field_name] = format_decimal(value)
        elif isinstance(value, date):
            raw[field_name] = format_date(value)
        else:
            raw[field_name] = value
    return raw
