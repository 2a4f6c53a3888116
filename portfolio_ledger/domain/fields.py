"""Per-field validators for raw ledger entries.

Every validator takes the raw JSON value and returns a ``ValidationResult`` holding the
parsed value; formatters turn parsed values back into their canonical raw form.
"""
from __future__ import annotations

import math
import re
from datetime import date
from decimal import Decimal
from typing import Callable

from .results import ValidationResult

MAX_NAME_LENGTH = 50

_DATE_PATTERN = re.compile(r"^(\d{4})\.(\d{2})\.(\d{2})$")
_DECIMAL_PATTERN = re.compile(r"^([+-]?)(\d+)(?:[.,](\d+))?$")
_PLATFORM_PATTERN = re.compile(r"^[\w .&()'-]+$")
_CURRENCY_PATTERN = re.compile(r"^[A-Z0-9]+$")
_ASSET_CODE_PATTERN = re.compile(r"^[A-Za-z0-9._:^=-]+$")
_FRIENDLY_NAME_PATTERN = re.compile(r"^[\w .,&()'/+-]+$")


def parse_date(value: object) -> ValidationResult[date]:
    if not isinstance(value, str):
        return ValidationResult.failure("Not a string")
    match = _DATE_PATTERN.match(value)
    if match is None:
        return ValidationResult.failure(f'"{value}" does not match format YYYY.MM.DD')
    year, month, day = (int(part) for part in match.groups())
    try:
        return ValidationResult.success(date(year, month, day))
    except ValueError:
        return ValidationResult.failure(f'"{value}" is not a real calendar date')


def format_date(value: date) -> str:
    return f"{value.year:04d}.{value.month:02d}.{value.day:02d}"


def parse_decimal(value: object, max_places: int) -> ValidationResult[Decimal]:
    if isinstance(value, bool):
        return ValidationResult.failure("Not a number")
    if isinstance(value, int):
        text = str(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            return ValidationResult.failure("Not finite")
        text = repr(value)
    elif isinstance(value, str):
        text = value.strip()
    else:
        return ValidationResult.failure("Not a string or number")
    match = _DECIMAL_PATTERN.match(text)
    if match is None:
        return ValidationResult.failure(f'"{value}" is not a decimal number')
    sign, whole, fraction = match.groups()
    if fraction and len(fraction) > max_places:
        return ValidationResult.failure(f'"{value}" has more than {max_places} decimal places')
    return ValidationResult.success(Decimal(f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"))


def format_decimal(value: Decimal) -> str:
    return format(value, "f")


def _name_validator(pattern: re.Pattern[str], what: str) -> Callable[[object], ValidationResult[str]]:
    def validate(value: object) -> ValidationResult[str]:
        if not isinstance(value, str):
            return ValidationResult.failure("Not a string")
        if not value.strip():
            return ValidationResult.failure("Blank string")
        if len(value) > MAX_NAME_LENGTH:
            return ValidationResult.failure(f"{what} longer than {MAX_NAME_LENGTH} characters")
        if value != value.strip():
            return ValidationResult.failure(f"{what} has leading or trailing whitespace")
        if pattern.match(value) is None:
            return ValidationResult.failure(f'{what} "{value}" contains unsupported characters')
        return ValidationResult.success(value)

    return validate


parse_platform_name = _name_validator(_PLATFORM_PATTERN, "Platform name")
parse_currency = _name_validator(_CURRENCY_PATTERN, "Currency")
parse_asset_code = _name_validator(_ASSET_CODE_PATTERN, "Asset code")
parse_friendly_name = _name_validator(_FRIENDLY_NAME_PATTERN, "Friendly name")


def parse_notes(value: object) -> ValidationResult[str]:
    if not isinstance(value, str):
        return ValidationResult.failure("Not a string")
    return ValidationResult.success(value)


def parse_choice(choices: tuple[str, ...], what: str) -> Callable[[object], ValidationResult[str]]:
    def validate(value: object) -> ValidationResult[str]:
        if not isinstance(value, str):
            return ValidationResult.failure("Not a string")
        if value not in choices:
            return ValidationResult.failure(f'{what} "{value}" is not supported')
        return ValidationResult.success(value)

    return validate


def decimal_parser(max_places: int) -> Callable[[object], ValidationResult[Decimal]]:
    return lambda value: parse_decimal(value, max_places)
