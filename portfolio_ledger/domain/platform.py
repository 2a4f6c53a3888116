"""Platform aggregate: the holdings kept at one broker, bank or exchange."""
from __future__ import annotations

from typing import Iterator, cast

from .holdings import AssetHolding, CashHolding, Holding, validate_non_blank
from .models import AssetKind
from .results import LedgerError, ValidationResult


class Platform:
    def __init__(self, name: str) -> None:
        validate_non_blank(name).get_or_raise("name")
        self._name = name
        self._holdings: dict[AssetKind, dict[str, Holding]] = {kind: {} for kind in AssetKind}

    @property
    def name(self) -> str:
        return self._name

    def has_holding(self, kind: AssetKind, code: str) -> bool:
        return code in self._holdings[kind]

    def get_holding(self, kind: AssetKind, code: str) -> Holding:
        holding = self._holdings[kind].get(code)
        if holding is None:
            raise LedgerError(f'No {kind.label.lower()} holding "{code}" on platform "{self._name}"')
        return holding

    def cash(self, currency: str) -> CashHolding:
        return cast(CashHolding, self.get_holding(AssetKind.CASH, currency))

    def asset(self, kind: AssetKind, code: str) -> AssetHolding:
        if kind is AssetKind.CASH:
            raise LedgerError(f'"{code}" is a cash holding, not an asset')
        return cast(AssetHolding, self.get_holding(kind, code))

    def validate_code_unique(self, code: str) -> ValidationResult[None]:
        for kind, holdings in self._holdings.items():
            if code in holdings:
                return ValidationResult.failure(f'{kind.label} holding "{code}" exists')
        return ValidationResult.success()

    def validate_name_unique(self, name: str) -> ValidationResult[None]:
        def check_unique(_: object) -> ValidationResult[None]:
            for holding in self.holdings():
                if holding.kind is not AssetKind.CASH and holding.friendly_name == name:
                    return ValidationResult.failure(f'{holding.kind.label} holding named "{name}" exists')
            return ValidationResult.success()

        return validate_non_blank(name).extend("name").and_then(check_unique)

    def add_holding(self, holding: Holding) -> None:
        self.validate_code_unique(holding.code).get_or_raise(f'Platform "{self._name}"')
        if holding.kind is not AssetKind.CASH:
            self.validate_name_unique(holding.friendly_name).get_or_raise(f'Platform "{self._name}"')
        self._holdings[holding.kind][holding.code] = holding

    def holdings(self, kind: AssetKind | None = None) -> Iterator[Holding]:
        kinds = [kind] if kind is not None else list(AssetKind)
        for current in kinds:
            yield from self._holdings[current].values()
