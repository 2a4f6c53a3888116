"""Domain-level results and error types for ledger replay."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable, Generic, Iterable, Mapping, TypeVar

if TYPE_CHECKING:
    from .portfolio import Portfolio

T = TypeVar("T")
U = TypeVar("U")


class PortfolioError(Exception):
    """Base class for every error raised by the ledger replay."""


class LedgerError(PortfolioError):
    """Fatal condition caused by ledger input; stops processing at the offending entry."""


class InvariantViolation(PortfolioError):
    """Internal bookkeeping breach that valid input can never produce."""


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    """Either a success carrying a value and warnings, or a failure carrying a message.

    Warnings never turn a success into a failure; callers decide whether they matter.
    """

    value: T | None = None
    message: str | None = None
    warnings: tuple[str, ...] = ()

    @classmethod
    def success(cls, value: T | None = None, warnings: Iterable[str] = ()) -> ValidationResult[T]:
        return cls(value=value, warnings=tuple(warnings))

    @classmethod
    def failure(cls, message: str) -> ValidationResult[T]:
        return cls(message=message)

    @property
    def ok(self) -> bool:
        return self.message is None

    def and_then(self, check: Callable[[T | None], ValidationResult[U]]) -> ValidationResult[U]:
        """Run ``check`` on the value only when this result succeeded, keeping all warnings."""
        if not self.ok:
            return self  # type: ignore[return-value]
        following = check(self.value)
        return replace(following, warnings=self.warnings + following.warnings)

    def extend(self, prefix: str) -> ValidationResult[T]:
        if self.ok:
            return self
        return replace(self, message=f"{prefix}: {self.message}")

    def with_warnings(self, warnings: Iterable[str]) -> ValidationResult[T]:
        return replace(self, warnings=self.warnings + tuple(warnings))

    def get_or_raise(self, prefix: str | None = None) -> T | None:
        if not self.ok:
            message = f"{prefix}: {self.message}" if prefix else str(self.message)
            raise LedgerError(message)
        return self.value


@dataclass(frozen=True)
class EntryIssue:
    """Warnings or the fatal error recorded against one ledger entry."""

    index: int
    messages: tuple[str, ...]
    fatal: bool = False

    @property
    def text(self) -> str:
        if self.fatal:
            return f"Critical error occurred, further processing stopped: {' '.join(self.messages)}"
        return f"You have {len(self.messages)} warning(s): {' '.join(self.messages)}"


@dataclass(frozen=True)
class ReplayReport:
    portfolio: Portfolio
    issues: Mapping[int, EntryIssue] = field(default_factory=dict)
    fatal: bool = False
    processed: int = 0

    def has_issues(self) -> bool:
        return bool(self.issues)

    def issue_texts(self) -> dict[int, str]:
        return {index: issue.text for index, issue in self.issues.items()}

    def status_message(self) -> str:
        if not self.issues:
            return "All good."
        if self.fatal:
            return (
                f"You have {len(self.issues)} issue(s), where the last detected issue is a critical error. "
                "The log processing is incomplete and calculated data partial! "
                "Please fix the issue and reload the log."
            )
        return (
            f"You have {len(self.issues)} warning(s). The entire log has been processed and it is safe "
            "to continue if you choose to ignore the warnings."
        )
