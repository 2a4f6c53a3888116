import pytest

from portfolio_ledger.domain.results import EntryIssue, LedgerError, ValidationResult


def test_success_carries_value_and_warnings():
    result = ValidationResult.success(5, warnings=["careful"])

    assert result.ok
    assert result.value == 5
    assert result.warnings == ("careful",)
    assert result.get_or_raise() == 5


def test_failure_raises_ledger_error_with_prefix():
    result = ValidationResult.failure("Blank string")

    assert not result.ok
    with pytest.raises(LedgerError, match="^currency: Blank string$"):
        result.get_or_raise("currency")


def test_and_then_concatenates_warnings():
    result = ValidationResult.success(2, ["first"]).and_then(
        lambda value: ValidationResult.success(value * 3, ["second"])
    )

    assert result.value == 6
    assert result.warnings == ("first", "second")


def test_and_then_short_circuits_on_failure():
    calls = []

    result = ValidationResult.failure("broken").and_then(lambda value: calls.append(value))

    assert not result.ok
    assert result.message == "broken"
    assert calls == []


def test_extend_only_touches_failures():
    assert ValidationResult.failure("Zero").extend("diff").message == "diff: Zero"
    assert ValidationResult.success(1).extend("diff").message is None


def test_with_warnings_appends():
    result = ValidationResult.success(None, ["a"]).with_warnings(["b"])

    assert result.warnings == ("a", "b")


def test_entry_issue_texts():
    warning = EntryIssue(3, ("one.", "two."))
    fatal = EntryIssue(4, ("boom",), fatal=True)

    assert warning.text == "You have 2 warning(s): one. two."
    assert fatal.text == "Critical error occurred, further processing stopped: boom"
