"""Tabular views of a replay: summary, per-holding history and the annotated ledger."""
from __future__ import annotations

import csv
import html
import io
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Sequence

import pandas as pd

from portfolio_ledger.domain.entries import RECOGNIZED_FIELDS
from portfolio_ledger.domain.fields import format_date, format_decimal
from portfolio_ledger.domain.history import AssetChangeRecord
from portfolio_ledger.domain.holdings import Holding
from portfolio_ledger.domain.portfolio import Portfolio
from portfolio_ledger.domain.results import EntryIssue, ReplayReport

SUMMARY_COLUMNS = (
    "Platform",
    "Asset type",
    "Name",
    "Code",
    "Currency",
    "Count",
    "Current value",
    "Value date",
    "Buy cash",
    "Sell cash",
    "Income cash",
    "Other cash",
    "Total cash",
    "XIRR",
)


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format_decimal(value)
    if isinstance(value, date):
        return format_date(value)
    return str(value)


def summary_rows(portfolio: Portfolio) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for record in portfolio.summary():
        values = (
            record.platform,
            record.asset_type.label,
            record.friendly_name,
            record.code,
            record.currency,
            record.count,
            record.current_value,
            record.value_date,
            record.buy_cash,
            record.sell_cash,
            record.income_cash,
            record.other_cash,
            record.total_cash,
            record.xirr,
        )
        rows.append({column: _text(value) for column, value in zip(SUMMARY_COLUMNS, values)})
    return rows


def history_rows(holding: Holding) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for record in holding.history:
        row = {"Date": _text(record.date), "Type": record.change_type.value}
        if isinstance(record, AssetChangeRecord):
            row["Share change"] = _text(record.value_change)
            row["Cash change"] = _text(record.cash_change)
        else:
            row["Value change"] = _text(record.value_change)
        rows.append(row)
    return rows


def ledger_rows(entries: Sequence[Any], issues: Mapping[int, EntryIssue]) -> list[dict[str, str]]:
    """One row per raw entry, with only the fields used anywhere in the ledger."""
    present = [
        field
        for field in RECOGNIZED_FIELDS
        if any(isinstance(entry, Mapping) and field in entry for entry in entries)
    ]
    rows: list[dict[str, str]] = []
    for index, entry in enumerate(entries):
        raw = entry if isinstance(entry, Mapping) else {}
        row = {"#": str(index + 1)}
        row.update({field: _text(raw.get(field)) for field in present})
        issue = issues.get(index)
        row["Issue"] = issue.text if issue else ""
        rows.append(row)
    return rows


def rows_to_frame(rows: Sequence[Mapping[str, str]]) -> pd.DataFrame:
    return pd.DataFrame(list(rows))


def render_csv(rows: Sequence[Mapping[str, str]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()) if rows else [])
    if rows:
        writer.writeheader()
        writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def _html_table(rows: Sequence[Mapping[str, str]]) -> str:
    header = "".join(f"<th>{html.escape(column)}</th>" for column in rows[0].keys())
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(value)}</td>" for value in row.values()) + "</tr>" for row in rows
    )
    return f"<table><thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>"


def render_html(report: ReplayReport, entries: Sequence[Any] | None = None) -> str:
    parts = [f"<p>{html.escape(report.status_message())}</p>"]
    rows = summary_rows(report.portfolio)
    parts.append(_html_table(rows) if rows else "<p>No holdings.</p>")
    if entries is not None:
        log = ledger_rows(entries, report.issues)
        if log:
            parts.append(_html_table(log))
    return "".join(parts)
