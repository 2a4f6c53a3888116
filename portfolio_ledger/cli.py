"""Command-line entrypoint for replaying a portfolio ledger."""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

from portfolio_ledger.application.archive.use_cases import ArchiveReplayUseCase
from portfolio_ledger.application.use_cases import LedgerReplayContext, ReplayLedgerUseCase
from portfolio_ledger.config import SETTINGS
from portfolio_ledger.domain.archive.entities import ArchiveFile
from portfolio_ledger.domain.fields import parse_date
from portfolio_ledger.domain.results import LedgerError
from portfolio_ledger.infrastructure.archive.file_repository import FileSystemArchiveRepository
from portfolio_ledger.infrastructure.pricing.providers import default_providers
from portfolio_ledger.infrastructure.pricing.service import CachedPriceService
from portfolio_ledger.infrastructure.storage.ledger_store import ensure_bytes, load_ledger
from portfolio_ledger.infrastructure.storage.price_cache import JsonPriceCache
from portfolio_ledger.presentation.tables import render_csv, render_html, summary_rows


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay a portfolio ledger and report holdings and XIRR")
    parser.add_argument("ledger", type=str, help="Path to the ledger JSON file")
    parser.add_argument("--as-of", type=str, help="Valuation date (YYYY.MM.DD), defaults to today")
    parser.add_argument("--offline", action="store_true", help="Do not fetch current prices")
    parser.add_argument("--summary-csv", type=str, help="Write the summary table as CSV")
    parser.add_argument("--html", type=str, help="Write the summary and ledger log as HTML")
    parser.add_argument("--archive-dir", type=str, help="Archive the run under this directory")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    as_of: date | None = None
    if args.as_of:
        as_of_result = parse_date(args.as_of)
        if not as_of_result.ok:
            print(f"Invalid --as-of: {as_of_result.message}", file=sys.stderr)
            return 2
        as_of = as_of_result.value

    price_lookup = None
    if not args.offline:
        price_lookup = CachedPriceService(
            cache=JsonPriceCache(SETTINGS.price_cache_path),
            providers=default_providers(),
            max_age=timedelta(minutes=SETTINGS.price_max_age_minutes),
        )

    try:
        ledger_bytes = ensure_bytes(Path(args.ledger))
        entries = load_ledger(ledger_bytes)
        report = ReplayLedgerUseCase(LedgerReplayContext(price_lookup=price_lookup, as_of=as_of)).execute(entries)
    except (LedgerError, OSError) as error:
        print(f"Critical error occurred, further processing stopped: {error}", file=sys.stderr)
        return 1

    print("Replay Summary")
    print("==============")
    print(f"Entries: {len(entries)}")
    print(f"Processed: {report.processed}")
    print(f"Issues: {len(report.issues)}")
    print(report.status_message())

    if report.has_issues():
        print("\nIssues detected:")
        for index, text in report.issue_texts().items():
            print(f"- entry {index + 1}: {text}")

    rows = summary_rows(report.portfolio)
    if rows:
        print("\nHoldings:")
        for row in rows:
            value = row["Current value"] or "-"
            xirr = f" XIRR {row['XIRR']}" if row["XIRR"] else ""
            print(f"- {row['Platform']} {row['Asset type']} {row['Name']}: {value} {row['Currency']}{xirr}")

    summary_csv = render_csv(rows)
    html_report = render_html(report, entries)
    if args.summary_csv:
        Path(args.summary_csv).write_bytes(summary_csv)
    if args.html:
        Path(args.html).write_text(html_report, encoding="utf-8")
    if args.archive_dir:
        receipt = ArchiveReplayUseCase(FileSystemArchiveRepository(Path(args.archive_dir))).archive_report(
            report,
            inputs=[ArchiveFile(name=Path(args.ledger).name, content=ledger_bytes)],
            outputs=[
                ArchiveFile(name="summary.csv", content=summary_csv),
                ArchiveFile(name="report.html", content=html_report.encode("utf-8")),
            ],
        )
        print(f"\nArchived run {receipt.run_id} to {receipt.location}")

    return 1 if report.fatal else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
