import json
from pathlib import Path

from portfolio_ledger.cli import main


def make_ledger(tmp_path: Path, entries) -> Path:
    path = tmp_path / "ledger.json"
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


def make_entries() -> list[dict]:
    return [
        {"date": "2024.01.01", "action": "NewPlatform", "platform": "Bank"},
        {"date": "2024.01.01", "action": "NewAsset", "platform": "Bank", "assetType": "Cash", "currency": "EUR"},
        {"date": "2024.01.02", "action": "Deposit", "platform": "Bank", "assetType": "Cash", "currency": "EUR", "totalValue": "250"},
    ]


def test_cli_prints_summary_and_writes_reports(tmp_path: Path, capsys):
    ledger = make_ledger(tmp_path, make_entries())
    summary_csv = tmp_path / "summary.csv"
    report_html = tmp_path / "report.html"

    exit_code = main(
        [str(ledger), "--offline", "--as-of", "2024.02.01", "--summary-csv", str(summary_csv), "--html", str(report_html)]
    )

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Replay Summary" in out
    assert "All good." in out
    assert "Bank Cash EUR: 250 EUR" in out
    assert summary_csv.read_text(encoding="utf-8").startswith("Platform,Asset type")
    assert "<table>" in report_html.read_text(encoding="utf-8")


def test_cli_returns_one_on_fatal_entry(tmp_path: Path, capsys):
    entries = make_entries() + [{"date": "2023.12.31", "action": "NewPlatform", "platform": "Late"}]
    ledger = make_ledger(tmp_path, entries)

    exit_code = main([str(ledger), "--offline"])

    out = capsys.readouterr().out
    assert exit_code == 1
    assert "entry 4: Critical error occurred" in out


def test_cli_rejects_invalid_document(tmp_path: Path, capsys):
    ledger = make_ledger(tmp_path, {"not": "a list"})

    assert main([str(ledger), "--offline"]) == 1
    assert "must be a JSON array" in capsys.readouterr().err


def test_cli_archives_run(tmp_path: Path):
    ledger = make_ledger(tmp_path, make_entries())
    archive_dir = tmp_path / "history"

    assert main([str(ledger), "--offline", "--archive-dir", str(archive_dir)]) == 0

    runs = [path for path in archive_dir.iterdir() if path.is_dir()]
    assert len(runs) == 1
    assert {path.name for path in runs[0].iterdir()} == {"ledger.json", "summary.csv", "report.html", "manifest.json"}


def test_cli_rejects_bad_as_of(tmp_path: Path):
    ledger = make_ledger(tmp_path, make_entries())

    assert main([str(ledger), "--offline", "--as-of", "2024-02-01"]) == 2


def test_cli_reports_missing_ledger_file(tmp_path: Path, capsys):
    assert main([str(tmp_path / "missing.json"), "--offline"]) == 1
    assert "Critical error occurred" in capsys.readouterr().err
