"""Storage helpers for ledger JSON documents."""
from __future__ import annotations

import json
import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Sequence

from portfolio_ledger.domain.entries import LedgerEntry, serialize_entry
from portfolio_ledger.domain.results import LedgerError

logger = logging.getLogger(__name__)


def ensure_bytes(source: BytesIO | Path | bytes | str) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, BytesIO):
        return source.getvalue()
    if isinstance(source, (Path, str)):
        return Path(source).read_bytes()
    raise TypeError(f"Unsupported source type: {type(source)!r}")


def load_ledger(source: BytesIO | Path | bytes | str) -> list[Any]:
    """Decode a ledger document; the entries themselves are validated during replay."""
    try:
        document = json.loads(ensure_bytes(source).decode("utf-8"))
    except UnicodeDecodeError as error:
        raise LedgerError(f"Ledger is not UTF-8 text: {error}") from error
    except json.JSONDecodeError as error:
        raise LedgerError(f"Ledger is not valid JSON: {error}") from error
    if not isinstance(document, list):
        raise LedgerError("Ledger must be a JSON array of entries")
    return document


def dump_ledger(entries: Sequence[LedgerEntry | dict[str, Any]]) -> bytes:
    raw = [entry if isinstance(entry, dict) else serialize_entry(entry) for entry in entries]
    return json.dumps(raw, ensure_ascii=False, indent=2).encode("utf-8")


def save_ledger(entries: Sequence[LedgerEntry | dict[str, Any]], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(dump_ledger(entries))
    logger.info("Saved %d ledger entries to %s", len(entries), path)
    return path
