"""File-backed cache of the most recent quote per asset code."""
from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from portfolio_ledger.domain.models import PriceQuote

logger = logging.getLogger(__name__)


class JsonPriceCache:
    """JSON document of ``code -> {"price": "...", "date": "<ISO timestamp>"}``.

    Unreadable files and malformed records are treated as empty; writes rewrite the
    whole document.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, dict[str, str]]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            logger.warning("Ignoring unreadable price cache %s: %s", self._path, error)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, code: str) -> PriceQuote | None:
        with self._lock:
            record = self._load().get(code)
        if not isinstance(record, dict):
            return None
        try:
            return PriceQuote(
                price=Decimal(str(record["price"])),
                observed_at=datetime.fromisoformat(str(record["date"])),
            )
        except (KeyError, ValueError, InvalidOperation):
            logger.warning("Ignoring malformed cached price for %s", code)
            return None

    def set(self, code: str, quote: PriceQuote) -> None:
        with self._lock:
            data = self._load()
            data[code] = {"price": format(quote.price, "f"), "date": quote.observed_at.isoformat()}
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        logger.info("Cached price %s for %s", quote.price, code)
