"""Application services orchestrating a full ledger replay."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import localcontext

from portfolio_ledger.config import SETTINGS, XirrSettings
from portfolio_ledger.domain.portfolio import Portfolio
from portfolio_ledger.domain.repositories import PriceLookup
from portfolio_ledger.domain.results import EntryIssue, LedgerError, ReplayReport
from portfolio_ledger.domain.services import ActionProcessor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LedgerReplayContext:
    price_lookup: PriceLookup | None = None
    as_of: date | None = None
    max_workers: int | None = None
    xirr_settings: XirrSettings | None = None


class ReplayLedgerUseCase:
    def __init__(self, context: LedgerReplayContext | None = None) -> None:
        self._context = context or LedgerReplayContext()

    def execute(self, entries: object) -> ReplayReport:
        """Replay every entry in order, stopping at the first fatal one.

        Raises ``LedgerError`` when the document itself is not a non-empty list.
        """
        if not isinstance(entries, list):
            raise LedgerError("Ledger must be a JSON array of entries")
        if not entries:
            raise LedgerError("Ledger contains no entries")

        portfolio = Portfolio()
        processor = ActionProcessor(portfolio)
        issues: dict[int, EntryIssue] = {}
        fatal = False
        processed = 0
        with localcontext(SETTINGS.decimal_context):
            for index, raw in enumerate(entries):
                try:
                    warnings = processor.process(raw)
                except LedgerError as error:
                    logger.warning("Entry %d stopped the replay: %s", index, error)
                    issues[index] = EntryIssue(index, (str(error),), fatal=True)
                    fatal = True
                    break
                processed += 1
                if warnings:
                    issues[index] = EntryIssue(index, tuple(warnings))

            if not fatal:
                portfolio.validate_and_finalize(
                    price_lookup=self._context.price_lookup,
                    as_of=self._context.as_of,
                    max_workers=self._context.max_workers,
                    xirr_settings=self._context.xirr_settings,
                )
        logger.info("Replayed %d of %d entries with %d issue(s)", processed, len(entries), len(issues))
        return ReplayReport(portfolio=portfolio, issues=issues, fatal=fatal, processed=processed)
