"""Portfolio ledger replay: holdings, validation and XIRR from a transaction log."""
from portfolio_ledger.application.use_cases import LedgerReplayContext, ReplayLedgerUseCase
from portfolio_ledger.domain.portfolio import Portfolio
from portfolio_ledger.domain.services import ActionProcessor
from portfolio_ledger.infrastructure.pricing.service import CachedPriceService
from portfolio_ledger.infrastructure.storage.price_cache import JsonPriceCache

__all__ = [
    "ActionProcessor",
    "CachedPriceService",
    "JsonPriceCache",
    "LedgerReplayContext",
    "Portfolio",
    "ReplayLedgerUseCase",
]
