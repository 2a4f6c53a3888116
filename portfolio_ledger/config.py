"""Central configuration for the portfolio ledger package."""
from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Context
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
PRICE_CACHE_PATH = DATA_DIR / "price_cache.json"
HISTORY_DIR = DATA_DIR / "history"


@dataclass(slots=True, frozen=True)
class XirrSettings:
    lower_rate: float = -0.02
    upper_rate: float = 0.02
    evaluation_budget: int = 10_000
    tolerance: float = 1e-7
    max_iterations: int = 1_000


@dataclass(slots=True, frozen=True)
class Settings:
    decimal_context: Context
    xirr: XirrSettings
    price_cache_path: Path
    price_max_age_minutes: int
    price_workers: int
    http_timeout_seconds: float
    fmp_api_key: str
    alpha_vantage_api_key: str
    history_dir: Path


def load_settings() -> Settings:
    return Settings(
        decimal_context=Context(prec=28),
        xirr=XirrSettings(),
        price_cache_path=Path(os.getenv("PORTFOLIO_PRICE_CACHE", str(PRICE_CACHE_PATH))),
        price_max_age_minutes=int(os.getenv("PORTFOLIO_PRICE_MAX_AGE_MINUTES", "60")),
        price_workers=int(os.getenv("PORTFOLIO_PRICE_WORKERS", "4")),
        http_timeout_seconds=float(os.getenv("PORTFOLIO_HTTP_TIMEOUT", "10")),
        fmp_api_key=os.getenv("FMP_API_KEY", ""),
        alpha_vantage_api_key=os.getenv("ALPHA_VANTAGE_API_KEY", ""),
        history_dir=Path(os.getenv("PORTFOLIO_HISTORY_DIR", str(HISTORY_DIR))),
    )


SETTINGS = load_settings()
