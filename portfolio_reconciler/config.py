"""Configuration constants for the portfolio reconciler."""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class TransactionType(Enum):
    """Brokerage event kinds."""

    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND = "DIVIDEND"
    SPLIT = "SPLIT"
    TRANSFER = "TRANSFER"
    FEE = "FEE"
    TAX = "TAX"


class FileType(Enum):
    """Kinds of brokerage export the normalizer recognizes."""

    POSITIONS = "positions"
    TRANSACTIONS = "transactions"


class DividendFrequency(Enum):
    """Detected dividend payment cadence."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi-annual"
    ANNUAL = "annual"
    IRREGULAR = "irregular"

    @property
    def payments_per_year(self) -> int:
        return PAYMENTS_PER_YEAR[self]


PAYMENTS_PER_YEAR: dict[DividendFrequency, int] = {
    DividendFrequency.MONTHLY: 12,
    DividendFrequency.QUARTERLY: 4,
    DividendFrequency.SEMI_ANNUAL: 2,
    DividendFrequency.ANNUAL: 1,
    DividendFrequency.IRREGULAR: 4,
}


class TimePeriod(Enum):
    """Reporting windows offered by the dashboard."""

    MTD = "MTD"
    QTD = "QTD"
    YTD = "YTD"
    PRIOR_YEAR = "Prior Year"
    CUSTOM = "Custom"


class AssetClass(Enum):
    """Coarse asset classes used for allocation breakdowns."""

    STOCKS = "Stocks"
    FUNDS = "Funds"
    CASH = "Cash"
    COMMODITIES = "Commodities"
    OTHER = "Other"


class HoldingSource(Enum):
    """Where a holding's numbers came from."""

    SNAPSHOT = "snapshot"
    TRANSACTIONS = "transactions"


class Entity(Enum):
    """Record collections kept by the persistence backend."""

    HOLDINGS = "holdings"
    TRANSACTIONS = "transactions"
    DIVIDENDS = "dividends"


@dataclass(frozen=True)
class ParserConfig:
    """Configuration for the CSV normalizer."""

    HEADER_SCAN_ROWS: int = 10
    MIN_POSITION_KEYWORDS: int = 3
    MIN_TRANSACTION_KEYWORDS: int = 4
    DEFAULT_CURRENCY: str = "USD"
    TRANSACTION_FILENAME_HINTS: tuple[str, ...] = ("history", "transaction")
    POSITION_FILENAME_HINTS: tuple[str, ...] = ("position", "holding")
    FOOTER_MARKERS: tuple[str, ...] = ("total", "pending activity")
    DATE_FORMATS: tuple[str, ...] = (
        "%m/%d/%Y",
        "%Y-%m-%d",
        "%m/%d/%y",
        "%Y/%m/%d",
        "%m-%d-%Y",
        "%d.%m.%Y",
        "%b %d, %Y",
        "%B %d, %Y",
        "%d-%b-%Y",
    )


def _default_data_dir() -> Path:
    override = os.environ.get("PORTFOLIO_RECONCILER_DATA")
    if override:
        return Path(override)
    return Path.home() / ".portfolio-reconciler"


@dataclass(frozen=True)
class StorageConfig:
    """Configuration for the JSON file backend."""

    DATA_DIR: Path = field(default_factory=_default_data_dir)
    FILE_SUFFIX: str = ".json"
    ENCODING: str = "utf-8"
