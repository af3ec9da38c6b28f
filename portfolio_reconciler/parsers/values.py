"""Cell-level coercion helpers for brokerage CSV exports."""

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..config import AssetClass, ParserConfig, TransactionType

logger = logging.getLogger(__name__)

_BLANKS = {"", "--", "n/a", "na", "none", "null", "-"}

# Ordered: the first rule whose keywords appear in the action text wins.
# Reinvestments are purchases even though they mention dividends.
ACTION_RULES: tuple[tuple[TransactionType, tuple[str, ...]], ...] = (
    (TransactionType.BUY, ("reinvest",)),
    (TransactionType.BUY, ("buy", "bought", "purchase")),
    (TransactionType.SELL, ("sell", "sold", "sale", "redemption")),
    (TransactionType.SPLIT, ("split",)),
    (TransactionType.DIVIDEND, ("dividend", "distribution", "div ", "cap gain")),
    (TransactionType.TAX, ("tax", "withholding")),
    (TransactionType.FEE, ("fee", "commission")),
    (TransactionType.TRANSFER, ("transfer", "deposit", "withdraw", "journal")),
)

# Description-only hints used when the action text is inconclusive.
DESCRIPTION_RULES: tuple[tuple[TransactionType, tuple[str, ...]], ...] = (
    (TransactionType.DIVIDEND, ("dividend", "distribution")),
    (TransactionType.SPLIT, ("split",)),
    (TransactionType.TAX, ("tax",)),
)

FUND_MARKERS = ("etf", "fund", "index", "trust")
FUND_SYMBOLS = ("VOO", "SPY", "VTI", "QQQ")
COMMODITY_MARKERS = ("gold", "silver", "platinum", "metal")
COMMODITY_SYMBOLS = ("GLD", "SLV", "IAU")
CASH_MARKERS = ("cash", "money market")


def is_blank(text: str) -> bool:
    return text.strip().lower() in _BLANKS


def parse_number(text: str) -> Decimal:
    """Coerce a numeric cell to Decimal, returning 0 when it cannot be read.

    Handles currency symbols, thousands separators, percent signs, leading
    plus signs and accounting-style negatives such as ``($1,234.50)``.
    """
    if text is None or is_blank(text):
        return Decimal("0")

    cleaned = text.strip()
    negative = cleaned.startswith("(") and cleaned.endswith(")")
    cleaned = re.sub(r"[^\d.\-]", "", cleaned)
    if not cleaned or cleaned in ("-", "."):
        return Decimal("0")

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        logger.debug("Could not read number from %r", text)
        return Decimal("0")

    if not value.is_finite():
        return Decimal("0")
    return -abs(value) if negative else value


def parse_date(text: str, formats: tuple[str, ...] = ParserConfig.DATE_FORMATS) -> Optional[date]:
    """Parse a date cell in any of the formats brokers commonly export."""
    if text is None or is_blank(text):
        return None

    cleaned = text.strip()
    # Some exports append a time or an "as of" note after the date.
    cleaned = re.split(r"\s+as of\s+", cleaned, flags=re.IGNORECASE)[0]
    candidates = [cleaned, cleaned.split("T")[0], cleaned.split(" ")[0]]

    for candidate in candidates:
        for fmt in formats:
            try:
                return datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue

    logger.debug("Could not read date from %r", text)
    return None


def normalize_symbol(text: str) -> str:
    symbol = text.strip().strip('"').replace("*", "").strip()
    return symbol.upper()


def classify_action(action: str, description: str = "") -> Optional[TransactionType]:
    """Map broker action text onto a TransactionType, or None if unrecognized."""
    action_lower = f"{action.lower()} "
    for kind, keywords in ACTION_RULES:
        if any(keyword in action_lower for keyword in keywords):
            return kind

    description_lower = description.lower()
    for kind, keywords in DESCRIPTION_RULES:
        if any(keyword in description_lower for keyword in keywords):
            return kind

    return None


def extract_company_name(description: str, symbol: str) -> str:
    """Pull a company name out of a free-text transaction description.

    Tries, in order: ``NAME (SYM)``, ``SYM NAME``, the text on either side of
    the symbol, then ``DIV ON NAME``. Falls back to the raw description.
    """
    description = description.strip()
    if not description:
        return symbol
    if not symbol:
        return description

    escaped = re.escape(symbol)

    match = re.search(rf"(.*?)\({escaped}\)", description, re.IGNORECASE)
    if match and match.group(1).strip():
        return match.group(1).strip()

    match = re.search(rf"\b{escaped}\s+(.+)$", description, re.IGNORECASE)
    if match and match.group(1).strip():
        return match.group(1).strip()

    if symbol in description:
        before, _, after = description.partition(symbol)
        if before.strip():
            return before.strip()
        if after.strip():
            return after.strip()

    match = re.search(r"DIV ON\s+(.+)$", description, re.IGNORECASE)
    if match and match.group(1).strip():
        return match.group(1).strip()

    return description


def infer_asset_class(symbol: str, name: str) -> AssetClass:
    """Guess an asset class from a holding's symbol and description."""
    name_lower = name.lower()
    symbol_upper = symbol.upper()

    if any(m in name_lower for m in CASH_MARKERS) or "CASH" in symbol_upper:
        return AssetClass.CASH
    if any(m in name_lower for m in COMMODITY_MARKERS) or symbol_upper in COMMODITY_SYMBOLS:
        return AssetClass.COMMODITIES
    if any(m in name_lower for m in FUND_MARKERS) or symbol_upper in FUND_SYMBOLS:
        return AssetClass.FUNDS
    return AssetClass.STOCKS


def parse_asset_class(text: str, symbol: str, name: str) -> AssetClass:
    """Read an explicit asset class cell, falling back to inference."""
    cleaned = text.strip().lower()
    for asset_class in AssetClass:
        if cleaned == asset_class.value.lower():
            return asset_class
    if cleaned in ("equity", "equities", "stock", "common stock"):
        return AssetClass.STOCKS
    if cleaned in ("etf", "etfs", "mutual fund", "fund"):
        return AssetClass.FUNDS
    return infer_asset_class(symbol, name)
