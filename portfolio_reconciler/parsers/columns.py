"""Header recognition for brokerage CSV exports.

Everything brokerage-specific lives in the tables below: supporting a new
export layout means adding synonyms here, not changing parser code.

Two tables drive the normalizer:

    SIGNATURE_KEYWORDS   keyword -> header substrings that count as that keyword,
                         used to decide whether a row is a header and which
                         kind of export it belongs to.
    POSITION_COLUMNS /   canonical field -> ranked synonyms, used to map the
    TRANSACTION_COLUMNS  header cells of a detected export onto fields.
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from ..config import FileType, ParserConfig


@dataclass(frozen=True)
class Synonym:
    """A header spelling for a canonical field.

    Matches a normalized header that equals ``text`` or contains it, unless
    the header also contains one of the ``exclude`` words.
    """

    text: str
    exclude: tuple[str, ...] = ()

    def matches(self, header: str) -> bool:
        if not header or self.text not in header:
            return False
        return not any(word in header for word in self.exclude)


SIGNATURE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "symbol": ("symbol",),
    "ticker": ("ticker",),
    "share": ("share", "qty", "quantity", "units"),
    "position": ("position",),
    "value": ("value",),
    "price": ("price",),
    "cost": ("cost", "basis"),
    "date": ("date",),
    "transaction": ("transaction",),
    "action": ("action", "activity"),
    "type": ("type",),
    "buy": ("buy",),
    "sell": ("sell",),
    "amount": ("amount",),
    "quantity": ("quantity", "qty", "shares", "units"),
}

POSITION_KEYWORDS = ("symbol", "ticker", "share", "position", "value", "price", "cost")
TRANSACTION_KEYWORDS = (
    "date", "transaction", "action", "type", "buy", "sell",
    "symbol", "price", "amount", "quantity",
)
SNAPSHOT_ONLY_KEYWORDS = ("position", "value", "cost")
EVENT_ONLY_KEYWORDS = ("transaction", "action", "buy", "sell")

# "symbol" is satisfied by a ticker column as well for the required pair.
TRANSACTION_REQUIRED = (("date",), ("symbol", "ticker"))

POSITION_COLUMNS: dict[str, tuple[Synonym, ...]] = {
    "symbol": (Synonym("symbol"), Synonym("ticker"), Synonym("instrument")),
    "shares": (
        Synonym("quantity"),
        Synonym("shares", exclude=("per share", "price")),
        Synonym("qty"),
        Synonym("units"),
        Synonym("position", exclude=("value",)),
    ),
    "current_price": (
        Synonym("last price", exclude=("change",)),
        Synonym("current price"),
        Synonym("lastprice", exclude=("change",)),
        Synonym("price", exclude=("change", "cost")),
        Synonym("last", exclude=("change",)),
    ),
    "current_value": (
        Synonym("current value"),
        Synonym("market value"),
        Synonym("value", exclude=("change", "percent")),
    ),
    "cost_basis": (
        Synonym("cost basis total"),
        Synonym("total cost"),
        Synonym("cost basis", exclude=("per share", "average", "avg")),
        Synonym("book cost"),
        Synonym("cost", exclude=("per share", "average", "avg", "unit")),
    ),
    "cost_per_share": (
        Synonym("average cost"),
        Synonym("avg cost"),
        Synonym("cost per share"),
        Synonym("unit cost"),
        Synonym("purchase price"),
    ),
    "name": (
        Synonym("description"),
        Synonym("security name"),
        Synonym("company"),
        Synonym("name", exclude=("account",)),
        Synonym("security", exclude=("type",)),
    ),
    "dividend_yield": (
        Synonym("dist. yield"),
        Synonym("dividend yield"),
        Synonym("yield", exclude=("as of", "sec")),
    ),
    "annual_income": (
        Synonym("est. annual income"),
        Synonym("annual income"),
        Synonym("income", exclude=("yield",)),
    ),
    "amount_per_share": (
        Synonym("amount per share"),
        Synonym("dividend per share"),
        Synonym("dividend amount"),
    ),
    "pay_date": (Synonym("pay date"), Synonym("payment date")),
    "asset_class": (Synonym("asset class"), Synonym("security type"), Synonym("asset type")),
    "sector": (Synonym("sector"), Synonym("industry")),
}

TRANSACTION_COLUMNS: dict[str, tuple[Synonym, ...]] = {
    "date": (
        Synonym("run date"),
        Synonym("trade date"),
        Synonym("transaction date"),
        Synonym("date", exclude=("settlement", "settle", "ex-", "record", "pay")),
    ),
    "settlement_date": (Synonym("settlement date"), Synonym("settle date")),
    "action": (
        Synonym("action"),
        Synonym("transaction type"),
        Synonym("activity"),
        Synonym("transaction", exclude=("date", "id")),
        Synonym("type", exclude=("security", "account", "asset")),
    ),
    "symbol": (Synonym("symbol"), Synonym("ticker"), Synonym("instrument")),
    "description": (
        Synonym("description"),
        Synonym("security name"),
        Synonym("company"),
        Synonym("security", exclude=("type",)),
        Synonym("name", exclude=("account",)),
    ),
    "shares": (
        Synonym("quantity"),
        Synonym("shares", exclude=("per share", "price")),
        Synonym("qty"),
        Synonym("units"),
    ),
    "price": (Synonym("price", exclude=("change",)), Synonym("unit price")),
    "amount": (
        Synonym("net amount"),
        Synonym("amount", exclude=("per share",)),
        Synonym("proceeds"),
        Synonym("total", exclude=("cost",)),
        Synonym("value", exclude=("change",)),
    ),
    "commission": (Synonym("commission"),),
    "fees": (Synonym("fees"), Synonym("fee")),
    "tax": (Synonym("tax"), Synonym("withholding")),
    "currency": (Synonym("currency"),),
}

_UNIT_SUFFIX = re.compile(r"\([^)]*\)")
_WHITESPACE = re.compile(r"\s+")


def normalize_header(cell: str) -> str:
    """Lower-case a header cell and drop unit suffixes such as ``($)``."""
    text = _UNIT_SUFFIX.sub(" ", cell.strip().strip('"').lower())
    return _WHITESPACE.sub(" ", text).strip()


def keyword_hits(headers: Sequence[str]) -> set[str]:
    """Return the signature keywords present in a normalized header row."""
    return {
        keyword
        for keyword, spellings in SIGNATURE_KEYWORDS.items()
        if any(spelling in header for header in headers for spelling in spellings)
    }


@dataclass(frozen=True)
class Signature:
    """How well a header row matches each export family."""

    position_score: int
    transaction_score: int
    has_transaction_pair: bool
    snapshot_only: bool
    event_only: bool
    config: ParserConfig = ParserConfig()

    @classmethod
    def of(cls, headers: Sequence[str], config: ParserConfig = ParserConfig()) -> "Signature":
        hits = keyword_hits(headers)
        return cls(
            position_score=sum(1 for k in POSITION_KEYWORDS if k in hits),
            transaction_score=sum(1 for k in TRANSACTION_KEYWORDS if k in hits),
            has_transaction_pair=all(
                any(k in hits for k in group) for group in TRANSACTION_REQUIRED
            ),
            snapshot_only=any(k in hits for k in SNAPSHOT_ONLY_KEYWORDS),
            event_only=any(k in hits for k in EVENT_ONLY_KEYWORDS),
            config=config,
        )

    @property
    def is_positions(self) -> bool:
        return self.position_score >= self.config.MIN_POSITION_KEYWORDS

    @property
    def is_transactions(self) -> bool:
        return (
            self.has_transaction_pair
            and self.transaction_score >= self.config.MIN_TRANSACTION_KEYWORDS
        )

    @property
    def recognized(self) -> bool:
        return self.is_positions or self.is_transactions


def filename_hint(filename: str, config: ParserConfig = ParserConfig()) -> Optional[FileType]:
    name = filename.lower()
    if any(hint in name for hint in config.TRANSACTION_FILENAME_HINTS):
        return FileType.TRANSACTIONS
    if any(hint in name for hint in config.POSITION_FILENAME_HINTS):
        return FileType.POSITIONS
    return None


def detect_file_type(
    headers: Sequence[str],
    filename: str = "",
    config: ParserConfig = ParserConfig(),
) -> Optional[FileType]:
    """Decide which export family a normalized header row belongs to.

    Returns None when neither signature is satisfied and no filename hint
    can rescue a weak match.
    """
    signature = Signature.of(headers, config)
    hint = filename_hint(filename, config)

    if signature.is_transactions and signature.is_positions:
        if hint is not None:
            return hint
        if signature.snapshot_only and not signature.event_only:
            return FileType.POSITIONS
        return FileType.TRANSACTIONS

    if signature.is_transactions:
        return FileType.TRANSACTIONS

    # A history file whose header is too sparse for the content rules.
    if hint is FileType.TRANSACTIONS and signature.has_transaction_pair:
        return FileType.TRANSACTIONS

    if signature.is_positions:
        return FileType.POSITIONS

    return None


def find_header(
    rows: Sequence[Sequence[str]],
    config: ParserConfig = ParserConfig(),
) -> Optional[int]:
    """Index of the first row, among the leading rows, that looks like a header."""
    for index, row in enumerate(rows[: config.HEADER_SCAN_ROWS]):
        headers = [normalize_header(cell) for cell in row]
        signature = Signature.of(headers, config)
        if signature.recognized or signature.has_transaction_pair:
            return index
    return None


def map_columns(
    headers: Sequence[str],
    table: dict[str, tuple[Synonym, ...]],
) -> dict[str, int]:
    """Map canonical fields to header positions using a ranked synonym table.

    Fields are resolved in table order. For each field the synonyms are tried
    by rank, and the first one matching a header not yet claimed by an
    earlier field wins. Exact header matches take priority over substring
    matches for the same synonym.
    """
    claimed: set[int] = set()
    mapping: dict[str, int] = {}

    for field_name, synonyms in table.items():
        index = _resolve(headers, synonyms, claimed)
        if index is not None:
            mapping[field_name] = index
            claimed.add(index)

    return mapping


def _resolve(
    headers: Sequence[str],
    synonyms: tuple[Synonym, ...],
    claimed: set[int],
) -> Optional[int]:
    for synonym in synonyms:
        for i, header in enumerate(headers):
            if i not in claimed and header == synonym.text:
                return i
        for i, header in enumerate(headers):
            if i not in claimed and synonym.matches(header):
                return i
    return None
