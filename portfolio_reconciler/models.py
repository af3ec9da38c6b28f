"""Data models for the portfolio reconciler."""

from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from .config import (
    AssetClass,
    DividendFrequency,
    FileType,
    HoldingSource,
    TransactionType,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _encode(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _decode(kind: Any, raw: Any) -> Any:
    if kind is Decimal:
        return Decimal(str(raw)) if raw not in (None, "") else ZERO
    if kind is date:
        return date.fromisoformat(raw)
    if isinstance(kind, type) and issubclass(kind, Enum):
        return kind(raw)
    return raw


class _RecordMixin:
    """JSON-compatible dict conversion for the persistence backend."""

    def to_record(self) -> dict[str, Any]:
        return {f.name: _encode(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_record(cls, record: dict[str, Any]):
        kwargs = {
            f.name: _decode(f.type, record[f.name])
            for f in fields(cls)
            if f.init and f.name in record
        }
        return cls(**kwargs)


@dataclass(frozen=True)
class Transaction(_RecordMixin):
    """One brokerage event. Never mutated after import."""

    id: str
    date: date
    type: TransactionType
    symbol: str
    company_name: str = ""
    shares: Decimal = ZERO
    price: Decimal = ZERO
    amount: Decimal = ZERO
    fees: Decimal = ZERO
    tax: Decimal = ZERO
    currency: str = "USD"
    notes: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.type, TransactionType):
            raise ValueError(f"Transaction {self.id} has no valid type: {self.type!r}")
        if not self.symbol:
            raise ValueError(f"Transaction {self.id} has no symbol")
        for name in ("shares", "price", "amount", "fees", "tax"):
            if getattr(self, name) < 0:
                raise ValueError(
                    f"Transaction {self.id}: {name} must be non-negative, "
                    f"got {getattr(self, name)}"
                )

    @property
    def dedup_key(self) -> tuple:
        return (self.date, self.symbol, self.type, self.price, self.shares)


@dataclass(frozen=True)
class DividendPayment(_RecordMixin):
    """One realized dividend payment."""

    id: str
    symbol: str
    date: date
    amount: Decimal
    shares: Decimal = ZERO
    holding_id: str = ""
    company_name: str = ""
    tax: Decimal = ZERO
    currency: str = "USD"
    amount_per_share: Decimal = field(init=False, default=ZERO)

    def __post_init__(self) -> None:
        if not self.symbol:
            raise ValueError(f"Dividend {self.id} has no symbol")
        if self.amount < 0 or self.shares < 0 or self.tax < 0:
            raise ValueError(f"Dividend {self.id}: amounts must be non-negative")
        per_share = self.amount / self.shares if self.shares > 0 else ZERO
        object.__setattr__(self, "amount_per_share", per_share)

    @property
    def dedup_key(self) -> tuple:
        return (self.date, self.symbol, self.amount)


@dataclass
class Holding(_RecordMixin):
    """Current position in a symbol, derived from snapshots or transactions."""

    id: str
    symbol: str
    name: str
    shares: Decimal
    cost_per_share: Decimal = ZERO
    cost_basis: Decimal = ZERO
    total_cost: Decimal = ZERO
    current_price: Decimal = ZERO
    current_value: Decimal = ZERO
    gain: Decimal = ZERO
    gain_percent: Decimal = ZERO
    dividend_yield: Decimal = ZERO
    annual_income: Decimal = ZERO
    dividend_frequency: DividendFrequency = DividendFrequency.QUARTERLY
    dividend_growth: Decimal = ZERO
    allocation: Decimal = ZERO
    asset_class: AssetClass = AssetClass.STOCKS
    sector: str = "Other"
    source: HoldingSource = HoldingSource.SNAPSHOT

    def update_gain(self) -> None:
        self.gain = self.current_value - self.cost_basis
        self.gain_percent = (
            self.gain / self.cost_basis * HUNDRED if self.cost_basis else ZERO
        )


@dataclass(frozen=True)
class MonthProjection:
    """Projected dividend income for one calendar month."""

    month: str
    total: Decimal
    by_symbol: dict[str, Decimal] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.month}: ${self.total:,.2f}"


@dataclass(frozen=True)
class PositionRow:
    """A data row of a positions export, keyed by canonical field name."""

    line_number: int
    cells: dict[str, str]


@dataclass(frozen=True)
class TransactionRow:
    """A data row of a transaction history export, keyed by canonical field name."""

    line_number: int
    cells: dict[str, str]


RawRow = Union[PositionRow, TransactionRow]


@dataclass(frozen=True)
class ParseResult:
    """Records produced from one imported file."""

    file_type: FileType
    transactions: list[Transaction] = field(default_factory=list)
    dividends: list[DividendPayment] = field(default_factory=list)
    holdings: list[Holding] = field(default_factory=list)
    skipped_rows: int = 0
    source_name: str = ""


@dataclass(frozen=True)
class PortfolioState:
    """Everything the store persists: holdings, transactions and dividends."""

    holdings: list[Holding] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    dividends: list[DividendPayment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.holdings or self.transactions or self.dividends)


def assign_allocations(holdings: list[Holding]) -> None:
    """Set each holding's share of total portfolio value, in percent."""
    total = sum((h.current_value for h in holdings), start=ZERO)
    for holding in holdings:
        holding.allocation = holding.current_value / total * HUNDRED if total > 0 else ZERO
