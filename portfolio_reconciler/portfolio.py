import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

from .config import FileType, HoldingSource, TimePeriod
from .dividends import project
from .metrics import PortfolioSummary, summarize
from .models import ZERO, DividendPayment, Holding, MonthProjection, PortfolioState, Transaction
from .parsers import BaseParser, CsvParser
from .periods import PeriodView, filter_period
from .reconcile import combine_holdings, reconcile
from .storage import JsonFileBackend, MemoryBackend, StorageBackend
from .store import DateRange, PortfolioStore, in_range, merge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportSummary:
    """What one import added, as counted after any date-range filter."""

    file_type: FileType
    source_name: str
    holdings: int
    transactions: int
    dividends: int
    skipped_rows: int
    start: Optional[date] = None
    end: Optional[date] = None

    def __str__(self) -> str:
        span = f", {self.start} to {self.end}" if self.start else ""
        return (
            f"{self.source_name or 'file'} ({self.file_type.value}): "
            f"{self.holdings} holdings, {self.transactions} transactions, "
            f"{self.dividends} dividends, {self.skipped_rows} rows skipped{span}"
        )


def rebuild_holdings(state: PortfolioState) -> PortfolioState:
    """Recompute holdings from the transaction log and dividend history.

    Holdings from earlier reconciliations are discarded; snapshot holdings
    survive for symbols the log never trades. Every holding gets its cadence,
    growth and yield from the stored dividends, even with an empty log.
    """
    snapshot = [h for h in state.holdings if h.source is HoldingSource.SNAPSHOT]
    derived = reconcile(state.transactions, state.dividends) if state.transactions else []
    holdings = combine_holdings(derived, snapshot, state.transactions, state.dividends)
    return PortfolioState(
        holdings=holdings,
        transactions=state.transactions,
        dividends=state.dividends,
    )


class Portfolio:
    """Imported brokerage data and the holdings and income derived from it."""

    def __init__(
        self,
        backend: Optional[StorageBackend] = None,
        parser: Optional[BaseParser] = None,
    ) -> None:
        self.store = PortfolioStore(backend or MemoryBackend())
        self.parser = parser or CsvParser()
        self.state = PortfolioState()

    @property
    def holdings(self) -> list[Holding]:
        return self.state.holdings

    @property
    def transactions(self) -> list[Transaction]:
        return self.state.transactions

    @property
    def dividends(self) -> list[DividendPayment]:
        return self.state.dividends

    async def load(self) -> PortfolioState:
        self.state = await self.store.load()
        return self.state

    async def import_file(
        self,
        data: bytes,
        filename: str = "",
        date_range: Optional[DateRange] = None,
    ) -> ImportSummary:
        """Parse a brokerage export and merge it into the stored portfolio.

        Nothing changes, in memory or in the store, unless parsing and the
        save both succeed.

        Args:
            data: Raw file contents.
            filename: Original file name, used as a format hint.
            date_range: Optional inclusive (start, end) bounds for incoming
                transactions and dividends. Either end may be None.

        Returns:
            ImportSummary of the records taken from the file.

        Raises:
            ParseError: If the file cannot be read or recognized.
            PersistenceError: If the merged state cannot be saved.
        """
        result = self.parser.parse(data, filename)
        merged = rebuild_holdings(merge(self.state, result, date_range))
        await self.store.save(merged)
        self.state = merged

        # Positions files never add to the transaction log.
        transactions = [
            t.date
            for t in result.transactions
            if result.file_type is FileType.TRANSACTIONS and in_range(t.date, date_range)
        ]
        dividends = [d for d in result.dividends if in_range(d.date, date_range)]
        summary = ImportSummary(
            file_type=result.file_type,
            source_name=result.source_name,
            holdings=len(result.holdings),
            transactions=len(transactions),
            dividends=len(dividends),
            skipped_rows=result.skipped_rows,
            start=min(transactions) if transactions else None,
            end=max(transactions) if transactions else None,
        )
        logger.info("Imported %s", summary)
        return summary

    async def clear(self) -> None:
        await self.store.clear()
        self.state = PortfolioState()

    def total_value(self) -> Decimal:
        return sum((h.current_value for h in self.holdings), start=ZERO)

    def current_allocation(self) -> dict[str, Decimal]:
        total = self.total_value()
        if total == 0:
            return {}

        return {h.symbol: h.current_value / total for h in self.holdings}

    def projections(self, today: Optional[date] = None) -> list[MonthProjection]:
        return project(self.holdings, self.dividends, today)

    def period_view(
        self,
        period: TimePeriod,
        custom_months: Optional[Iterable[str]] = None,
        today: Optional[date] = None,
    ) -> PeriodView:
        return filter_period(self.transactions, self.dividends, period, custom_months, today)

    def summary(self) -> PortfolioSummary:
        return summarize(self.holdings, self.dividends)

    def load_sync(self) -> PortfolioState:
        return asyncio.run(self.load())

    def import_file_sync(
        self,
        data: bytes,
        filename: str = "",
        date_range: Optional[DateRange] = None,
    ) -> ImportSummary:
        return asyncio.run(self.import_file(data, filename, date_range))

    def clear_sync(self) -> None:
        asyncio.run(self.clear())

    @classmethod
    def from_directory(cls, data_dir: Optional[Path] = None) -> "Portfolio":
        """Open the portfolio stored as JSON files under ``data_dir``.

        Args:
            data_dir: Directory holding the store. Defaults to
                ``$PORTFOLIO_RECONCILER_DATA`` or ``~/.portfolio-reconciler``.

        Returns:
            Portfolio with its stored state loaded.
        """
        portfolio = cls(JsonFileBackend(data_dir))
        portfolio.load_sync()
        return portfolio

    def __repr__(self) -> str:
        return (
            f"Portfolio(holdings={[h.symbol for h in self.holdings]}, "
            f"transactions={len(self.transactions)}, "
            f"dividends={len(self.dividends)}, "
            f"total_value={self.total_value()})"
        )
