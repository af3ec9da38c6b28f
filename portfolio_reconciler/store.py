"""Merge imported records into stored portfolio state and persist it."""

import logging
from datetime import date
from typing import Iterable, Optional, TypeVar

from .config import Entity, FileType
from .errors import PersistenceError
from .models import DividendPayment, Holding, ParseResult, PortfolioState, Transaction
from .storage import StorageBackend

logger = logging.getLogger(__name__)

DateRange = tuple[Optional[date], Optional[date]]

T = TypeVar("T", Transaction, DividendPayment)


def _dedupe(records: Iterable[T]) -> list[T]:
    seen: set[tuple] = set()
    unique = []
    for record in records:
        if record.dedup_key in seen:
            continue
        seen.add(record.dedup_key)
        unique.append(record)
    return unique


def dedupe_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Drop repeats of (date, symbol, type, price, shares), keeping the first."""
    return _dedupe(transactions)


def dedupe_dividends(dividends: Iterable[DividendPayment]) -> list[DividendPayment]:
    """Drop repeats of (date, symbol, amount), keeping the first."""
    return _dedupe(dividends)


def in_range(day: date, date_range: Optional[DateRange]) -> bool:
    if date_range is None:
        return True
    start, end = date_range
    return (start is None or day >= start) and (end is None or day <= end)


def merge(
    existing: PortfolioState,
    incoming: ParseResult,
    date_range: Optional[DateRange] = None,
) -> PortfolioState:
    """Combine stored state with a freshly parsed file.

    A positions file replaces every stored holding and adds its dividends.
    A transaction history leaves holdings alone and adds its transactions and
    dividends. Either way duplicates are dropped with the stored copy winning,
    so merging the same file twice changes nothing.

    Args:
        existing: State currently in the store.
        incoming: Result of parsing one file.
        date_range: Optional inclusive (start, end) bounds, either side open,
            applied to the incoming transactions and dividends only.

    Returns:
        The new state. Neither input is modified.
    """
    transactions = [t for t in incoming.transactions if in_range(t.date, date_range)]
    dividends = [d for d in incoming.dividends if in_range(d.date, date_range)]

    merged_dividends = dedupe_dividends([*existing.dividends, *dividends])

    if incoming.file_type is FileType.POSITIONS:
        return PortfolioState(
            holdings=list(incoming.holdings),
            transactions=list(existing.transactions),
            dividends=merged_dividends,
        )

    return PortfolioState(
        holdings=list(existing.holdings),
        transactions=dedupe_transactions([*existing.transactions, *transactions]),
        dividends=merged_dividends,
    )


class PortfolioStore:
    """Loads and saves PortfolioState through a storage backend."""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    async def load(self) -> PortfolioState:
        holdings = await self.backend.load_all(Entity.HOLDINGS)
        transactions = await self.backend.load_all(Entity.TRANSACTIONS)
        dividends = await self.backend.load_all(Entity.DIVIDENDS)

        state = PortfolioState(
            holdings=[Holding.from_record(r) for r in holdings],
            transactions=[Transaction.from_record(r) for r in transactions],
            dividends=[DividendPayment.from_record(r) for r in dividends],
        )
        logger.debug(
            "Loaded %d holdings, %d transactions, %d dividends",
            len(state.holdings), len(state.transactions), len(state.dividends),
        )
        return state

    async def save(self, state: PortfolioState) -> None:
        """Write every entity of ``state``, or leave the store as it was.

        Entities are written one at a time. When a write fails, the
        entities already written get their previous records back before
        the error is re-raised.

        Raises:
            PersistenceError: If a write fails. Also raised if restoring
                the previous records fails, chained to the original error.
        """
        pending = [
            (Entity.HOLDINGS, [h.to_record() for h in state.holdings]),
            (Entity.TRANSACTIONS, [t.to_record() for t in state.transactions]),
            (Entity.DIVIDENDS, [d.to_record() for d in state.dividends]),
        ]
        previous = {entity: await self.backend.load_all(entity) for entity, _ in pending}

        written: list[Entity] = []
        try:
            for entity, records in pending:
                await self.backend.save_all(entity, records)
                written.append(entity)
        except PersistenceError:
            logger.warning(
                "Save failed after writing %s, restoring previous records",
                [e.value for e in written] or "nothing",
            )
            for entity in written:
                await self.backend.save_all(entity, previous[entity])
            raise

    async def clear(self) -> None:
        await self.backend.clear_all()
        logger.info("Cleared all stored portfolio data")
