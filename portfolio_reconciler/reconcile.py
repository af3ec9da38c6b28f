"""Rebuild current holdings by replaying the transaction log."""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional, Sequence

from .config import HoldingSource, TransactionType
from .dividends import apply_dividend_fields, payments_by_symbol
from .models import ZERO, DividendPayment, Holding, Transaction, assign_allocations
from .parsers.values import infer_asset_class

logger = logging.getLogger(__name__)

# Transaction types that move shares or cost.
POSITION_TYPES = frozenset({TransactionType.BUY, TransactionType.SELL, TransactionType.SPLIT})


@dataclass
class Position:
    """Running average-cost state for one symbol during replay."""

    symbol: str
    shares: Decimal = ZERO
    total_cost: Decimal = ZERO
    cost_per_share: Decimal = ZERO
    last_price: Decimal = ZERO
    name: str = ""

    def buy(self, tx: Transaction) -> None:
        self.total_cost += tx.amount
        self.shares += tx.shares
        if self.shares > 0:
            self.cost_per_share = self.total_cost / self.shares

    def sell(self, tx: Transaction) -> None:
        if tx.shares > self.shares:
            logger.warning(
                "%s: sell of %s shares on %s exceeds the %s held",
                self.symbol, tx.shares, tx.date, self.shares,
            )
        if self.shares > 0:
            self.total_cost = max(self.total_cost * (1 - tx.shares / self.shares), ZERO)
        self.shares -= tx.shares

    def split(self, tx: Transaction) -> None:
        ratio = tx.price
        if ratio <= 0:
            logger.warning("%s: split on %s has no ratio, ignored", self.symbol, tx.date)
            return
        self.shares *= ratio
        self.cost_per_share /= ratio

    def apply(self, tx: Transaction) -> None:
        if tx.type is TransactionType.BUY:
            self.buy(tx)
        elif tx.type is TransactionType.SELL:
            self.sell(tx)
        elif tx.type is TransactionType.SPLIT:
            self.split(tx)

        # The price field of a split is its ratio, not a quote.
        if tx.price > 0 and tx.type is not TransactionType.SPLIT:
            self.last_price = tx.price
        if tx.company_name:
            self.name = tx.company_name

    def to_holding(self) -> Holding:
        value = self.shares * self.last_price
        holding = Holding(
            id=f"holding-{self.symbol}",
            symbol=self.symbol,
            name=self.name or self.symbol,
            shares=self.shares,
            cost_per_share=self.cost_per_share,
            cost_basis=self.total_cost,
            total_cost=self.total_cost,
            current_price=self.last_price,
            current_value=value,
            asset_class=infer_asset_class(self.symbol, self.name),
            source=HoldingSource.TRANSACTIONS,
        )
        holding.update_gain()
        return holding


def reconcile(
    transactions: Sequence[Transaction],
    existing_dividends: Sequence[DividendPayment] = (),
) -> list[Holding]:
    """Derive holdings from a transaction log using the average-cost method.

    Transactions are replayed per symbol in ascending date order (ties keep
    their input order). Symbols that end with no shares are dropped; a sell
    larger than the position is logged but not rejected.

    Args:
        transactions: Every stored transaction, in any order.
        existing_dividends: Dividend history used to fill in income fields.

    Returns:
        Holdings with allocation set, in order of first appearance.
    """
    positions: dict[str, Position] = {}
    for tx in sorted(transactions, key=lambda t: t.date):
        position = positions.get(tx.symbol)
        if position is None:
            position = positions[tx.symbol] = Position(symbol=tx.symbol)
        position.apply(tx)

    history = payments_by_symbol(existing_dividends)
    holdings = []
    for symbol, position in positions.items():
        if position.shares <= 0:
            logger.debug("Dropping %s: no shares left after replay", symbol)
            continue
        holding = position.to_holding()
        apply_dividend_fields(holding, history.get(symbol, []))
        holdings.append(holding)

    assign_allocations(holdings)
    return holdings


def combine_holdings(
    derived: Sequence[Holding],
    snapshot: Sequence[Holding],
    transactions: Sequence[Transaction],
    dividends: Optional[Sequence[DividendPayment]] = None,
) -> list[Holding]:
    """Merge transaction-derived holdings with snapshot holdings.

    A symbol with any buy, sell or split in the log is owned by the derived
    set; snapshot holdings are kept only for symbols the log never trades.
    Kept snapshot holdings get cadence and growth from dividend history
    while keeping the income their export reported. Snapshot holdings are copied,
    never modified in place.
    """
    traded = {tx.symbol for tx in transactions if tx.type in POSITION_TYPES}
    history = payments_by_symbol(dividends or [])

    combined = list(derived)
    for holding in snapshot:
        if holding.symbol in traded:
            continue
        holding = replace(holding)
        apply_dividend_fields(holding, history.get(holding.symbol, []), keep_income=True)
        combined.append(holding)

    assign_allocations(combined)
    return combined
