"""
Portfolio Reconciler - Turns brokerage CSV exports into holdings, dividend history and income projections.

Exports:
    Transaction: Dataclass representing one brokerage event
    DividendPayment: Dataclass representing a realized dividend payment
    Holding: Dataclass representing a current position with cost basis and income
    MonthProjection: Projected dividend income for one month
    ParseResult: Records parsed from one imported file
    PortfolioState: Holdings, transactions and dividends as stored
    Portfolio: Main class for importing files and querying the derived portfolio
    CsvParser: Deterministic parser for positions and transaction history exports
    reconcile: Rebuild holdings from a transaction log (average-cost method)
    project: Twelve-month dividend income projection
    filter_period: Select transactions and dividends in a reporting window
    merge: Combine stored state with a parsed file without duplicates
"""

from .dividends import project
from .errors import ParseError, PersistenceError, PortfolioError
from .models import (
    DividendPayment,
    Holding,
    MonthProjection,
    ParseResult,
    PortfolioState,
    Transaction,
)
from .parsers import BaseParser, CsvParser
from .periods import PeriodView, filter_period
from .portfolio import ImportSummary, Portfolio
from .reconcile import reconcile
from .store import PortfolioStore, merge

__all__ = [
    "Transaction",
    "DividendPayment",
    "Holding",
    "MonthProjection",
    "ParseResult",
    "PortfolioState",
    "Portfolio",
    "ImportSummary",
    "BaseParser",
    "CsvParser",
    "reconcile",
    "project",
    "PeriodView",
    "filter_period",
    "PortfolioStore",
    "merge",
    "PortfolioError",
    "ParseError",
    "PersistenceError",
]
