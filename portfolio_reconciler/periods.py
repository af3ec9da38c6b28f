"""Reporting-window filters for transactions and dividends."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .config import TimePeriod, TransactionType
from .models import ZERO, DividendPayment, Transaction

MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)


@dataclass(frozen=True)
class PeriodView:
    """Records falling in a reporting window plus the window's totals."""

    transactions: list[Transaction] = field(default_factory=list)
    dividends: list[DividendPayment] = field(default_factory=list)
    period_income: Decimal = ZERO
    period_gain: Decimal = ZERO


def date_range(
    period: TimePeriod,
    today: Optional[date] = None,
) -> Optional[tuple[date, date]]:
    """Inclusive bounds for a period, or None when it has no date range.

    Custom periods select by month name instead of dates, so they return None.
    """
    today = today or date.today()

    if period is TimePeriod.MTD:
        return today.replace(day=1), today
    if period is TimePeriod.QTD:
        quarter_start = (today.month - 1) // 3 * 3 + 1
        return today.replace(month=quarter_start, day=1), today
    if period is TimePeriod.YTD:
        return today.replace(month=1, day=1), today
    if period is TimePeriod.PRIOR_YEAR:
        last_year = today.year - 1
        return date(last_year, 1, 1), date(last_year, 12, 31)
    return None


def _month_numbers(custom_months: Iterable[str]) -> set[int]:
    numbers = set()
    for name in custom_months:
        cleaned = name.strip().lower()
        if cleaned not in MONTH_NAMES:
            raise ValueError(f"Unknown month name: {name!r}")
        numbers.add(MONTH_NAMES.index(cleaned) + 1)
    return numbers


def filter_period(
    transactions: Sequence[Transaction],
    dividends: Sequence[DividendPayment],
    period: TimePeriod,
    custom_months: Optional[Iterable[str]] = None,
    today: Optional[date] = None,
) -> PeriodView:
    """Select the transactions and dividends inside a reporting window.

    Custom periods keep records whose month is one of ``custom_months``,
    whatever the year; with no months selected nothing is filtered out.

    ``period_gain`` is a cash-flow figure (sale proceeds minus purchase cost
    plus dividend income), not a market-value gain.
    """
    if period is TimePeriod.CUSTOM:
        months = _month_numbers(custom_months or [])

        def keep(day: date) -> bool:
            return not months or day.month in months
    else:
        bounds = date_range(period, today)

        def keep(day: date) -> bool:
            return bounds is None or bounds[0] <= day <= bounds[1]

    selected_transactions = [t for t in transactions if keep(t.date)]
    selected_dividends = [d for d in dividends if keep(d.date)]

    income = sum((d.amount for d in selected_dividends), start=ZERO)
    sold = sum(
        (t.amount for t in selected_transactions if t.type is TransactionType.SELL),
        start=ZERO,
    )
    bought = sum(
        (t.amount for t in selected_transactions if t.type is TransactionType.BUY),
        start=ZERO,
    )

    return PeriodView(
        transactions=selected_transactions,
        dividends=selected_dividends,
        period_income=income,
        period_gain=sold - bought + income,
    )
