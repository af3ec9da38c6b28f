"""Dividend cadence detection, annualization and forward income projection.

Cadence is classified from the average gap, in calendar months, between a
symbol's consecutive payments:

    average gap <= 1.5  -> monthly
    average gap <= 4    -> quarterly
    average gap <= 8    -> semi-annual
    otherwise           -> annual

Fewer than two payments gives no gap to measure, so the symbol is assumed to
pay quarterly.

Projection spreads each holding's annual income over the twelve months that
start with the current month. Where the money lands is a heuristic: detected
quarterly pay months when the history shows them, otherwise fixed offsets
into the projection window.
"""

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

import numpy as np

from .config import DividendFrequency
from .models import HUNDRED, ZERO, DividendPayment, Holding, MonthProjection

logger = logging.getLogger(__name__)

PROJECTION_MONTHS = 12
QUARTER_OFFSETS = (0, 3, 6, 9)
SEMI_ANNUAL_OFFSETS = (0, 6)
ANNUAL_OFFSETS = (11,)

# Upper bounds on the average gap (in months) for each cadence.
CADENCE_THRESHOLDS: tuple[tuple[float, DividendFrequency], ...] = (
    (1.5, DividendFrequency.MONTHLY),
    (4.0, DividendFrequency.QUARTERLY),
    (8.0, DividendFrequency.SEMI_ANNUAL),
)


def month_index(day: date) -> int:
    """Months since year 0, so that consecutive months differ by one."""
    return day.year * 12 + day.month - 1


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def payments_by_symbol(history: Iterable[DividendPayment]) -> dict[str, list[DividendPayment]]:
    """Group payments by symbol, each group sorted by date."""
    grouped: dict[str, list[DividendPayment]] = defaultdict(list)
    for payment in history:
        grouped[payment.symbol].append(payment)
    return {symbol: sorted(items, key=lambda p: p.date) for symbol, items in grouped.items()}


def detect_frequency(payments: Sequence[DividendPayment]) -> DividendFrequency:
    if len(payments) < 2:
        return DividendFrequency.QUARTERLY

    months = np.array(sorted(month_index(p.date) for p in payments))
    average_gap = float(np.diff(months).mean())

    for upper_bound, frequency in CADENCE_THRESHOLDS:
        if average_gap <= upper_bound:
            return frequency
    return DividendFrequency.ANNUAL


def annualize(payments: Sequence[DividendPayment], frequency: DividendFrequency) -> Decimal:
    """Estimate a symbol's annual dividend income from its payment history.

    With at least twelve distinct months of history the trailing twelve
    months (ending with the latest payment month) are summed directly.
    Shorter histories are extrapolated from the average payment.
    """
    if not payments:
        return ZERO

    buckets = {month_index(p.date) for p in payments}
    if len(buckets) >= PROJECTION_MONTHS:
        latest = max(buckets)
        return sum(
            (p.amount for p in payments if month_index(p.date) > latest - PROJECTION_MONTHS),
            start=ZERO,
        )

    total = sum((p.amount for p in payments), start=ZERO)
    return total / len(payments) * frequency.payments_per_year


def growth_rate(payments: Sequence[DividendPayment]) -> Decimal:
    """Compound annual growth of yearly dividend totals, as a fraction.

    Only complete years count: a year is complete when it has as many
    payments as the year with the most payments. Returns 0 when fewer than
    two complete years exist or the earliest total is not positive.
    """
    totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[int, int] = defaultdict(int)
    for payment in payments:
        totals[payment.date.year] += payment.amount
        counts[payment.date.year] += 1

    if not counts:
        return ZERO

    most_payments = max(counts.values())
    complete_years = sorted(year for year, count in counts.items() if count >= most_payments)
    if len(complete_years) < 2:
        return ZERO

    earliest, latest = complete_years[0], complete_years[-1]
    if totals[earliest] <= 0:
        return ZERO

    span = Decimal(latest - earliest)
    return (totals[latest] / totals[earliest]) ** (Decimal(1) / span) - 1


def detect_quarterly_months(payments: Sequence[DividendPayment]) -> list[int]:
    """Calendar months (1-12) a quarterly payer pays in, or [] if unclear.

    Detection succeeds only when the history covers exactly four distinct
    calendar months, each at least two months after the previous one.
    """
    months = sorted({p.date.month for p in payments})
    if len(months) != 4:
        return []
    if any(later - earlier < 2 for earlier, later in zip(months, months[1:])):
        return []
    return months


def apply_dividend_fields(
    holding: Holding,
    payments: Sequence[DividendPayment],
    keep_income: bool = False,
) -> None:
    """Patch cadence, income, yield and growth onto a holding from its history.

    Args:
        holding: Holding to update in place.
        payments: The symbol's dividend payments.
        keep_income: Keep a positive annual income already on the holding
            (e.g. a broker's own estimate from a positions export).
    """
    if not payments:
        return

    frequency = detect_frequency(payments)
    holding.dividend_frequency = frequency
    holding.dividend_growth = growth_rate(payments) * HUNDRED

    if not (keep_income and holding.annual_income > 0):
        holding.annual_income = annualize(payments, frequency)

    holding.dividend_yield = (
        holding.annual_income / holding.current_value * HUNDRED
        if holding.current_value > 0
        else ZERO
    )


def projection_window(today: Optional[date] = None) -> list[tuple[int, int]]:
    """The twelve (year, month) pairs starting with the current month."""
    today = today or date.today()
    start = month_index(today)
    return [divmod(start + offset, 12) for offset in range(PROJECTION_MONTHS)]


def _payment_offsets(
    frequency: DividendFrequency,
    window: list[tuple[int, int]],
    payments: Sequence[DividendPayment],
) -> tuple[int, ...]:
    if frequency is DividendFrequency.MONTHLY:
        return tuple(range(PROJECTION_MONTHS))
    if frequency is DividendFrequency.SEMI_ANNUAL:
        return SEMI_ANNUAL_OFFSETS
    if frequency is DividendFrequency.ANNUAL:
        return ANNUAL_OFFSETS
    if frequency is DividendFrequency.QUARTERLY:
        months = detect_quarterly_months(payments)
        if months:
            return tuple(i for i, (_, month0) in enumerate(window) if month0 + 1 in months)
    return QUARTER_OFFSETS


def project(
    holdings: Sequence[Holding],
    dividend_history: Sequence[DividendPayment],
    today: Optional[date] = None,
) -> list[MonthProjection]:
    """Project dividend income for the next twelve months.

    Args:
        holdings: Current holdings with annual income and cadence set.
        dividend_history: Realized payments, used to place quarterly payers.
        today: Reference date; the window starts with its month.

    Returns:
        Twelve MonthProjection entries, oldest first.
    """
    window = projection_window(today)
    totals = [ZERO] * PROJECTION_MONTHS
    contributions: list[dict[str, Decimal]] = [defaultdict(lambda: ZERO) for _ in window]
    history = payments_by_symbol(dividend_history)

    for holding in holdings:
        if holding.shares <= 0 or holding.annual_income <= 0:
            continue

        offsets = _payment_offsets(
            holding.dividend_frequency, window, history.get(holding.symbol, [])
        )
        share = holding.annual_income / len(offsets)
        for offset in offsets:
            totals[offset] += share
            contributions[offset][holding.symbol] += share

    return [
        MonthProjection(
            month=month_key(year, month0 + 1),
            total=totals[i],
            by_symbol=dict(contributions[i]),
        )
        for i, (year, month0) in enumerate(window)
    ]


def group_by_month(history: Iterable[DividendPayment]) -> dict[str, Decimal]:
    """Total realized dividends per "YYYY-MM", in chronological order."""
    grouped: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for payment in history:
        grouped[month_key(payment.date.year, payment.date.month)] += payment.amount
    return dict(sorted(grouped.items()))
