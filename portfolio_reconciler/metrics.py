"""Portfolio-level totals for the dashboard summary."""

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from .config import AssetClass
from .dividends import group_by_month
from .models import HUNDRED, ZERO, DividendPayment, Holding


@dataclass(frozen=True)
class PortfolioSummary:
    total_value: Decimal = ZERO
    total_cost: Decimal = ZERO
    total_gain: Decimal = ZERO
    total_gain_percent: Decimal = ZERO
    annual_income: Decimal = ZERO
    portfolio_yield: Decimal = ZERO
    value_by_asset_class: dict[AssetClass, Decimal] = field(default_factory=dict)
    income_by_asset_class: dict[AssetClass, Decimal] = field(default_factory=dict)
    dividends_by_month: dict[str, Decimal] = field(default_factory=dict)
    top_gainer: Optional[str] = None
    top_loser: Optional[str] = None
    highest_yield: Optional[str] = None


def summarize(
    holdings: Sequence[Holding],
    dividends: Sequence[DividendPayment] = (),
) -> PortfolioSummary:
    """Aggregate holdings and realized dividends into dashboard totals."""
    total_value = sum((h.current_value for h in holdings), start=ZERO)
    total_cost = sum((h.cost_basis for h in holdings), start=ZERO)
    total_gain = total_value - total_cost
    annual_income = sum((h.annual_income for h in holdings), start=ZERO)

    value_by_class: dict[AssetClass, Decimal] = defaultdict(lambda: ZERO)
    income_by_class: dict[AssetClass, Decimal] = defaultdict(lambda: ZERO)
    for holding in holdings:
        value_by_class[holding.asset_class] += holding.current_value
        income_by_class[holding.asset_class] += holding.annual_income

    payers = [h for h in holdings if h.dividend_yield > 0]

    return PortfolioSummary(
        total_value=total_value,
        total_cost=total_cost,
        total_gain=total_gain,
        total_gain_percent=total_gain / total_cost * HUNDRED if total_cost > 0 else ZERO,
        annual_income=annual_income,
        portfolio_yield=annual_income / total_value * HUNDRED if total_value > 0 else ZERO,
        value_by_asset_class=dict(value_by_class),
        income_by_asset_class=dict(income_by_class),
        dividends_by_month=group_by_month(dividends),
        top_gainer=max(holdings, key=lambda h: h.gain_percent).symbol if holdings else None,
        top_loser=min(holdings, key=lambda h: h.gain_percent).symbol if holdings else None,
        highest_yield=max(payers, key=lambda h: h.dividend_yield).symbol if payers else None,
    )
