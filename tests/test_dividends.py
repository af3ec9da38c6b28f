import pytest
from datetime import date
from decimal import Decimal

from builders import make_dividend
from portfolio_reconciler.config import DividendFrequency
from portfolio_reconciler.dividends import (
    annualize,
    apply_dividend_fields,
    detect_frequency,
    detect_quarterly_months,
    group_by_month,
    growth_rate,
    project,
    projection_window,
)
from portfolio_reconciler.models import Holding

TOLERANCE = Decimal("0.000001")

QUARTERLY_HISTORY = [
    make_dividend("2024-01-15", "25"),
    make_dividend("2024-04-15", "25"),
    make_dividend("2024-07-15", "26"),
    make_dividend("2024-10-15", "24"),
]


def _holding(
    symbol: str = "X",
    income: str = "100",
    frequency: DividendFrequency = DividendFrequency.QUARTERLY,
    shares: str = "100",
) -> Holding:
    return Holding(
        id=f"holding-{symbol}",
        symbol=symbol,
        name=symbol,
        shares=Decimal(shares),
        current_value=Decimal("1000"),
        annual_income=Decimal(income),
        dividend_frequency=frequency,
    )


def _monthly(start_year: int, months: int, amount: str = "1") -> list:
    return [
        make_dividend(f"{start_year + i // 12}-{i % 12 + 1:02d}-10", amount)
        for i in range(months)
    ]


class TestDetectFrequency:
    def test_quarterly(self):
        assert detect_frequency(QUARTERLY_HISTORY) is DividendFrequency.QUARTERLY

    def test_monthly(self):
        assert detect_frequency(_monthly(2024, 6)) is DividendFrequency.MONTHLY

    def test_semi_annual(self):
        history = [make_dividend("2023-06-01", "5"), make_dividend("2023-12-01", "5")]
        assert detect_frequency(history) is DividendFrequency.SEMI_ANNUAL

    def test_annual(self):
        history = [make_dividend("2022-12-01", "5"), make_dividend("2023-12-01", "5")]
        assert detect_frequency(history) is DividendFrequency.ANNUAL

    def test_unsorted_input(self):
        assert detect_frequency(list(reversed(QUARTERLY_HISTORY))) is DividendFrequency.QUARTERLY

    @pytest.mark.parametrize("count", [0, 1])
    def test_too_few_payments_assumes_quarterly(self, count):
        assert detect_frequency(QUARTERLY_HISTORY[:count]) is DividendFrequency.QUARTERLY


class TestAnnualize:
    def test_extrapolates_short_history(self):
        assert annualize(QUARTERLY_HISTORY, DividendFrequency.QUARTERLY) == Decimal("100")

    def test_extrapolates_from_cadence(self):
        history = [make_dividend("2024-01-10", "2"), make_dividend("2024-02-10", "4")]
        assert annualize(history, DividendFrequency.MONTHLY) == Decimal("36")

    def test_trailing_twelve_months(self):
        history = _monthly(2023, 12, "1") + _monthly(2024, 6, "2")
        # Jul 2023 - Jun 2024: six payments of 1 and six of 2.
        assert annualize(history, DividendFrequency.MONTHLY) == Decimal("18")

    def test_empty(self):
        assert annualize([], DividendFrequency.QUARTERLY) == Decimal("0")


class TestGrowthRate:
    def test_one_year_span(self):
        history = [make_dividend(f"2022-{m:02d}-01", "1") for m in (1, 4, 7, 10)]
        history += [make_dividend(f"2023-{m:02d}-01", "1.1") for m in (1, 4, 7, 10)]
        assert abs(growth_rate(history) - Decimal("0.1")) < TOLERANCE

    def test_compounds_over_span(self):
        history = [make_dividend(f"2021-{m:02d}-01", "1") for m in (3, 9)]
        history += [make_dividend(f"2023-{m:02d}-01", "1.21") for m in (3, 9)]
        assert abs(growth_rate(history) - Decimal("0.1")) < TOLERANCE

    def test_ignores_incomplete_years(self):
        history = [make_dividend(f"2023-{m:02d}-01", "1") for m in (1, 4, 7, 10)]
        history += [make_dividend(f"2024-{m:02d}-01", "1.5") for m in (1, 4, 7, 10)]
        history += [make_dividend("2025-01-01", "9")]
        assert abs(growth_rate(history) - Decimal("0.5")) < TOLERANCE

    def test_single_complete_year(self):
        assert growth_rate(QUARTERLY_HISTORY) == Decimal("0")

    def test_zero_earliest_total(self):
        history = [make_dividend("2022-06-01", "0"), make_dividend("2023-06-01", "2")]
        assert growth_rate(history) == Decimal("0")


class TestDetectQuarterlyMonths:
    def test_regular_quarters(self):
        assert detect_quarterly_months(QUARTERLY_HISTORY) == [1, 4, 7, 10]

    def test_months_too_close(self):
        history = [make_dividend(f"2024-{m:02d}-01", "1") for m in (1, 2, 7, 10)]
        assert detect_quarterly_months(history) == []

    def test_not_four_months(self):
        assert detect_quarterly_months(QUARTERLY_HISTORY[:3]) == []


class TestApplyDividendFields:
    def test_sets_income_yield_and_cadence(self):
        holding = _holding(income="0")
        apply_dividend_fields(holding, QUARTERLY_HISTORY)
        assert holding.dividend_frequency is DividendFrequency.QUARTERLY
        assert holding.annual_income == Decimal("100")
        assert holding.dividend_yield == Decimal("10")
        assert holding.dividend_growth == Decimal("0")

    def test_no_history_leaves_holding_alone(self):
        holding = _holding(income="40", frequency=DividendFrequency.ANNUAL)
        apply_dividend_fields(holding, [])
        assert holding.annual_income == Decimal("40")
        assert holding.dividend_frequency is DividendFrequency.ANNUAL


class TestProjectionWindow:
    def test_wraps_year(self):
        window = projection_window(date(2024, 11, 20))
        assert window[0] == (2024, 10)
        assert window[2] == (2025, 0)
        assert len(window) == 12


class TestProject:
    def test_twelve_months_from_current(self):
        projections = project([], [], today=date(2024, 11, 20))
        assert [p.month for p in projections][:3] == ["2024-11", "2024-12", "2025-01"]
        assert projections[-1].month == "2025-10"
        assert all(p.total == 0 for p in projections)

    def test_quarterly_uses_detected_months(self):
        holding = _holding()
        apply_dividend_fields(holding, QUARTERLY_HISTORY)

        projections = project([holding], QUARTERLY_HISTORY, today=date(2025, 2, 3))

        paid = {p.month: p.total for p in projections if p.total}
        assert paid == {
            "2025-04": Decimal("25"),
            "2025-07": Decimal("25"),
            "2025-10": Decimal("25"),
            "2026-01": Decimal("25"),
        }
        assert projections[2].by_symbol == {"X": Decimal("25")}

    def test_quarterly_fallback_offsets(self):
        projections = project([_holding()], [], today=date(2025, 2, 3))
        paid = [i for i, p in enumerate(projections) if p.total]
        assert paid == [0, 3, 6, 9]

    def test_irregular_uses_quarterly_fallback(self):
        holding = _holding(frequency=DividendFrequency.IRREGULAR)
        projections = project([holding], QUARTERLY_HISTORY, today=date(2025, 2, 3))
        paid = [i for i, p in enumerate(projections) if p.total]
        assert paid == [0, 3, 6, 9]

    def test_semi_annual_and_annual_offsets(self):
        semi = _holding("S", frequency=DividendFrequency.SEMI_ANNUAL)
        annual = _holding("A", frequency=DividendFrequency.ANNUAL)
        projections = project([semi, annual], [], today=date(2025, 2, 3))

        assert projections[0].by_symbol == {"S": Decimal("50")}
        assert projections[6].by_symbol == {"S": Decimal("50")}
        assert projections[11].by_symbol == {"A": Decimal("100")}

    @pytest.mark.parametrize(
        "frequency",
        [
            DividendFrequency.MONTHLY,
            DividendFrequency.QUARTERLY,
            DividendFrequency.SEMI_ANNUAL,
            DividendFrequency.ANNUAL,
        ],
    )
    def test_projection_sums_to_annual_income(self, frequency):
        holding = _holding(income="123.45", frequency=frequency)
        projections = project([holding], [], today=date(2025, 6, 1))
        total = sum(p.total for p in projections)
        assert abs(total - Decimal("123.45")) < TOLERANCE

    def test_skips_holdings_without_shares_or_income(self):
        holdings = [_holding("A", shares="0"), _holding("B", income="0")]
        projections = project(holdings, [], today=date(2025, 6, 1))
        assert all(p.total == 0 for p in projections)


class TestGroupByMonth:
    def test_totals_in_month_order(self):
        history = [
            make_dividend("2024-03-15", "2", symbol="B"),
            make_dividend("2024-01-15", "1"),
            make_dividend("2024-03-01", "3"),
        ]
        assert group_by_month(history) == {
            "2024-01": Decimal("1"),
            "2024-03": Decimal("5"),
        }
        assert list(group_by_month(history)) == ["2024-01", "2024-03"]
