import asyncio
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from portfolio_reconciler.config import DividendFrequency, Entity, FileType, HoldingSource, TimePeriod
from portfolio_reconciler.errors import ParseError, PersistenceError
from portfolio_reconciler.portfolio import Portfolio
from portfolio_reconciler.storage import JsonFileBackend, MemoryBackend

EXTRA_HISTORY = b"""\
Date,Action,Symbol,Description,Quantity,Price,Amount
2024-04-10,Buy,VTI,VANGUARD TOTAL STOCK MARKET ETF,4,250,-1000
"""


class FailingBackend(MemoryBackend):
    def __init__(self, fail_on=tuple(Entity)):
        super().__init__()
        self.fail_on = set(fail_on)

    async def save_all(self, entity, records):
        if entity in self.fail_on:
            raise PersistenceError("disk full", details={"entity": entity.value})
        await super().save_all(entity, records)


def positions_file(pay_date: str) -> bytes:
    return (
        "Symbol,Description,Quantity,Last Price,Current Value,Amount Per Share,Pay Date,Est. Annual Income\n"
        f"X,X INCOME FUND,100,$10.00,$1000.00,$0.05,{pay_date},$60.00\n"
    ).encode("utf-8")


class TestImport:
    def test_positions_then_history(self, positions_csv, history_csv):
        portfolio = Portfolio()

        first = portfolio.import_file_sync(positions_csv, "Portfolio_Positions.csv")
        assert first.file_type is FileType.POSITIONS
        assert first.holdings == 2
        assert first.transactions == 0
        assert first.dividends == 1
        assert first.start is None
        assert {h.symbol for h in portfolio.holdings} == {"AAPL", "SPAXX"}

        second = portfolio.import_file_sync(history_csv, "History_for_Account.csv")
        assert second.file_type is FileType.TRANSACTIONS
        assert second.transactions == 4
        assert second.dividends == 1
        assert second.skipped_rows == 2
        assert second.start == date(2024, 1, 2)
        assert second.end == date(2024, 3, 1)

        by_symbol = {h.symbol: h for h in portfolio.holdings}
        # AAPL is traded in the history, so its snapshot row is replaced.
        assert by_symbol["AAPL"].source is HoldingSource.TRANSACTIONS
        assert by_symbol["AAPL"].shares == Decimal("15")
        assert by_symbol["AAPL"].total_cost == Decimal("1650")
        assert by_symbol["SPAXX"].source is HoldingSource.SNAPSHOT
        total = sum(h.allocation for h in portfolio.holdings)
        assert abs(total - Decimal("100")) <= Decimal("0.01")

    def test_positions_only_detects_cadence(self):
        portfolio = Portfolio()
        for pay_date in ("01/15/2024", "02/15/2024", "03/15/2024", "04/15/2024"):
            portfolio.import_file_sync(positions_file(pay_date), "Portfolio_Positions.csv")

        assert portfolio.transactions == []
        assert len(portfolio.dividends) == 4
        holding = portfolio.holdings[0]
        assert holding.dividend_frequency is DividendFrequency.MONTHLY
        # The broker's income estimate is kept.
        assert holding.annual_income == Decimal("60.00")
        assert holding.dividend_yield == Decimal("6")

        projections = portfolio.projections(today=date(2024, 5, 1))
        assert [p.total for p in projections] == [Decimal("5")] * 12

    def test_positions_summary_has_no_transactions(self):
        summary = Portfolio().import_file_sync(
            positions_file("01/15/2024"), "Portfolio_Positions.csv"
        )
        assert summary.transactions == 0
        assert summary.dividends == 1
        assert summary.start is None and summary.end is None
        assert "2024" not in str(summary)

    def test_reimport_is_idempotent(self, history_csv):
        portfolio = Portfolio()
        portfolio.import_file_sync(history_csv)
        before = (list(portfolio.transactions), list(portfolio.dividends))

        portfolio.import_file_sync(history_csv)

        assert (portfolio.transactions, portfolio.dividends) == before

    def test_history_files_accumulate(self, history_csv):
        portfolio = Portfolio()
        portfolio.import_file_sync(history_csv)
        portfolio.import_file_sync(EXTRA_HISTORY)
        assert {h.symbol for h in portfolio.holdings} == {"AAPL", "VTI"}

    def test_date_range(self, history_csv):
        portfolio = Portfolio()
        summary = portfolio.import_file_sync(
            history_csv, date_range=(date(2024, 2, 1), date(2024, 2, 29))
        )
        assert summary.transactions == 2
        assert summary.dividends == 1
        assert summary.start == date(2024, 2, 1)
        assert [h.shares for h in portfolio.holdings] == [Decimal("10")]

    def test_summary_str(self, history_csv):
        summary = Portfolio().import_file_sync(history_csv, "history.csv")
        assert "history.csv (transactions)" in str(summary)
        assert "2024-01-02 to 2024-03-01" in str(summary)


class TestFailedImport:
    def test_parse_error_leaves_state(self, history_csv):
        portfolio = Portfolio()
        portfolio.import_file_sync(history_csv)
        before = portfolio.state

        with pytest.raises(ParseError):
            portfolio.import_file_sync(b"Name,Email\nAda,ada@example.com\n")

        assert portfolio.state is before

    def test_persistence_error_leaves_state(self, positions_csv):
        portfolio = Portfolio(FailingBackend())

        with pytest.raises(PersistenceError, match="disk full"):
            portfolio.import_file_sync(positions_csv)

        assert portfolio.state.is_empty

    def test_partial_save_restores_store(self, positions_csv):
        backend = FailingBackend(fail_on=())
        portfolio = Portfolio(backend)
        portfolio.import_file_sync(positions_csv)
        before = portfolio.state

        backend.fail_on = {Entity.TRANSACTIONS}
        with pytest.raises(PersistenceError):
            portfolio.import_file_sync(EXTRA_HISTORY)

        reloaded = Portfolio(backend)
        reloaded.load_sync()
        assert reloaded.state == before
        assert {h.symbol for h in reloaded.holdings} == {"AAPL", "SPAXX"}
        assert portfolio.state is before


class TestPersistence:
    def test_state_survives_reload(self, tmp_path, positions_csv, history_csv):
        portfolio = Portfolio(JsonFileBackend(tmp_path))
        portfolio.import_file_sync(positions_csv)
        portfolio.import_file_sync(history_csv)

        reloaded = Portfolio.from_directory(tmp_path)

        assert reloaded.state == portfolio.state

    def test_clear(self, history_csv):
        backend = MemoryBackend()
        portfolio = Portfolio(backend)
        portfolio.import_file_sync(history_csv)

        portfolio.clear_sync()

        assert portfolio.state.is_empty
        assert backend.records == {}

    def test_saves_each_entity(self, history_csv):
        backend = MemoryBackend()
        Portfolio(backend).import_file_sync(history_csv)
        assert set(backend.records) == set(Entity)

    @patch("portfolio_reconciler.portfolio.JsonFileBackend")
    def test_from_directory_uses_json_backend(self, mock_backend, tmp_path):
        mock_backend.return_value = MemoryBackend()
        portfolio = Portfolio.from_directory(tmp_path)
        mock_backend.assert_called_once_with(tmp_path)
        assert portfolio.state.is_empty


class TestQueries:
    def test_total_value_and_allocation(self):
        portfolio = Portfolio()
        portfolio.import_file_sync(b"Ticker,Qty,LastPrice\nAAPL,10,150\nMSFT,5,100\n")
        assert portfolio.total_value() == Decimal("2000")
        assert portfolio.current_allocation() == {
            "AAPL": Decimal("0.75"),
            "MSFT": Decimal("0.25"),
        }

    def test_current_allocation_empty(self):
        assert Portfolio().current_allocation() == {}

    def test_projections(self, positions_csv):
        portfolio = Portfolio()
        portfolio.import_file_sync(positions_csv)
        projections = portfolio.projections(today=date(2024, 3, 1))
        assert len(projections) == 12
        expected = sum(h.annual_income for h in portfolio.holdings)
        assert abs(sum(p.total for p in projections) - expected) < Decimal("0.000001")

    def test_period_view(self, history_csv):
        portfolio = Portfolio()
        portfolio.import_file_sync(history_csv)
        view = portfolio.period_view(TimePeriod.CUSTOM, ["February"])
        assert len(view.transactions) == 2
        assert view.period_income == Decimal("4.80")

    def test_summary(self, positions_csv):
        portfolio = Portfolio()
        portfolio.import_file_sync(positions_csv)
        summary = portfolio.summary()
        assert summary.total_value == Decimal("2000.00")
        assert summary.annual_income == Decimal("34.35")

    def test_repr(self):
        assert "Portfolio(holdings=[]" in repr(Portfolio())

    def test_load(self, history_csv):
        backend = MemoryBackend()
        Portfolio(backend).import_file_sync(history_csv)
        portfolio = Portfolio(backend)
        state = asyncio.run(portfolio.load())
        assert len(state.transactions) == 4
