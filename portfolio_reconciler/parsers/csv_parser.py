"""Deterministic parser for brokerage CSV exports."""

import csv
import io
import logging
from typing import Iterator, Optional

from ..config import FileType, HoldingSource, ParserConfig, TransactionType
from ..errors import ParseError
from ..models import (
    HUNDRED,
    ZERO,
    DividendPayment,
    Holding,
    ParseResult,
    PositionRow,
    RawRow,
    Transaction,
    TransactionRow,
    assign_allocations,
)
from .base import BaseParser
from .columns import (
    POSITION_COLUMNS,
    TRANSACTION_COLUMNS,
    detect_file_type,
    find_header,
    map_columns,
    normalize_header,
)
from .values import (
    classify_action,
    extract_company_name,
    is_blank,
    normalize_symbol,
    parse_asset_class,
    parse_date,
    parse_number,
)

logger = logging.getLogger(__name__)

ESSENTIAL_COLUMNS: dict[FileType, tuple[str, ...]] = {
    FileType.POSITIONS: ("symbol", "shares"),
    FileType.TRANSACTIONS: ("symbol", "action"),
}


class CsvParser(BaseParser):
    """Parser for position snapshots and transaction histories in CSV form."""

    def __init__(self, config: Optional[ParserConfig] = None) -> None:
        self.config = config or ParserConfig()

    def parse(self, data: bytes, filename: str = "") -> ParseResult:
        rows = list(csv.reader(io.StringIO(self._decode(data, filename))))

        header_index = find_header(rows, self.config)
        if header_index is None:
            raise ParseError(
                "Could not find a recognizable header row",
                details={"filename": filename},
            )

        headers = [normalize_header(cell) for cell in rows[header_index]]
        file_type = detect_file_type(headers, filename, self.config)
        if file_type is None:
            raise ParseError(
                "File is neither a positions export nor a transaction history",
                details={"filename": filename, "headers": headers},
            )

        table = POSITION_COLUMNS if file_type is FileType.POSITIONS else TRANSACTION_COLUMNS
        columns = map_columns(headers, table)
        logger.debug("Detected %s file %r, columns: %s", file_type.value, filename, columns)

        missing = [name for name in ESSENTIAL_COLUMNS[file_type] if name not in columns]
        if missing:
            logger.warning(
                "Missing essential columns %s in %r; affected rows will be skipped",
                ", ".join(missing), filename,
            )

        raw_rows = list(self._raw_rows(rows, header_index, columns, file_type))
        if file_type is FileType.POSITIONS:
            result = self._parse_positions(raw_rows, filename)
        else:
            result = self._parse_transactions(raw_rows, filename)

        logger.info(
            "Parsed %s file %r: %d holdings, %d transactions, %d dividends, %d rows skipped",
            file_type.value,
            filename,
            len(result.holdings),
            len(result.transactions),
            len(result.dividends),
            result.skipped_rows,
        )
        return result

    def _decode(self, data: bytes, filename: str) -> str:
        if isinstance(data, str):
            text = data
        else:
            try:
                text = data.decode("utf-8-sig")
            except UnicodeDecodeError:
                text = data.decode("cp1252", errors="replace")

        if not text.strip():
            raise ParseError("File is empty", details={"filename": filename})
        return text

    def _raw_rows(
        self,
        rows: list[list[str]],
        header_index: int,
        columns: dict[str, int],
        file_type: FileType,
    ) -> Iterator[RawRow]:
        row_cls = PositionRow if file_type is FileType.POSITIONS else TransactionRow
        for offset, row in enumerate(rows[header_index + 1:], start=header_index + 2):
            if not any(cell.strip() for cell in row):
                continue
            cells = {
                name: row[index].strip() if index < len(row) else ""
                for name, index in columns.items()
            }
            yield row_cls(line_number=offset, cells=cells)

    def _skip(self, row: RawRow, reason: str) -> None:
        logger.debug("Skipping line %d: %s", row.line_number, reason)

    def _is_footer(self, symbol: str) -> bool:
        lowered = symbol.lower()
        return lowered == "symbol" or any(m in lowered for m in self.config.FOOTER_MARKERS)

    # Positions

    def _parse_positions(self, rows: list[RawRow], filename: str) -> ParseResult:
        holdings: dict[str, Holding] = {}
        dividends: list[DividendPayment] = []
        transactions: list[Transaction] = []
        skipped = 0

        for row in rows:
            holding = self._holding_from_row(row)
            if holding is None:
                skipped += 1
                continue

            if holding.symbol in holdings:
                _combine_holdings(holdings[holding.symbol], holding)
            else:
                holdings[holding.symbol] = holding

            dividend = self._snapshot_dividend(row, holding)
            if dividend is not None:
                dividends.append(dividend)
                transactions.append(
                    Transaction(
                        id=f"transaction-{dividend.symbol}-{dividend.date.isoformat()}-{row.line_number}",
                        date=dividend.date,
                        type=TransactionType.DIVIDEND,
                        symbol=dividend.symbol,
                        company_name=dividend.company_name,
                        amount=dividend.amount,
                        currency=dividend.currency,
                        notes="Dividend payment",
                    )
                )

        result_holdings = list(holdings.values())
        assign_allocations(result_holdings)

        return ParseResult(
            file_type=FileType.POSITIONS,
            transactions=transactions,
            dividends=dividends,
            holdings=result_holdings,
            skipped_rows=skipped,
            source_name=filename,
        )

    def _holding_from_row(self, row: RawRow) -> Optional[Holding]:
        cells = row.cells
        symbol = normalize_symbol(cells.get("symbol", ""))
        if not symbol or self._is_footer(symbol):
            self._skip(row, "no usable symbol")
            return None

        shares = parse_number(cells.get("shares", ""))
        if shares <= 0:
            self._skip(row, f"no shares for {symbol}")
            return None

        name = cells.get("name", "") or symbol
        price = parse_number(cells.get("current_price", ""))
        value = parse_number(cells.get("current_value", ""))
        if value <= 0:
            value = price * shares
        if price <= 0 and value > 0:
            price = value / shares

        cost_basis = parse_number(cells.get("cost_basis", ""))
        cost_per_share = parse_number(cells.get("cost_per_share", ""))
        if cost_per_share <= 0 and cost_basis > 0:
            cost_per_share = cost_basis / shares
        elif cost_basis <= 0 and cost_per_share > 0:
            cost_basis = cost_per_share * shares
        elif cost_basis <= 0:
            # No cost data at all: assume the position is carried at market.
            cost_basis = value
            cost_per_share = price

        dividend_yield = parse_number(cells.get("dividend_yield", ""))
        annual_income = parse_number(cells.get("annual_income", ""))
        if annual_income <= 0 and dividend_yield > 0:
            annual_income = dividend_yield / HUNDRED * value
        elif dividend_yield <= 0 and annual_income > 0 and value > 0:
            dividend_yield = annual_income / value * HUNDRED

        holding = Holding(
            id=f"holding-{symbol}",
            symbol=symbol,
            name=name,
            shares=shares,
            cost_per_share=cost_per_share,
            cost_basis=cost_basis,
            total_cost=cost_basis,
            current_price=price,
            current_value=value,
            dividend_yield=dividend_yield,
            annual_income=annual_income,
            asset_class=parse_asset_class(cells.get("asset_class", ""), symbol, name),
            sector=cells.get("sector", "") or "Other",
            source=HoldingSource.SNAPSHOT,
        )
        holding.update_gain()
        return holding

    def _snapshot_dividend(self, row: RawRow, holding: Holding) -> Optional[DividendPayment]:
        per_share = parse_number(row.cells.get("amount_per_share", ""))
        if per_share <= 0:
            return None

        pay_date = parse_date(row.cells.get("pay_date", ""), self.config.DATE_FORMATS)
        if pay_date is None:
            logger.debug(
                "Line %d: dividend of %s per share for %s has no pay date",
                row.line_number, per_share, holding.symbol,
            )
            return None

        return DividendPayment(
            id=f"dividend-{holding.symbol}-{pay_date.isoformat()}-{row.line_number}",
            holding_id=holding.id,
            symbol=holding.symbol,
            company_name=holding.name,
            date=pay_date,
            amount=per_share * holding.shares,
            shares=holding.shares,
            currency=self.config.DEFAULT_CURRENCY,
        )

    # Transactions

    def _parse_transactions(self, rows: list[RawRow], filename: str) -> ParseResult:
        transactions: list[Transaction] = []
        dividends: list[DividendPayment] = []
        skipped = 0

        for row in rows:
            transaction = self._transaction_from_row(row)
            if transaction is None:
                skipped += 1
                continue

            transactions.append(transaction)
            if transaction.type is TransactionType.DIVIDEND:
                dividends.append(
                    DividendPayment(
                        id=f"dividend-{transaction.symbol}-{transaction.date.isoformat()}-{row.line_number}",
                        holding_id=f"holding-{transaction.symbol}",
                        symbol=transaction.symbol,
                        company_name=transaction.company_name,
                        date=transaction.date,
                        amount=transaction.amount,
                        shares=transaction.shares,
                        tax=transaction.tax,
                        currency=transaction.currency,
                    )
                )

        return ParseResult(
            file_type=FileType.TRANSACTIONS,
            transactions=transactions,
            dividends=dividends,
            skipped_rows=skipped,
            source_name=filename,
        )

    def _transaction_from_row(self, row: RawRow) -> Optional[Transaction]:
        cells = row.cells
        symbol = normalize_symbol(cells.get("symbol", ""))
        if not symbol or self._is_footer(symbol):
            self._skip(row, "no usable symbol")
            return None

        action = cells.get("action", "")
        description = cells.get("description", "")
        kind = classify_action(action, description)
        if kind is None:
            self._skip(row, f"unrecognized action {action!r} for {symbol}")
            return None

        when = parse_date(cells.get("date", ""), self.config.DATE_FORMATS) or parse_date(
            cells.get("settlement_date", ""), self.config.DATE_FORMATS
        )
        if when is None:
            self._skip(row, f"no readable date for {symbol}")
            return None

        shares = abs(parse_number(cells.get("shares", "")))
        price = abs(parse_number(cells.get("price", "")))
        amount = abs(parse_number(cells.get("amount", "")))
        if amount == ZERO and kind in (TransactionType.BUY, TransactionType.SELL):
            amount = shares * price

        fees = abs(parse_number(cells.get("fees", ""))) + abs(
            parse_number(cells.get("commission", ""))
        )
        currency = cells.get("currency", "")
        notes = f"{action}: {description}" if action and description else action or description

        return Transaction(
            id=f"transaction-{symbol}-{when.isoformat()}-{row.line_number}",
            date=when,
            type=kind,
            symbol=symbol,
            company_name=extract_company_name(description, symbol),
            shares=shares,
            price=price,
            amount=amount,
            fees=fees,
            tax=abs(parse_number(cells.get("tax", ""))),
            currency=currency if currency and not is_blank(currency) else self.config.DEFAULT_CURRENCY,
            notes=notes,
        )


def _combine_holdings(target: Holding, other: Holding) -> None:
    """Fold a second row for the same symbol (another account) into ``target``."""
    target.shares += other.shares
    target.current_value += other.current_value
    target.cost_basis += other.cost_basis
    target.total_cost = target.cost_basis
    target.annual_income += other.annual_income
    target.cost_per_share = target.cost_basis / target.shares
    if target.current_value > 0:
        target.current_price = target.current_value / target.shares
        target.dividend_yield = target.annual_income / target.current_value * HUNDRED
    target.update_gain()


def parse_file(data: bytes, filename: str = "", config: Optional[ParserConfig] = None) -> ParseResult:
    """Parse an exported file with the default CSV parser."""
    return CsvParser(config).parse(data, filename)
