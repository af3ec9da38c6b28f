#!/usr/bin/env python3
import argparse
import logging
import os
import select
import sys
import termios
import tty
from datetime import date
from decimal import Decimal
from functools import partial
from io import StringIO
from pathlib import Path
from typing import Callable, Optional, TypeVar

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from portfolio_reconciler import Portfolio, PortfolioError
from portfolio_reconciler.config import TimePeriod
from portfolio_reconciler.metrics import PortfolioSummary
from portfolio_reconciler.models import MonthProjection
from portfolio_reconciler.periods import PeriodView

logger = logging.getLogger(__name__)
console = Console()

ANSI_BOLD_CYAN = "\033[1;36m"
ANSI_DIM = "\033[2m"
ANSI_RESET = "\033[0m"

KEYS = {"\x1b[A": "up", "\x1b[B": "down", "\r": "enter", "\n": "enter", "\x1b": "escape"}
MOVES = {"up": -1, "down": 1}

PERIODS: list[TimePeriod] = list(TimePeriod)
PERIOD_LABELS: dict[TimePeriod, str] = {
    TimePeriod.MTD: "Month to date",
    TimePeriod.QTD: "Quarter to date",
    TimePeriod.YTD: "Year to date",
    TimePeriod.PRIOR_YEAR: "Prior year",
    TimePeriod.CUSTOM: "Custom months",
}
DEFAULT_PERIOD_INDEX = 2

T = TypeVar("T")


def _money(value: Decimal) -> str:
    return f"${value:,.2f}"


def _gain_text(value: Decimal, percent: Optional[Decimal] = None) -> Text:
    label = f"{'+' if value >= 0 else '-'}${abs(value):,.2f}"
    if percent is not None:
        label += f" ({float(percent):+.1f}%)"
    return Text(label, style="green" if value >= 0 else "red")


def _parse_day(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {text!r}") from e


def holdings_table(portfolio: Portfolio, title: str = "Holdings") -> Table:
    """Build a Rich table of current holdings, largest first."""
    t = Table(title=title, box=box.ROUNDED, title_style="bold white")
    t.add_column("Symbol", style="cyan")
    t.add_column("Name", style="dim", max_width=28, overflow="ellipsis")
    t.add_column("Shares", justify="right")
    t.add_column("Avg Cost", justify="right")
    t.add_column("Price", justify="right")
    t.add_column("Value", justify="right")
    t.add_column("Gain", justify="right")
    t.add_column("Yield", justify="right", style="yellow")
    t.add_column("Income", justify="right", style="green")
    t.add_column("Cadence", style="dim")
    t.add_column("Alloc", justify="right", style="yellow")

    for h in sorted(portfolio.holdings, key=lambda h: h.current_value, reverse=True):
        t.add_row(
            h.symbol,
            h.name,
            f"{h.shares:,.4f}".rstrip("0").rstrip("."),
            _money(h.cost_per_share),
            _money(h.current_price),
            _money(h.current_value),
            _gain_text(h.gain, h.gain_percent),
            f"{float(h.dividend_yield):.2f}%",
            _money(h.annual_income),
            h.dividend_frequency.value,
            f"{float(h.allocation):.1f}%",
        )

    t.add_section()
    t.add_row(
        "", "", "", "", "Total", f"[bold]{_money(portfolio.total_value())}[/bold]",
        "", "", "", "", "",
    )
    return t


def projection_table(projections: list[MonthProjection]) -> Table:
    """Build a Rich table of projected dividend income per month."""
    t = Table(title="Projected Dividend Income", box=box.ROUNDED, title_style="bold white")
    t.add_column("Month", style="cyan")
    t.add_column("Income", justify="right", style="green")
    t.add_column("Top payers", style="dim")

    total = Decimal(0)
    for p in projections:
        total += p.total
        payers = sorted(p.by_symbol.items(), key=lambda kv: kv[1], reverse=True)[:3]
        t.add_row(
            p.month,
            _money(p.total),
            ", ".join(f"{sym} {_money(amount)}" for sym, amount in payers),
        )

    t.add_section()
    t.add_row("[bold]12 months[/bold]", f"[bold]{_money(total)}[/bold]", "")
    return t


def summary_panel(summary: PortfolioSummary) -> Panel:
    """Build a Rich panel with the portfolio totals."""
    t = Table.grid(padding=(0, 2))
    t.add_column(style="dim")
    t.add_column(justify="right")
    t.add_row("Value", _money(summary.total_value))
    t.add_row("Cost basis", _money(summary.total_cost))
    t.add_row("Gain", _gain_text(summary.total_gain, summary.total_gain_percent))
    t.add_row("Annual income", _money(summary.annual_income))
    t.add_row("Yield", f"{float(summary.portfolio_yield):.2f}%")
    for asset_class, value in sorted(
        summary.value_by_asset_class.items(), key=lambda kv: kv[1], reverse=True
    ):
        t.add_row(f"  {asset_class.value}", _money(value))
    if summary.top_gainer:
        t.add_row("Top gainer", summary.top_gainer)
        t.add_row("Top loser", summary.top_loser or "")
    if summary.highest_yield:
        t.add_row("Highest yield", summary.highest_yield)
    return Panel(t, title="Summary", box=box.ROUNDED)


def period_table(view: PeriodView, title: str) -> Table:
    """Build a Rich table of the transactions and dividends in a period."""
    t = Table(
        title=title,
        box=box.ROUNDED,
        title_style="bold white",
        caption=(
            f"income {_money(view.period_income)} · "
            f"cash-flow gain {_money(view.period_gain)}"
        ),
        caption_style="dim",
    )
    t.add_column("Date")
    t.add_column("Type", no_wrap=True)
    t.add_column("Symbol", style="cyan")
    t.add_column("Shares", justify="right")
    t.add_column("Amount", justify="right")

    for tx in sorted(view.transactions, key=lambda tx: tx.date):
        style = {"BUY": "green", "SELL": "red", "DIVIDEND": "yellow"}.get(tx.type.value, "dim")
        t.add_row(
            tx.date.isoformat(),
            Text(tx.type.value, style=f"bold {style}"),
            tx.symbol,
            str(tx.shares) if tx.shares else "",
            _money(tx.amount),
        )
    return t


def _ansi(renderable) -> str:
    """Render a Rich object to a string carrying its ANSI styling."""
    capture = Console(file=StringIO(), width=console.width, force_terminal=True)
    capture.print(renderable)
    return capture.file.getvalue().rstrip("\n")


def _read_key() -> Optional[str]:
    """Block for one keypress and name it, or return None for other keys."""
    fd = sys.stdin.fileno()
    saved = termios.tcgetattr(fd)
    tty.setraw(fd)
    try:
        seq = os.read(fd, 1)
        # Arrow keys arrive as ESC [ A; a lone ESC has nothing queued after it.
        while seq.startswith(b"\x1b") and len(seq) < 3 and select.select([fd], [], [], 0.05)[0]:
            seq += os.read(fd, 1)
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
    return KEYS.get(seq.decode(errors="ignore"))


def _frame(
    options: list[T],
    labels: dict[T, str],
    selected: int,
    preview: Callable[[T], Table] | None,
) -> str:
    lines = [_ansi(preview(options[selected]))] if preview else []
    for i, opt in enumerate(options):
        if i == selected:
            lines.append(f"{ANSI_BOLD_CYAN}  ▸ {labels[opt]}{ANSI_RESET}")
        else:
            lines.append(f"{ANSI_DIM}    {labels[opt]}{ANSI_RESET}")
    lines.append(f"{ANSI_DIM}  ↑/↓ move · enter select · esc cancel{ANSI_RESET}")
    return "\n".join(lines) + "\n"


def _draw(frame: str) -> int:
    sys.stdout.write(frame)
    sys.stdout.flush()
    return frame.count("\n")


def _erase(line_count: int) -> None:
    up = f"\033[{line_count}A"
    sys.stdout.write(up + "\033[2K\n" * line_count + up)


def pick(
    options: list[T],
    labels: dict[T, str],
    default: int = 0,
    preview: Callable[[T], Table] | None = None,
) -> Optional[T]:
    """Arrow-key picker. Returns None if the user presses escape."""
    selected = default
    drawn = _draw(_frame(options, labels, selected, preview))

    key = _read_key()
    while key not in ("enter", "escape"):
        if key in MOVES:
            selected = (selected + MOVES[key]) % len(options)
            _erase(drawn)
            drawn = _draw(_frame(options, labels, selected, preview))
        key = _read_key()

    _erase(drawn)
    sys.stdout.flush()

    if key == "escape":
        return None
    chosen = options[selected]
    console.print(f"  [bold cyan]▸ {labels[chosen]}[/bold cyan]")
    return chosen


def _period_preview(period: TimePeriod, portfolio: Portfolio) -> Table:
    view = portfolio.period_view(period)
    t = Table(box=box.ROUNDED, title=PERIOD_LABELS[period], title_style="bold white")
    t.add_column("Transactions", justify="right")
    t.add_column("Dividends", justify="right")
    t.add_column("Income", justify="right", style="green")
    t.add_column("Cash-flow gain", justify="right")
    t.add_row(
        str(len(view.transactions)),
        str(len(view.dividends)),
        _money(view.period_income),
        _gain_text(view.period_gain),
    )
    return t


def _prompt_months() -> list[str]:
    answer = Prompt.ask("  Months (comma separated, blank for all)", default="")
    return [m.strip() for m in answer.split(",") if m.strip()]


def cmd_import(portfolio: Portfolio, args: argparse.Namespace) -> int:
    date_range = (args.start, args.end) if args.start or args.end else None
    failures = 0
    for path in args.files:
        try:
            summary = portfolio.import_file_sync(path.read_bytes(), path.name, date_range)
        except (OSError, PortfolioError) as e:
            failures += 1
            console.print(f"[red]  ✗ {path.name}: {e}[/red]")
            continue
        console.print(f"[green]  ✓ {summary}[/green]")

    console.print()
    console.print(holdings_table(portfolio))
    return 1 if failures else 0


def cmd_show(portfolio: Portfolio, args: argparse.Namespace) -> int:
    if not portfolio.holdings:
        console.print("[yellow]  No holdings yet. Import a positions or history file first.[/yellow]")
        return 0

    console.print(holdings_table(portfolio))
    console.print()
    console.print(projection_table(portfolio.projections()))
    console.print()
    console.print(summary_panel(portfolio.summary()))
    return 0


def cmd_period(portfolio: Portfolio, args: argparse.Namespace) -> int:
    if args.period:
        period = TimePeriod(args.period)
    else:
        console.print()
        console.print("[bold]Reporting window:[/bold]")
        period = pick(
            PERIODS,
            PERIOD_LABELS,
            default=DEFAULT_PERIOD_INDEX,
            preview=partial(_period_preview, portfolio=portfolio),
        )
        if period is None:
            return 0

    months = args.months
    if period is TimePeriod.CUSTOM and months is None:
        months = _prompt_months()

    try:
        view = portfolio.period_view(period, months)
    except ValueError as e:
        console.print(f"[red]  {e}[/red]")
        return 2

    console.print()
    console.print(period_table(view, PERIOD_LABELS[period]))
    return 0


def cmd_clear(portfolio: Portfolio, args: argparse.Namespace) -> int:
    if not args.yes and not Confirm.ask("  Delete all imported data?", default=False):
        return 0
    portfolio.clear_sync()
    console.print("[green]  Cleared.[/green]")
    return 0


def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile brokerage CSV exports into holdings and dividend projections",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Store directory (default: $PORTFOLIO_RECONCILER_DATA or ~/.portfolio-reconciler)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    p = commands.add_parser("import", help="Import positions or transaction history files")
    p.add_argument("files", nargs="+", type=Path)
    p.add_argument("--start", type=_parse_day, help="Ignore records before this date")
    p.add_argument("--end", type=_parse_day, help="Ignore records after this date")
    p.set_defaults(handler=cmd_import)

    p = commands.add_parser("show", help="Show holdings, projected income and totals")
    p.set_defaults(handler=cmd_show)

    p = commands.add_parser("period", help="Show activity in a reporting window")
    p.add_argument("--period", choices=[tp.value for tp in TimePeriod])
    p.add_argument("--months", nargs="*", help="Month names for a custom period")
    p.set_defaults(handler=cmd_period)

    p = commands.add_parser("clear", help="Delete all stored data")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(handler=cmd_clear)

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI application."""
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    console.print()
    console.print(
        Panel("[bold]Portfolio Reconciler[/bold] · holdings & dividend income", box=box.DOUBLE)
    )
    console.print()

    try:
        with console.status("[bold]Loading stored portfolio...[/bold]"):
            portfolio = Portfolio.from_directory(args.data_dir)
    except PortfolioError as e:
        logger.error("Could not load the store: %s", e)
        return 1

    return args.handler(portfolio, args)


if __name__ == "__main__":
    sys.exit(main())
