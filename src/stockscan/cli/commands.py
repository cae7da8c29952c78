"""CLI command definitions for the stock quick-scan tool."""
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Optional

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from stockscan.domain.models.financials import StockData
from stockscan.domain.services.scoring import QuickScanCalculator
from stockscan.settings.loader import load_settings
from stockscan.utils.logging import configure_logging
from stockscan.workflows.context import AppServices, build_services
from stockscan.workflows.orchestrator import PriceRefresher
from stockscan.workflows.state import ViewState

console = Console()
app = typer.Typer(help="Scan a company's annual financials from Alpha Vantage and score the trend.")
key_app = typer.Typer(help="Manage the stored Alpha Vantage API key.")
cache_app = typer.Typer(help="Inspect or clear the local cache.")
app.add_typer(key_app, name="key")
app.add_typer(cache_app, name="cache")

STATEMENT_TITLES = {
    "income": "Income Statement (millions)",
    "balance": "Balance Sheet (millions)",
    "cash": "Cash Flow (millions)",
}


def _init_services(debug_override: Optional[bool] = None) -> AppServices:
    """Create services with configuration, logging, and storage wiring."""
    config = load_settings(debug_override)
    configure_logging(debug=config.debug)
    return build_services(config)


@app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Optional[bool] = typer.Option(
        None,
        "--debug/--no-debug",
        help="Temporarily toggle verbose logging without touching environment variables.",
    ),
) -> None:
    """Attach the lazily constructed services to Typer."""
    services = _init_services(debug_override=debug)
    ctx.obj = services
    ctx.call_on_close(services.close)


def _services(ctx: typer.Context) -> AppServices:
    root = ctx.find_root()
    if root.obj is None:
        raise typer.Exit(code=1)
    return root.obj


# ---------
# API key
# ---------
@key_app.command("set")
def key_set(ctx: typer.Context, api_key: str = typer.Argument(..., help="Alpha Vantage API key.")) -> None:
    """Store the API key used for every upstream call."""
    try:
        _services(ctx).credentials.set(api_key)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    console.print("[green]API key saved.[/green]")


@key_app.command("show")
def key_show(ctx: typer.Context) -> None:
    """Show a masked form of the active API key and where it comes from."""
    credentials = _services(ctx).credentials
    key = credentials.get()
    if not key:
        console.print("[yellow]No API key configured.[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"{_mask(key)} (from {credentials.source})")


@key_app.command("clear")
def key_clear(ctx: typer.Context) -> None:
    """Remove the stored API key."""
    _services(ctx).credentials.clear()
    console.print("API key removed.")


# -------------
# Search & scan
# -------------
@app.command()
def search(ctx: typer.Context, query: str = typer.Argument(..., help="Company name or ticker fragment.")) -> None:
    """Search symbols (cached per exact query)."""
    matches = _services(ctx).loader.search(query)
    if not matches:
        console.print("[yellow]No matches.[/yellow]")
        return
    table = Table(title=f"Matches for {query!r}")
    table.add_column("Symbol", style="cyan")
    table.add_column("Name")
    for match in matches:
        table.add_row(match.symbol, match.name)
    console.print(table)


@app.command()
def scan(
    ctx: typer.Context,
    symbol: str = typer.Argument(..., help="Ticker symbol, e.g. IBM (use TEST for the offline fixture)."),
    json_path: Optional[Path] = typer.Option(None, "--json", help="Write the dataset to this JSON file."),
    csv_dir: Optional[Path] = typer.Option(None, "--csv", help="Write one CSV per statement into this directory."),
    save: bool = typer.Option(False, "--save", help="Write JSON and CSV exports under the configured output directory."),
) -> None:
    """Load one symbol (cache first) and print statements and scores."""
    services = _services(ctx)
    future = services.loader.select(symbol)
    if future is None:
        console.print("[red]Symbol must not be empty.[/red]")
        raise typer.Exit(code=1)

    with console.status(f"[bold cyan]Loading {symbol.strip().upper()}..."):
        state = future.result()

    if state.error:
        console.print(f"[bold red]Error:[/bold red] {state.error}")
    if state.stock_data is None:
        raise typer.Exit(code=1)

    _print_stock(state)
    data = state.stock_data
    if save:
        target_dir = services.config.output_dir / data.symbol
        json_path = json_path or target_dir / f"{data.symbol}.json"
        csv_dir = csv_dir or target_dir
    if json_path is not None:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        json_path.write_text(json.dumps(data.to_dict(), indent=2), encoding="utf-8")
        console.print(f"Dataset saved to {json_path}")
    if csv_dir is not None:
        csv_dir.mkdir(parents=True, exist_ok=True)
        for kind in STATEMENT_TITLES:
            target = csv_dir / f"{data.symbol}_{kind}.csv"
            data.to_frame(kind).to_csv(target, index=False)
        console.print(f"CSV files written to {csv_dir}")


@app.command()
def watch(
    ctx: typer.Context,
    symbol: str = typer.Argument(..., help="Ticker symbol to keep refreshed."),
    interval: Optional[float] = typer.Option(None, "--interval", help="Seconds between refreshes (default from config)."),
    count: Optional[int] = typer.Option(None, "--count", help="Stop after this many completed loads."),
) -> None:
    """Print the current price and score, refreshing on a timer."""
    services = _services(ctx)
    seconds = interval or services.config.refresh_interval_seconds
    done = threading.Event()
    completed = 0

    def on_change(state: ViewState) -> None:
        nonlocal completed
        if state.loading or done.is_set():
            return
        console.print(_summary_line(state))
        completed += 1
        if count is not None and completed >= count:
            done.set()

    services.loader.subscribe(on_change)
    if services.loader.select(symbol) is None:
        console.print("[red]Symbol must not be empty.[/red]")
        raise typer.Exit(code=1)

    refresher = PriceRefresher(services.loader, seconds)
    refresher.start()
    try:
        while not done.wait(0.5):
            pass
    except KeyboardInterrupt:
        console.print("Stopped.")
    finally:
        refresher.stop(timeout=seconds)


# -----
# Cache
# -----
@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    symbol: Optional[str] = typer.Argument(None, help="Only evict this symbol's dataset."),
) -> None:
    """Clear cached datasets (and search results when no symbol is given)."""
    cache = _services(ctx).cache
    if symbol:
        cache.datasets.evict(symbol)
        console.print(f"Evicted cached dataset for {symbol.strip().upper()}.")
        return
    removed = cache.clear()
    console.print(f"Cleared search cache and {removed} cached dataset(s).")


@cache_app.command("show")
def cache_show(ctx: typer.Context, symbol: str = typer.Argument(..., help="Ticker symbol.")) -> None:
    """Report the age and freshness of a cached dataset."""
    datasets = _services(ctx).cache.datasets
    entry = datasets.read(symbol)
    if entry is None:
        console.print("[yellow]Not cached.[/yellow]")
        raise typer.Exit(code=1)
    age_hours = entry.age_ms(datasets.now_ms()) / 3_600_000
    status = "fresh" if datasets.is_fresh(entry) else "stale"
    console.print(f"{entry.payload.symbol}: cached {age_hours:.1f}h ago ({status})")


# ---------
# Rendering
# ---------
def _print_stock(state: ViewState) -> None:
    data = state.stock_data
    if data is None:
        return
    source = "cache (stale)" if state.stale else "cache" if state.from_cache else "Alpha Vantage"

    summary = Table(show_header=True, header_style="bold magenta")
    summary.add_column("Key")
    summary.add_column("Value")
    summary.add_row("Symbol", data.overview.symbol)
    summary.add_row("Company", data.overview.name)
    summary.add_row("Price", f"{data.overview.current_price:,.2f}")
    summary.add_row("Dividend / Share", f"{data.valuation.dividend_per_share:,.2f}")
    summary.add_row("Shares Issued", f"{data.valuation.shares_issued:,.0f}")
    summary.add_row("P/E", f"{data.valuation.pe_ratio:,.2f}")
    summary.add_row("Source", source)
    console.print(summary)

    for kind, title in STATEMENT_TITLES.items():
        console.print(_frame_table(data.to_frame(kind), title))

    console.print(_analysis_table(data))


def _frame_table(frame: pd.DataFrame, title: str) -> Table:
    table = Table(title=title)
    for column in frame.columns:
        table.add_column(column.replace("_", " ").title(), justify="right")
    for row in frame.itertuples(index=False):
        cells = [str(int(value)) if column == "year" else f"{value:,.2f}" for column, value in zip(frame.columns, row)]
        table.add_row(*cells)
    return table


def _analysis_table(data: StockData) -> Table:
    analysis = data.analysis
    table = Table(title="Analysis")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Quick Scan Score", f"{analysis.quick_scan_score}/100")
    breakdown = QuickScanCalculator().breakdown(data.income_statements, data.balance_sheets, data.cash_flows)
    for metric, (points, intervals) in breakdown.items():
        table.add_row(f"  {metric.replace('_', ' ')}", f"{points}/{intervals}")
    table.add_row("Return Potential Score", f"{analysis.return_potential_score:g}")
    table.add_row("3Y Return (min/avg/max)", f"{analysis.min_return_3y:g}% / {analysis.avg_return_3y:g}% / {analysis.max_return_3y:g}%")
    table.add_row("Valuation", analysis.valuation_indicator)
    return table


def _summary_line(state: ViewState) -> str:
    if state.stock_data is None:
        return f"[red]{state.symbol}: {state.error or 'no data'}[/red]"
    overview = state.stock_data.overview
    suffix = " [yellow](stale)[/yellow]" if state.stale else ""
    return (
        f"{overview.symbol} {overview.current_price:,.2f} "
        f"score {state.stock_data.analysis.quick_scan_score}/100{suffix}"
    )


def _mask(key: str) -> str:
    if len(key) <= 4:
        return "*" * len(key)
    return "*" * (len(key) - 4) + key[-4:]
