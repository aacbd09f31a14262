"""
Analysis commands for the wheel ledger CLI.

This module provides commands for viewing performance metrics, option
income over time and the cash flow summary.
"""

from dataclasses import asdict
from typing import Optional

import click

from ..performance import PerformanceTracker
from .utils import (
    get_analysis,
    get_cli_context,
    money,
    print_json,
    print_performance,
)


@click.command()
@click.argument("symbol", required=False)
@click.option(
    "--export",
    type=click.Choice(["csv", "json"]),
    help="Export cycle history",
)
@click.pass_context
def performance(ctx: click.Context, symbol: Optional[str], export: Optional[str]) -> None:
    """
    View performance metrics for one symbol or the whole ledger.

    Example: wheel-ledger performance AAPL --export csv
    """
    cli_ctx = get_cli_context(ctx)
    tracker = PerformanceTracker(get_analysis(ctx))
    symbol_upper = symbol.upper() if symbol else None

    if export:
        click.echo(tracker.export_cycles(symbol_upper, format=export))
        return

    if cli_ctx.json:
        print_json(tracker.get_summary(symbol_upper))
        return

    if symbol_upper:
        perf = tracker.get_performance(symbol_upper)
    else:
        perf = tracker.get_portfolio_performance()
    print_performance(perf, cli_ctx.config.display_places, cli_ctx.verbose)


@click.command()
@click.option(
    "--period",
    type=click.Choice(["week", "month"]),
    default="month",
    help="Bucket size",
)
@click.option("--symbol", help="Only this underlying")
@click.pass_context
def income(ctx: click.Context, period: str, symbol: Optional[str]) -> None:
    """
    Show option income by week or month.

    Example: wheel-ledger income --period week --symbol AAPL
    """
    cli_ctx = get_cli_context(ctx)
    tracker = PerformanceTracker(get_analysis(ctx))
    places = cli_ctx.config.display_places
    buckets = tracker.income_breakdown(period, symbol.upper() if symbol else None)

    if cli_ctx.json:
        print_json(
            [
                {
                    "start": b.start.isoformat(),
                    "income": str(b.income),
                    "fees": str(b.fees),
                    "net_income": str(b.net_income),
                    "trades": len(b.trades),
                }
                for b in buckets
            ]
        )
        return

    if not buckets:
        click.echo("No trades found.")
        return

    click.echo()
    click.echo(f"{'Start':<12} {'Income':>14} {'Fees':>10} {'Net':>14} {'Trades':>7}")
    click.echo("=" * 61)
    for bucket in buckets:
        click.echo(
            f"{bucket.start.isoformat():<12} "
            f"{money(bucket.income, places):>14} "
            f"{money(bucket.fees, places):>10} "
            f"{money(bucket.net_income, places):>14} "
            f"{len(bucket.trades):>7}"
        )

    if cli_ctx.verbose:
        click.echo()
        click.secho("Net option income by symbol:", bold=True)
        for underlying, amount in sorted(tracker.option_income().items()):
            click.echo(f"  {underlying:<8} {money(amount, places)}")


@click.command()
@click.argument("symbol", required=False)
@click.pass_context
def cashflow(ctx: click.Context, symbol: Optional[str]) -> None:
    """
    Summarize cash movements across the ledger.

    Example: wheel-ledger cashflow
    """
    cli_ctx = get_cli_context(ctx)
    flow = get_analysis(ctx).cash_flow(symbol.upper() if symbol else None)
    places = cli_ctx.config.display_places

    if cli_ctx.json:
        data = {key: str(value) for key, value in asdict(flow).items()}
        data["net_option_premium"] = str(flow.net_option_premium)
        print_json(data)
        return

    click.echo()
    click.secho(f"=== Cash Flow: {symbol.upper() if symbol else 'ALL'} ===", bold=True)
    click.echo(f"Total Cash Flow:    {money(flow.total_cash_flow, places)}")
    click.echo(f"Stock Purchases:    {money(flow.stock_purchases, places)}")
    click.echo(f"Stock Sales:        {money(flow.stock_sales, places)}")
    click.echo(f"Premiums Received:  {money(flow.option_premiums_received, places)}")
    click.echo(f"Premiums Paid:      {money(flow.option_premiums_paid, places)}")
    click.echo(f"Net Option Premium: {money(flow.net_option_premium, places)}")
    click.echo(f"Commissions/Fees:   {money(flow.commissions_fees, places)}")
