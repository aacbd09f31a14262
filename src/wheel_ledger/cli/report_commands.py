"""
Reporting commands for the wheel ledger CLI.

This module provides commands for listing wheel cycles, share positions,
open option legs, last traded prices and data-quality warnings.
"""

import sys
from typing import Optional

import click

from .utils import (
    format_trade,
    get_analysis,
    get_cli_context,
    money,
    option_leg_to_dict,
    position_to_dict,
    print_cycle,
    print_error,
    print_json,
    print_success,
    print_warning,
)


@click.command()
@click.argument("symbol", required=False)
@click.option(
    "--status",
    type=click.Choice(["active", "completed", "all"]),
    default="all",
    help="Which cycles to show",
)
@click.pass_context
def cycles(ctx: click.Context, symbol: Optional[str], status: str) -> None:
    """
    List wheel cycles.

    Example: wheel-ledger cycles AAPL --status completed
    """
    cli_ctx = get_cli_context(ctx)
    analysis = get_analysis(ctx)
    places = cli_ctx.config.display_places

    if symbol:
        selected = analysis.cycles_for(symbol.upper())
        if status == "active":
            selected = [c for c in selected if c.is_active]
        elif status == "completed":
            selected = [c for c in selected if c.is_completed]
    else:
        selected = []
        if status in ("active", "all"):
            selected.extend(analysis.active_cycles())
        if status in ("completed", "all"):
            selected.extend(analysis.completed_cycles())

    if cli_ctx.json:
        print_json([c.to_dict() for c in selected])
        return

    if not selected:
        click.echo("No cycles found.")
        return

    for cycle in selected:
        print_cycle(cycle, places, cli_ctx.verbose)


@click.command()
@click.argument("symbol", required=False)
@click.pass_context
def positions(ctx: click.Context, symbol: Optional[str]) -> None:
    """
    Show share positions from FIFO lot accounting.

    Example: wheel-ledger positions AAPL
    """
    cli_ctx = get_cli_context(ctx)
    analysis = get_analysis(ctx)
    places = cli_ctx.config.display_places

    if symbol:
        position = analysis.position(symbol.upper())
        if position is None:
            print_error(f"No position found for {symbol.upper()}")
            sys.exit(1)
        selected = [position]
    else:
        selected = list(analysis.positions().values())

    if cli_ctx.json:
        print_json([position_to_dict(p) for p in selected])
        return

    if not selected:
        click.echo("No positions found.")
        return

    # Table header
    click.echo()
    click.echo(
        f"{'Symbol':<8} {'Shares':>8} {'Avg Cost':>12} {'Total Cost':>14} "
        f"{'Realized':>12} {'Active':>7} {'Done':>5}"
    )
    click.echo("=" * 72)

    for position in selected:
        row = (
            f"{position.symbol:<8} "
            f"{position.quantity:>8} "
            f"{money(position.average_cost, places):>12} "
            f"{money(position.total_cost, places):>14} "
            f"{money(position.realized_pnl, places):>12} "
            f"{len(position.active_cycles):>7} "
            f"{len(position.completed_cycles):>5}"
        )
        click.echo(row)

    unreliable = [p.symbol for p in selected if not p.cost_basis_reliable]
    if unreliable:
        click.echo()
        print_warning(
            f"Cost basis unreliable (sold more shares than held): {', '.join(unreliable)}"
        )


@click.command()
@click.pass_context
def options(ctx: click.Context) -> None:
    """
    Show open option legs that have not expired.

    Example: wheel-ledger --as-of 2025-03-01 options
    """
    cli_ctx = get_cli_context(ctx)
    analysis = get_analysis(ctx)
    legs = analysis.active_option_legs()

    if cli_ctx.json:
        print_json([option_leg_to_dict(t) for t in legs])
        return

    if not legs:
        click.echo("No open option legs.")
        return

    click.echo()
    click.secho("=== Open Option Legs ===", bold=True)
    for leg in sorted(legs, key=lambda t: (t.expiry, t.underlying)):
        click.echo(format_trade(leg, cli_ctx.config.display_places))


@click.command()
@click.argument("symbol")
@click.pass_context
def price(ctx: click.Context, symbol: str) -> None:
    """
    Show the most recent trade price recorded for a symbol.

    Example: wheel-ledger price AAPL
    """
    cli_ctx = get_cli_context(ctx)
    analysis = get_analysis(ctx)

    symbol_upper = symbol.upper()
    last_price = analysis.latest_trade_price(symbol_upper)
    if last_price is None:
        print_error(f"No trade price found for {symbol_upper}")
        sys.exit(1)

    if cli_ctx.json:
        print_json({"symbol": symbol_upper, "price": str(last_price)})
    else:
        click.echo(f"{symbol_upper}: {money(last_price, cli_ctx.config.display_places)}")


@click.command()
@click.pass_context
def warnings(ctx: click.Context) -> None:
    """
    Show data-quality warnings found while analyzing the ledger.

    Example: wheel-ledger warnings
    """
    cli_ctx = get_cli_context(ctx)
    report = get_analysis(ctx).report

    if cli_ctx.json:
        print_json(
            [
                {
                    "code": w.code.value,
                    "symbol": w.symbol,
                    "trade_id": w.trade_id,
                    "message": w.message,
                }
                for w in report.warnings
            ]
        )
        return

    if not report.has_warnings:
        print_success("No warnings.")
        return

    for warning in report.warnings:
        print_warning(str(warning))
    click.echo()
    click.echo(f"Total warnings: {len(report)}")
