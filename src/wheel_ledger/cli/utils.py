"""
CLI utility functions for the wheel ledger.

This module provides helper functions for formatting output,
displaying data, and managing CLI context.
"""

import json
import sys
from decimal import Decimal
from typing import Any, Optional

import click

from ..engine import LedgerAnalysis, analyze_ledger, as_of_time
from ..exceptions import LedgerFormatError
from ..ledger import load_ledger
from ..models import Position, Trade, WheelCycle
from ..performance import SymbolPerformance


def get_cli_context(ctx: click.Context):
    """Get the CLIContext from the click context."""
    return ctx.obj


def get_analysis(ctx: click.Context) -> LedgerAnalysis:
    """
    Load the configured ledger and analyze it, once per invocation.

    Exits with status 1 when no ledger is configured or it cannot be parsed.
    """
    cli_ctx = get_cli_context(ctx)
    if cli_ctx.analysis is not None:
        return cli_ctx.analysis

    config = cli_ctx.config
    if not config.ledger_path:
        print_error("No ledger given. Use --ledger or set WHEEL_LEDGER_PATH")
        sys.exit(1)

    try:
        trades = load_ledger(
            config.ledger_path,
            fmt=config.ledger_format,
            multiplier=config.option_multiplier,
        )
    except (LedgerFormatError, OSError) as e:
        print_error(str(e))
        sys.exit(1)

    now = as_of_time(cli_ctx.as_of.date()) if cli_ctx.as_of else None
    cli_ctx.analysis = analyze_ledger(trades, now)
    return cli_ctx.analysis


def print_error(message: str) -> None:
    """Print error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def print_success(message: str) -> None:
    """Print success message."""
    click.secho(message, fg="green")


def print_warning(message: str) -> None:
    """Print warning message."""
    click.secho(f"Warning: {message}", fg="yellow")


def print_json(data: Any) -> None:
    """Print data as indented JSON, rendering Decimals as strings."""
    click.echo(json.dumps(data, indent=2, default=str))


def money(value: Optional[Decimal], places: int = 2) -> str:
    if value is None:
        return "-"
    return f"${value:,.{places}f}"


def position_to_dict(position: Position) -> dict:
    return {
        "symbol": position.symbol,
        "quantity": position.quantity,
        "average_cost": str(position.average_cost),
        "total_cost": str(position.total_cost),
        "realized_pnl": str(position.realized_pnl),
        "cost_basis_reliable": position.cost_basis_reliable,
        "active_cycles": [c.cycle_id for c in position.active_cycles],
        "completed_cycles": [c.cycle_id for c in position.completed_cycles],
    }


def option_leg_to_dict(trade: Trade) -> dict:
    return {
        "symbol": trade.symbol,
        "underlying": trade.underlying,
        "option_type": trade.option_type.value,
        "strike": str(trade.strike),
        "expiry": trade.expiry.isoformat(),
        "side": trade.side.value,
        "quantity": trade.quantity,
        "last_trade_price": str(trade.trade_price),
    }


def print_cycle(cycle: WheelCycle, places: int = 2, verbose: bool = False) -> None:
    """Print one wheel cycle in a formatted way."""
    click.echo()
    click.secho(f"=== {cycle.symbol} [{cycle.status.value}] ===", bold=True)
    click.echo(f"Cycle:    {cycle.cycle_id}")
    click.echo(f"Type:     {cycle.cycle_type.value}")
    click.echo(f"Started:  {cycle.start_date.strftime('%Y-%m-%d')}")
    if cycle.end_date:
        click.echo(
            f"Ended:    {cycle.end_date.strftime('%Y-%m-%d')} "
            f"({cycle.duration_days} days)"
        )
    click.echo(f"Premium:  {money(cycle.total_premium_collected, places)}")
    click.echo(f"Fees:     {money(cycle.total_fees, places)}")
    click.echo(f"Net:      {money(cycle.net_profit, places)}")

    if cycle.was_assigned:
        click.echo(
            f"Assigned: {cycle.shares_assigned} @ {money(cycle.assignment_price, places)}"
        )
    if cycle.safe_strike_price is not None:
        click.echo(f"Safe Strike: {money(cycle.safe_strike_price, places)}")

    if verbose:
        click.echo("Trades:")
        for trade in cycle.trades:
            click.echo(f"  {format_trade(trade, places)}")


def format_trade(trade: Trade, places: int = 2) -> str:
    """One-line description of a trade."""
    line = (
        f"{trade.timestamp.strftime('%Y-%m-%d')} "
        f"{trade.side.value:4} {trade.quantity:>5} {trade.symbol} "
        f"@ {money(trade.trade_price, places)}"
    )
    if trade.is_option:
        line += (
            f" ({trade.option_type.value} {money(trade.strike, places)} "
            f"exp {trade.expiry.isoformat()})"
        )
    return line


def print_performance(
    perf: SymbolPerformance, places: int = 2, verbose: bool = False
) -> None:
    """Print performance metrics in a formatted way."""
    click.echo()
    click.secho(f"=== Performance: {perf.symbol} ===", bold=True)
    click.echo(f"Total Premium:    {money(perf.total_premium_collected, places)}")
    click.echo(f"Total Fees:       {money(perf.total_fees, places)}")
    click.echo(f"Net Income:       {money(perf.net_income, places)}")
    click.echo(f"Realized P&L:     {money(perf.realized_cycle_pnl, places)}")
    click.echo(f"Win Rate:         {perf.win_rate_pct:.1f}%")
    click.echo()
    click.echo(f"Active Cycles:    {perf.active_cycles}")
    click.echo(f"Completed Cycles: {perf.completed_cycles}")
    click.echo(f"Assignments:      {perf.assignments}")
    click.echo(f"Called Away:      {perf.called_away}")

    if verbose:
        click.echo()
        click.echo(f"Total Trades:     {perf.total_trades}")
        click.echo(
            f"Avg Premium/Trade: {money(perf.average_premium_per_trade, places)}"
        )
