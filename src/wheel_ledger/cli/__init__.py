"""
Click CLI implementation for the wheel ledger.

This module provides command-line interface commands for reconciling
a trade ledger into wheel cycles, positions and performance reports,
split into logical command groups.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import click

from ..config import ConfigurationError, LedgerConfig
from ..engine import LedgerAnalysis
from ..ledger import LEDGER_FORMATS

# Import command groups
from .analysis_commands import cashflow, income, performance
from .report_commands import cycles, options, positions, price, warnings

logger = logging.getLogger(__name__)


@dataclass
class CLIContext:
    """Context object passed to all CLI commands.

    Attributes:
        config: Configuration settings
        as_of: Reference time for expiration inference (None = now)
        verbose: Verbose output enabled
        json: JSON output enabled
        analysis: Ledger analysis, loaded on first use
    """
    config: LedgerConfig
    as_of: Optional[datetime]
    verbose: bool
    json: bool
    analysis: Optional[LedgerAnalysis] = None


@click.group()
@click.option(
    "--ledger",
    type=click.Path(exists=True),
    help="Trade ledger file or directory of Flex reports",
    envvar="WHEEL_LEDGER_PATH",
)
@click.option(
    "--format",
    "ledger_format",
    type=click.Choice(LEDGER_FORMATS),
    default=None,
    help="Ledger format (default: from config, else auto)",
)
@click.option(
    "--as-of",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Treat options as expired relative to this date (YYYY-MM-DD)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--json", "output_json", is_flag=True, help="JSON output (where supported)")
@click.option(
    "--config-file",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.pass_context
def cli(
    ctx: click.Context,
    ledger: Optional[str],
    ledger_format: Optional[str],
    as_of: Optional[datetime],
    verbose: bool,
    output_json: bool,
    config_file: Optional[str],
) -> None:
    """
    Wheel Ledger - Reconcile option trades into wheel cycles.

    Reads a broker trade ledger and reports wheel cycles, share
    positions, open option legs and premium income.
    """
    # Load configuration
    try:
        if config_file:
            config = LedgerConfig.load_from_file(Path(config_file))
        else:
            config = LedgerConfig.load_from_file()
    except ConfigurationError as e:
        if verbose:
            click.echo(f"! Could not load config file: {e}", err=True)
            click.echo("  Using default configuration", err=True)
        config = LedgerConfig()

    # Apply command-line overrides
    if ledger:
        config.ledger_path = ledger
    if ledger_format:
        config.ledger_format = ledger_format
    if verbose:
        config.verbose = True
    if output_json:
        config.json_output = True

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    ctx.obj = CLIContext(
        config=config,
        as_of=as_of,
        verbose=config.verbose,
        json=config.json_output,
    )


# Register report commands
cli.add_command(cycles)
cli.add_command(positions)
cli.add_command(options)
cli.add_command(price)
cli.add_command(warnings)

# Register analysis commands
cli.add_command(performance)
cli.add_command(income)
cli.add_command(cashflow)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


__all__ = ["CLIContext", "cli", "main"]
