"""
Performance tracking for analyzed wheel cycles.

This module calculates and aggregates metrics from a ledger analysis,
including premium collected, win rates, option income over time, and
exports of the cycle history.
"""

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from .engine import LedgerAnalysis
from .models import ZERO, Trade, WheelCycle
from .state import CycleType, Side

logger = logging.getLogger(__name__)

INCOME_PERIODS = ["week", "month"]


@dataclass
class SymbolPerformance:
    """Performance metrics for one symbol or the whole ledger."""

    symbol: str  # "ALL" for portfolio-wide metrics
    total_premium_collected: Decimal = ZERO
    total_fees: Decimal = ZERO
    net_income: Decimal = ZERO  # Premium less fees, excluding stock P&L
    realized_cycle_pnl: Decimal = ZERO  # Sum of completed cycle net profit
    win_rate_pct: float = 0.0  # Completed cycles with positive net profit
    average_premium_per_trade: Decimal = ZERO
    active_cycles: int = 0
    completed_cycles: int = 0
    total_trades: int = 0
    assignments: int = 0
    called_away: int = 0

    @property
    def total_cycles(self) -> int:
        return self.active_cycles + self.completed_cycles


@dataclass
class IncomePeriod:
    """Option income within one week or month."""

    start: date
    income: Decimal = ZERO  # Sold premium less buy-back cost
    fees: Decimal = ZERO
    net_income: Decimal = ZERO
    trades: list[Trade] = field(default_factory=list)


def period_start(day: date, period: str) -> date:
    """First day of the week (Monday) or month containing ``day``."""
    if period == "week":
        return day - timedelta(days=day.weekday())
    if period == "month":
        return day.replace(day=1)
    raise ValueError(f"Invalid period '{period}'. Valid: {INCOME_PERIODS}")


class PerformanceTracker:
    """
    Calculate wheel strategy performance metrics from a ledger analysis.

    Provides methods to calculate:
    - Premium collected and fees per symbol
    - Win rate over completed cycles
    - Net option income by symbol and by week or month
    - CSV/JSON exports of the cycle history
    """

    def __init__(self, analysis: LedgerAnalysis):
        """
        Initialize the performance tracker.

        Args:
            analysis: Result of a ledger analysis pass
        """
        self.analysis = analysis

    def get_performance(self, symbol: str) -> SymbolPerformance:
        """
        Calculate performance metrics for a single symbol.

        Args:
            symbol: Underlying symbol

        Returns:
            SymbolPerformance (empty if the symbol has no cycles)
        """
        return self._calculate_metrics(symbol, self.analysis.cycles_for(symbol))

    def get_portfolio_performance(self) -> SymbolPerformance:
        """Aggregate performance across all symbols."""
        cycles = [
            cycle
            for symbol_cycles in self.analysis.cycles_by_symbol().values()
            for cycle in symbol_cycles
        ]
        return self._calculate_metrics("ALL", cycles)

    def _calculate_metrics(
        self, symbol: str, cycles: list[WheelCycle]
    ) -> SymbolPerformance:
        perf = SymbolPerformance(symbol=symbol)
        if not cycles:
            return perf

        completed = [c for c in cycles if c.is_completed]
        winners = [c for c in completed if c.net_profit > 0]

        perf.total_premium_collected = sum(
            (c.total_premium_collected for c in cycles), ZERO
        )
        perf.total_fees = sum((c.total_fees for c in cycles), ZERO)
        perf.net_income = perf.total_premium_collected - perf.total_fees
        perf.realized_cycle_pnl = sum((c.net_profit for c in completed), ZERO)
        perf.active_cycles = len(cycles) - len(completed)
        perf.completed_cycles = len(completed)
        perf.total_trades = sum(len(c.trades) for c in cycles)
        perf.assignments = sum(1 for c in cycles if c.was_assigned)
        perf.called_away = sum(
            1 for c in completed if c.cycle_type == CycleType.PUT_ASSIGNED_CALL_ASSIGNED
        )

        if completed:
            perf.win_rate_pct = len(winners) / len(completed) * 100
        if perf.total_trades:
            perf.average_premium_per_trade = (
                perf.total_premium_collected / perf.total_trades
            )

        return perf

    def option_income(self) -> dict[str, Decimal]:
        """
        Net option income by underlying, taken from all option trades.

        Sold premium is added and buy-back cost subtracted; option fees
        are always subtracted. Orphaned legs are included.
        """
        income: dict[str, Decimal] = {}
        for trade in self.analysis.trades:
            if not trade.is_option:
                continue
            income[trade.underlying] = income.get(trade.underlying, ZERO) + _option_net(trade)
        return income

    def income_breakdown(
        self, period: str = "month", symbol: Optional[str] = None
    ) -> list[IncomePeriod]:
        """
        Option income bucketed by week (Monday start) or calendar month.

        Args:
            period: "week" or "month"
            symbol: Optional underlying filter

        Returns:
            IncomePeriod buckets in chronological order

        Raises:
            ValueError: If period is invalid
        """
        if period not in INCOME_PERIODS:
            raise ValueError(f"Invalid period '{period}'. Valid: {INCOME_PERIODS}")

        buckets: dict[date, IncomePeriod] = {}
        for trade in self.analysis.trades:
            if symbol and trade.underlying != symbol:
                continue
            start = period_start(trade.timestamp.date(), period)
            bucket = buckets.setdefault(start, IncomePeriod(start=start))
            bucket.trades.append(trade)

            if not trade.is_option:
                continue
            fee = abs(trade.commission)
            amount = abs(trade.net_cash)
            bucket.income += amount if trade.side == Side.SELL else -amount
            bucket.fees += fee
            bucket.net_income += _option_net(trade)

        return [buckets[start] for start in sorted(buckets)]

    def export_cycles(self, symbol: Optional[str] = None, format: str = "csv") -> str:
        """
        Export cycle history to CSV or JSON.

        Args:
            symbol: Optional symbol filter (None = all cycles)
            format: "csv" or "json"

        Returns:
            Formatted string with cycle data
        """
        if symbol:
            cycles = self.analysis.cycles_for(symbol)
        else:
            cycles = [
                cycle
                for symbol_cycles in self.analysis.cycles_by_symbol().values()
                for cycle in symbol_cycles
            ]

        if format == "json":
            return json.dumps([c.to_dict() for c in cycles], indent=2)
        return self._export_csv(cycles)

    def _export_csv(self, cycles: list[WheelCycle]) -> str:
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(
            [
                "cycle_id",
                "symbol",
                "status",
                "cycle_type",
                "start_date",
                "end_date",
                "trades",
                "total_premium_collected",
                "total_fees",
                "net_profit",
                "assignment_price",
                "shares_assigned",
                "safe_strike_price",
            ]
        )
        for cycle in cycles:
            writer.writerow(
                [
                    cycle.cycle_id,
                    cycle.symbol,
                    cycle.status.value,
                    cycle.cycle_type.value,
                    cycle.start_date.isoformat(),
                    cycle.end_date.isoformat() if cycle.end_date else "",
                    len(cycle.trades),
                    cycle.total_premium_collected,
                    cycle.total_fees,
                    cycle.net_profit,
                    cycle.assignment_price if cycle.assignment_price is not None else "",
                    cycle.shares_assigned or "",
                    cycle.safe_strike_price if cycle.safe_strike_price is not None else "",
                ]
            )
        return output.getvalue()

    def get_summary(self, symbol: Optional[str] = None) -> dict:
        """
        Get a summary dictionary for display.

        Args:
            symbol: Optional symbol filter

        Returns:
            Dictionary with formatted summary data
        """
        if symbol:
            perf = self.get_performance(symbol)
        else:
            perf = self.get_portfolio_performance()

        return {
            "symbol": perf.symbol,
            "total_premium": f"${perf.total_premium_collected:,.2f}",
            "total_fees": f"${perf.total_fees:,.2f}",
            "net_income": f"${perf.net_income:,.2f}",
            "realized_cycle_pnl": f"${perf.realized_cycle_pnl:,.2f}",
            "win_rate": f"{perf.win_rate_pct:.1f}%",
            "avg_premium_per_trade": f"${perf.average_premium_per_trade:,.2f}",
            "active_cycles": perf.active_cycles,
            "completed_cycles": perf.completed_cycles,
            "total_trades": perf.total_trades,
            "assignments": perf.assignments,
            "called_away": perf.called_away,
        }


def _option_net(trade: Trade) -> Decimal:
    """Signed option income of one trade after fees."""
    amount = abs(trade.net_cash)
    fee = abs(trade.commission)
    return amount - fee if trade.side == Side.SELL else -(amount + fee)
