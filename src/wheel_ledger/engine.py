"""
Orchestration of a wheel ledger analysis pass.

This module provides the WheelLedgerEngine, which runs grouping, cycle
detection, expiration inference, validation and FIFO position accounting
over a full trade ledger, and the LedgerAnalysis result it returns.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from .accountant import CashFlow, calculate_cash_flow, compute_position
from .detector import detect_cycles
from .expiration import resolve_expirations
from .grouping import group_by_underlying
from .models import AnalysisReport, Position, Trade, WheelCycle
from .state import Side
from .validator import sort_active, sort_completed, validate_cycles

logger = logging.getLogger(__name__)


class LedgerAnalysis:
    """
    Results of one analysis pass.

    Immutable from the caller's point of view: query methods return
    fresh lists and dicts built from the pass's internal state.
    """

    def __init__(
        self,
        trades: list[Trade],
        now: datetime,
        cycles: dict[str, list[WheelCycle]],
        positions: dict[str, Position],
        report: AnalysisReport,
    ):
        self._trades = tuple(trades)
        self._cycles = cycles
        self._positions = positions
        self.now = now
        self.report = report

    @property
    def trades(self) -> tuple[Trade, ...]:
        """Well-formed trades in ledger order (orphaned legs included)."""
        return self._trades

    def symbols(self) -> list[str]:
        """Underlying symbols seen in the ledger, in first-seen order."""
        return list(self._cycles)

    def cycles_by_symbol(self) -> dict[str, list[WheelCycle]]:
        """Validated cycles per symbol, in chronological order."""
        return {symbol: list(cycles) for symbol, cycles in self._cycles.items()}

    def cycles_for(self, symbol: str) -> list[WheelCycle]:
        return list(self._cycles.get(symbol, []))

    def positions(self) -> dict[str, Position]:
        return dict(self._positions)

    def position(self, symbol: str) -> Optional[Position]:
        return self._positions.get(symbol)

    def active_cycles(self) -> list[WheelCycle]:
        """Active cycles across all symbols, most recently started first."""
        return sort_active(
            c for cycles in self._cycles.values() for c in cycles if c.is_active
        )

    def completed_cycles(self) -> list[WheelCycle]:
        """Completed cycles across all symbols, most recently ended first."""
        return sort_completed(
            c for cycles in self._cycles.values() for c in cycles if c.is_completed
        )

    def active_option_legs(self) -> list[Trade]:
        """
        Net open option positions that have not expired.

        Option trades are grouped by underlying, expiry, strike and type.
        Each group with a non-zero net quantity is represented by its most
        recent trade, carrying the net quantity as a positive magnitude
        (side SELL for a net short, BUY for a net long).
        """
        groups: dict[tuple, list[Trade]] = {}
        for trade in self._trades:
            if not trade.is_option or self.now.date() > trade.expiry:
                continue
            key = (trade.underlying, trade.expiry, trade.strike, trade.option_type)
            groups.setdefault(key, []).append(trade)

        legs = []
        for group in groups.values():
            net_quantity = sum(t.signed_quantity for t in group)
            if net_quantity == 0:
                continue
            latest = max(group, key=lambda t: t.timestamp)
            legs.append(
                replace(
                    latest,
                    quantity=abs(net_quantity),
                    side=Side.SELL if net_quantity < 0 else Side.BUY,
                )
            )
        return legs

    def latest_trade_price(self, symbol: str) -> Optional[Decimal]:
        """
        Most recent positive trade price recorded for a symbol.

        Matching is on the trade's own symbol, not its underlying: stock
        symbols match stock legs and an option contract symbol matches that
        contract's trades. An underlying that only appears through option
        trades therefore has no price and returns None. Not market data.
        """
        latest: Optional[Trade] = None
        for trade in self._trades:
            if trade.symbol != symbol or trade.trade_price <= 0:
                continue
            if latest is None or trade.timestamp >= latest.timestamp:
                latest = trade
        return latest.trade_price if latest else None

    def latest_prices(self) -> dict[str, Decimal]:
        """Latest trade price for every stock symbol in the ledger."""
        symbols = dict.fromkeys(t.symbol for t in self._trades if t.is_stock)
        prices = {}
        for symbol in symbols:
            price = self.latest_trade_price(symbol)
            if price is not None:
                prices[symbol] = price
        return prices

    def cash_flow(self, symbol: Optional[str] = None) -> CashFlow:
        """Cash flow summary for the ledger or one underlying."""
        trades = self._trades
        if symbol:
            trades = [t for t in trades if t.underlying == symbol]
        return calculate_cash_flow(trades)


class WheelLedgerEngine:
    """
    Stateless analyzer for wheel strategy trade ledgers.

    Every call to ``analyze`` recomputes everything from the full ledger;
    no state is shared between calls, so one engine may serve concurrent
    callers.

    Example:
        engine = WheelLedgerEngine()
        analysis = engine.analyze(trades, now=datetime(2025, 3, 1))
        for cycle in analysis.completed_cycles():
            print(cycle.symbol, cycle.net_profit)
    """

    def analyze(
        self, trades: Iterable[Trade], now: Optional[datetime] = None
    ) -> LedgerAnalysis:
        """
        Run a full analysis pass.

        Args:
            trades: Chronologically sorted trades
            now: Reference time for expiration inference (default: now)

        Returns:
            LedgerAnalysis with cycles, positions and warnings

        Raises:
            ValueError: If trades is None
        """
        if trades is None:
            raise ValueError("trades must not be None")

        trades = list(trades)
        now = now or datetime.now()
        report = AnalysisReport()
        grouped = group_by_underlying(trades, report)

        cycles: dict[str, list[WheelCycle]] = {}
        positions: dict[str, Position] = {}

        for symbol, symbol_trades in grouped.items():
            raw = resolve_expirations(detect_cycles(symbol, symbol_trades, report), now)
            active, completed = validate_cycles(raw)
            retained = {id(c) for c in active} | {id(c) for c in completed}
            cycles[symbol] = [c for c in raw if id(c) in retained]

            position = compute_position(symbol, symbol_trades, report)
            position.active_cycles = active
            position.completed_cycles = completed
            if (
                position.quantity > 0
                or active
                or completed
                or not position.cost_basis_reliable
            ):
                positions[symbol] = position

        kept = {id(t) for symbol_trades in grouped.values() for t in symbol_trades}
        analyzed = [t for t in trades if id(t) in kept]

        logger.info(
            f"Analyzed {len(analyzed)} trades across {len(grouped)} symbols "
            f"as of {now.date().isoformat()}: {len(report)} warnings"
        )
        return LedgerAnalysis(
            trades=analyzed,
            now=now,
            cycles=cycles,
            positions=positions,
            report=report,
        )


def analyze_ledger(
    trades: Iterable[Trade], now: Optional[datetime] = None
) -> LedgerAnalysis:
    """Convenience wrapper around ``WheelLedgerEngine().analyze``."""
    return WheelLedgerEngine().analyze(trades, now)


def as_of_time(as_of: date) -> datetime:
    """Reference time for an as-of date: the last moment of that day."""
    return datetime.combine(as_of, datetime.max.time())
