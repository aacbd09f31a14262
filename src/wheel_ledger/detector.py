"""
Wheel cycle detection.

Folds the chronologically sorted trades of one symbol into a list of
WheelCycle values. The fold is built from a pure reducer, ``apply_trade``,
which takes the currently open cycle (or None) and one trade, and returns
the new open cycle together with any cycle closed by that trade.

Transitions, in precedence order:
    SELL PUT    -> always opens a new cycle (force-closing any open one)
    BUY STOCK   -> put assignment
    SELL CALL   -> covered call premium
    BUY CALL    -> call buy-back
    BUY PUT     -> put buy-back
    SELL STOCK  -> call assignment / liquidation, closes the cycle
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from .models import ZERO, AnalysisReport, Trade, WarningCode, WheelCycle
from .state import CycleStatus, CycleType, Side, TradeKind

logger = logging.getLogger(__name__)

# (open cycle after the trade, cycle closed by the trade)
Transition = tuple[Optional[WheelCycle], Optional[WheelCycle]]


def calculate_safe_strike(cycle: WheelCycle) -> Optional[Decimal]:
    """
    Break-even stock price for an assigned cycle.

    Net option premium (sold legs only, less all fees) is spread across
    the assigned shares and subtracted from the assignment price.

    Returns:
        Safe strike price, or None if the cycle was never assigned
    """
    if not cycle.was_assigned:
        return None

    sold_premiums = sum(
        (abs(t.net_cash) for t in cycle.trades if t.is_option and t.side == Side.SELL),
        ZERO,
    )
    net_premiums = sold_premiums - cycle.total_fees
    return cycle.assignment_price - net_premiums / cycle.shares_assigned


def open_cycle(symbol: str, trade: Trade) -> WheelCycle:
    """Start a new active cycle from a sold put."""
    premium = abs(trade.net_cash)
    fee = abs(trade.commission)
    return WheelCycle(
        cycle_id=f"{symbol}:{trade.trade_id}",
        symbol=symbol,
        start_date=trade.timestamp,
        status=CycleStatus.ACTIVE,
        cycle_type=CycleType.PUT_EXPIRED,
        trades=(trade,),
        total_premium_collected=premium,
        total_fees=fee,
        net_profit=premium - fee,
    )


def _put_assigned(cycle: WheelCycle, trade: Trade) -> Transition:
    fee = abs(trade.commission)
    # The share purchase converts cash to stock; only the fee hits P&L
    updated = replace(
        cycle,
        trades=cycle.trades + (trade,),
        assignment_price=trade.trade_price,
        shares_assigned=abs(trade.quantity),
        total_fees=cycle.total_fees + fee,
        net_profit=cycle.net_profit - fee,
        cycle_type=CycleType.PUT_ASSIGNED_CALL_EXPIRED,
    )
    return updated, None


def _call_sold(cycle: WheelCycle, trade: Trade) -> Transition:
    premium = abs(trade.net_cash)
    fee = abs(trade.commission)
    updated = replace(
        cycle,
        trades=cycle.trades + (trade,),
        total_premium_collected=cycle.total_premium_collected + premium,
        total_fees=cycle.total_fees + fee,
        net_profit=cycle.net_profit + premium - fee,
    )
    return updated, None


def _option_bought_back(cycle: WheelCycle, trade: Trade) -> Transition:
    fee = abs(trade.commission)
    updated = replace(
        cycle,
        trades=cycle.trades + (trade,),
        total_fees=cycle.total_fees + fee,
        net_profit=cycle.net_profit - (abs(trade.net_cash) + fee),
    )
    return updated, None


def _shares_sold(cycle: WheelCycle, trade: Trade) -> Transition:
    if not cycle.was_assigned:
        logger.debug(
            f"{cycle.symbol}: stock sale {trade.trade_id} without assignment, "
            f"left to position accounting"
        )
        return cycle, None

    total_fees = cycle.total_fees + abs(trade.commission)
    stock_pnl = (trade.trade_price - cycle.assignment_price) * abs(trade.quantity)
    closed = replace(
        cycle,
        trades=cycle.trades + (trade,),
        total_fees=total_fees,
        # Recomputed in full so the purchase cost is never double-counted
        net_profit=stock_pnl + cycle.total_premium_collected - total_fees,
        cycle_type=CycleType.PUT_ASSIGNED_CALL_ASSIGNED,
        end_date=trade.timestamp,
        status=CycleStatus.COMPLETED,
    )
    closed = replace(closed, safe_strike_price=calculate_safe_strike(closed))
    return None, closed


_HANDLERS: dict[TradeKind, Callable[[WheelCycle, Trade], Transition]] = {
    TradeKind.STOCK_BUY: _put_assigned,
    TradeKind.OPTION_SELL_CALL: _call_sold,
    TradeKind.OPTION_BUY_CALL: _option_bought_back,
    TradeKind.OPTION_BUY_PUT: _option_bought_back,
    TradeKind.STOCK_SELL: _shares_sold,
}


def apply_trade(cycle: Optional[WheelCycle], trade: Trade) -> Transition:
    """
    Fold one trade into the open cycle.

    Args:
        cycle: Currently open cycle for the symbol, or None
        trade: Next trade for the symbol

    Returns:
        Tuple of (open cycle after the trade, cycle closed by the trade).
        A sold put that replaces an open cycle returns the replaced cycle
        as the closed one, still ACTIVE.
    """
    kind = trade.kind

    if kind == TradeKind.OPTION_SELL_PUT:
        return open_cycle(trade.underlying, trade), cycle

    if cycle is None:
        return None, None

    return _HANDLERS[kind](cycle, trade)


def detect_cycles(
    symbol: str,
    trades: Iterable[Trade],
    report: Optional[AnalysisReport] = None,
) -> list[WheelCycle]:
    """
    Detect wheel cycles for one symbol.

    Args:
        symbol: Underlying symbol
        trades: The symbol's trades, chronologically sorted
        report: Optional report collecting orphaned option legs

    Returns:
        Closed cycles in order, followed by at most one active cycle
    """
    report = report if report is not None else AnalysisReport()
    cycles: list[WheelCycle] = []
    current: Optional[WheelCycle] = None
    stock_running_total = 0

    for trade in trades:
        kind = trade.kind

        if trade.is_stock:
            stock_running_total += trade.signed_quantity

        if current is None and kind != TradeKind.OPTION_SELL_PUT:
            if trade.is_option:
                report.add(
                    WarningCode.ORPHANED_OPTION_LEG,
                    symbol,
                    f"{kind.value} with no open cycle, excluded from cycle accounting",
                    trade.trade_id,
                )
            else:
                logger.debug(f"{symbol}: {kind.value} {trade.trade_id} outside any cycle")
            continue

        current, closed = apply_trade(current, trade)
        if closed is not None:
            if closed.is_active:
                logger.debug(f"{symbol}: cycle {closed.cycle_id} replaced by a new put")
            else:
                logger.debug(f"{symbol}: cycle {closed.cycle_id} called away")
            cycles.append(closed)

    if current is not None:
        cycles.append(current)

    logger.debug(
        f"{symbol}: {len(cycles)} cycles detected, "
        f"running stock total {stock_running_total}"
    )
    return cycles
