"""
Partition a trade ledger by underlying symbol.

Option legs are grouped under their underlying, not their contract
symbol. Malformed option trades are rejected here so downstream
components only ever see well-formed trades.
"""

import logging
from collections.abc import Iterable
from typing import Optional

from .exceptions import MalformedTradeError
from .models import AnalysisReport, Trade, WarningCode
from .state import classify_trade

logger = logging.getLogger(__name__)


def group_by_underlying(
    trades: Iterable[Trade], report: Optional[AnalysisReport] = None
) -> dict[str, list[Trade]]:
    """
    Group trades by underlying symbol, preserving ledger order.

    Malformed option trades are skipped and reported. A trade whose
    timestamp precedes the previous trade for the same symbol is kept,
    but an out-of-order warning is recorded; no re-sorting is done.

    Args:
        trades: Chronologically sorted trades
        report: Optional report collecting warnings

    Returns:
        Mapping of underlying symbol to its trades, in first-seen order
    """
    report = report if report is not None else AnalysisReport()
    groups: dict[str, list[Trade]] = {}

    for trade in trades:
        symbol = trade.underlying
        try:
            classify_trade(trade)
        except MalformedTradeError as e:
            report.add(WarningCode.MALFORMED_TRADE, symbol, str(e), trade.trade_id)
            continue

        symbol_trades = groups.setdefault(symbol, [])
        if symbol_trades and trade.timestamp < symbol_trades[-1].timestamp:
            previous = symbol_trades[-1]
            report.add(
                WarningCode.OUT_OF_ORDER_LEDGER,
                symbol,
                f"Trade at {trade.timestamp.isoformat()} follows trade "
                f"{previous.trade_id} at {previous.timestamp.isoformat()}",
                trade.trade_id,
            )
        symbol_trades.append(trade)

    logger.debug(f"Grouped ledger into {len(groups)} symbols")
    return groups


def stock_legs(trades: Iterable[Trade]) -> list[Trade]:
    """Return only the stock trades, in order."""
    return [t for t in trades if t.is_stock]


def option_legs(trades: Iterable[Trade]) -> list[Trade]:
    """Return only the option trades, in order."""
    return [t for t in trades if t.is_option]
