"""
FIFO cost-basis accounting over stock legs.

Options never touch cost basis directly: a put assignment shows up in the
ledger as an ordinary stock purchase and is counted as such. This gives
the actual share holding independently of the cycle analysis.
"""

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .exceptions import InsufficientLotsError
from .grouping import stock_legs
from .models import ZERO, AnalysisReport, Position, Trade, WarningCode
from .state import Side

logger = logging.getLogger(__name__)


@dataclass
class OpenLot:
    """Shares bought in one trade that have not been sold yet."""

    quantity: int
    price: Decimal
    remaining: int

    @property
    def remaining_cost(self) -> Decimal:
        return self.remaining * self.price


@dataclass(frozen=True)
class LotSale:
    """Result of matching a sale against open lots."""

    quantity: int
    proceeds: Decimal
    cost_basis: Decimal

    @property
    def realized_pnl(self) -> Decimal:
        return self.proceeds - self.cost_basis


class LotQueue:
    """
    Queue of open purchase lots, consumed oldest first.

    Example:
        lots = LotQueue("AAPL")
        lots.buy(100, Decimal("150"))
        sale = lots.sell(50, Decimal("156"))
        sale.realized_pnl  # Decimal("300")
    """

    def __init__(self, symbol: str):
        self.symbol = symbol
        self._lots: deque[OpenLot] = deque()

    def buy(self, quantity: int, price: Decimal) -> None:
        """Add a purchase lot."""
        self._lots.append(OpenLot(quantity=quantity, price=price, remaining=quantity))

    def sell(self, quantity: int, price: Decimal) -> LotSale:
        """
        Match a sale against the oldest lots.

        Args:
            quantity: Shares sold
            price: Sale price per share

        Returns:
            LotSale with proceeds and the FIFO cost basis of the shares sold

        Raises:
            InsufficientLotsError: If quantity exceeds the open shares.
                No lot is consumed in that case.
        """
        available = self.quantity
        if quantity > available:
            raise InsufficientLotsError(self.symbol, quantity, available)

        remaining_to_sell = quantity
        cost_basis = ZERO
        while remaining_to_sell > 0:
            oldest = self._lots[0]
            sold = min(remaining_to_sell, oldest.remaining)
            cost_basis += sold * oldest.price
            oldest.remaining -= sold
            remaining_to_sell -= sold
            if oldest.remaining == 0:
                self._lots.popleft()

        return LotSale(quantity=quantity, proceeds=quantity * price, cost_basis=cost_basis)

    @property
    def quantity(self) -> int:
        """Shares still held."""
        return sum(lot.remaining for lot in self._lots)

    @property
    def total_cost(self) -> Decimal:
        """Cost of the shares still held."""
        return sum((lot.remaining_cost for lot in self._lots), ZERO)

    def __len__(self) -> int:
        return len(self._lots)


def compute_position(
    symbol: str,
    trades: Iterable[Trade],
    report: Optional[AnalysisReport] = None,
) -> Position:
    """
    Calculate the share position for one symbol using FIFO matching.

    An oversell is reported and only the held shares are matched; the
    position is then flagged as having an unreliable cost basis.

    Args:
        symbol: Underlying symbol
        trades: The symbol's trades (non-stock legs are ignored)
        report: Optional report collecting oversell warnings

    Returns:
        Position with quantity, average cost and realized P&L
    """
    report = report if report is not None else AnalysisReport()
    lots = LotQueue(symbol)
    realized_pnl = ZERO
    reliable = True

    for trade in stock_legs(trades):
        quantity = abs(trade.quantity)
        if trade.side == Side.BUY:
            lots.buy(quantity, trade.trade_price)
            continue

        try:
            sale = lots.sell(quantity, trade.trade_price)
        except InsufficientLotsError as e:
            report.add(
                WarningCode.INSUFFICIENT_LOTS,
                symbol,
                f"{e}; {e.shortfall} shares excluded from cost basis",
                trade.trade_id,
            )
            report.unreliable_symbols.add(symbol)
            reliable = False
            sale = lots.sell(e.available, trade.trade_price)

        realized_pnl += sale.realized_pnl

    quantity = max(lots.quantity, 0)
    total_cost = lots.total_cost
    average_cost = total_cost / quantity if quantity > 0 else ZERO

    return Position(
        symbol=symbol,
        quantity=quantity,
        average_cost=average_cost,
        total_cost=total_cost,
        realized_pnl=realized_pnl,
        cost_basis_reliable=reliable,
    )


@dataclass
class CashFlow:
    """Cash flow totals across a set of trades."""

    total_cash_flow: Decimal = ZERO
    stock_purchases: Decimal = ZERO
    stock_sales: Decimal = ZERO
    option_premiums_received: Decimal = ZERO
    option_premiums_paid: Decimal = ZERO
    commissions_fees: Decimal = ZERO

    @property
    def net_option_premium(self) -> Decimal:
        return self.option_premiums_received - self.option_premiums_paid


def calculate_cash_flow(trades: Iterable[Trade]) -> CashFlow:
    """
    Summarize cash movements from trades.

    Args:
        trades: Trades to summarize

    Returns:
        CashFlow with totals by category
    """
    flow = CashFlow()
    for trade in trades:
        amount = abs(trade.net_cash)
        flow.total_cash_flow += trade.net_cash
        flow.commissions_fees += abs(trade.commission)

        if trade.is_stock:
            if trade.side == Side.BUY:
                flow.stock_purchases += amount
            else:
                flow.stock_sales += amount
        elif trade.side == Side.SELL:
            flow.option_premiums_received += amount
        else:
            flow.option_premiums_paid += amount

    return flow
