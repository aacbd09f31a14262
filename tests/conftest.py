"""Pytest fixtures for wheel ledger tests.

Provides a trade factory that hands out sequential trade ids and
timestamps, so scenarios read as a list of ledger events.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

import pytest

from wheel_ledger.models import Trade
from wheel_ledger.state import AssetClass, OptionType, Side

BASE_TIME = datetime(2025, 1, 6, 10, 0)  # A Monday
PUT_EXPIRY = date(2025, 1, 17)
CALL_EXPIRY = date(2025, 1, 31)


class TradeFactory:
    """Builds trades with sequential ids and one-day-apart timestamps."""

    def __init__(self) -> None:
        self._count = 0

    def _next(self, timestamp: Optional[datetime]) -> tuple[str, datetime]:
        self._count += 1
        return f"T{self._count}", timestamp or BASE_TIME + timedelta(days=self._count - 1)

    def option(
        self,
        side: Side,
        option_type: OptionType,
        strike: str,
        expiry: date,
        net_cash: str,
        commission: str = "1",
        quantity: int = 1,
        symbol: str = "AAPL",
        timestamp: Optional[datetime] = None,
    ) -> Trade:
        trade_id, timestamp = self._next(timestamp)
        cash = Decimal(net_cash)
        right = "P" if option_type == OptionType.PUT else "C"
        return Trade(
            trade_id=trade_id,
            symbol=f"{symbol} {expiry:%y%m%d}{right}{strike}",
            asset_class=AssetClass.OPTION,
            side=side,
            quantity=quantity,
            trade_price=abs(cash) / (quantity * 100),
            net_cash=cash,
            commission=Decimal(commission),
            timestamp=timestamp,
            underlying_symbol=symbol,
            strike=Decimal(strike),
            option_type=option_type,
            expiry=expiry,
        )

    def sell_put(self, strike="150", expiry=PUT_EXPIRY, premium="200", **kwargs) -> Trade:
        return self.option(Side.SELL, OptionType.PUT, strike, expiry, premium, **kwargs)

    def buy_put(self, strike="150", expiry=PUT_EXPIRY, cost="50", **kwargs) -> Trade:
        return self.option(Side.BUY, OptionType.PUT, strike, expiry, f"-{cost}", **kwargs)

    def sell_call(self, strike="155", expiry=CALL_EXPIRY, premium="150", **kwargs) -> Trade:
        return self.option(Side.SELL, OptionType.CALL, strike, expiry, premium, **kwargs)

    def buy_call(self, strike="155", expiry=CALL_EXPIRY, cost="40", **kwargs) -> Trade:
        return self.option(Side.BUY, OptionType.CALL, strike, expiry, f"-{cost}", **kwargs)

    def stock(
        self,
        side: Side,
        quantity: int,
        price: str,
        commission: str = "1",
        symbol: str = "AAPL",
        timestamp: Optional[datetime] = None,
    ) -> Trade:
        trade_id, timestamp = self._next(timestamp)
        amount = Decimal(price) * quantity
        return Trade(
            trade_id=trade_id,
            symbol=symbol,
            asset_class=AssetClass.STOCK,
            side=side,
            quantity=quantity,
            trade_price=Decimal(price),
            net_cash=-amount if side == Side.BUY else amount,
            commission=Decimal(commission),
            timestamp=timestamp,
        )

    def buy_stock(self, quantity=100, price="150", **kwargs) -> Trade:
        return self.stock(Side.BUY, quantity, price, **kwargs)

    def sell_stock(self, quantity=100, price="156", **kwargs) -> Trade:
        return self.stock(Side.SELL, quantity, price, **kwargs)


@pytest.fixture
def trades() -> TradeFactory:
    """Fresh trade factory per test."""
    return TradeFactory()


@pytest.fixture
def wheel_trades(trades: TradeFactory) -> list[Trade]:
    """A full wheel: put, assignment, covered call, called away."""
    return [
        trades.sell_put(),
        trades.buy_stock(),
        trades.sell_call(),
        trades.sell_stock(),
    ]


@pytest.fixture
def before_expiry() -> datetime:
    """A time before any default expiry."""
    return datetime(2025, 1, 15, 12, 0)


@pytest.fixture
def after_expiry() -> datetime:
    """A time after every default expiry."""
    return datetime(2025, 3, 1, 12, 0)
