"""Data models for ledger trades, wheel cycles and share positions."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .state import (
    AssetClass,
    CycleStatus,
    CycleType,
    OptionType,
    Side,
    TradeKind,
    classify_trade,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class Trade:
    """
    A single ledger entry (stock or option leg).

    Quantities are stored as positive magnitudes; ``side`` carries the
    direction. ``net_cash`` is signed (positive = cash received) and
    excludes the commission, which is tracked separately.
    """

    trade_id: str
    symbol: str
    asset_class: AssetClass
    side: Side
    quantity: int
    trade_price: Decimal
    net_cash: Decimal
    commission: Decimal
    timestamp: datetime
    underlying_symbol: Optional[str] = None
    strike: Optional[Decimal] = None
    option_type: Optional[OptionType] = None
    expiry: Optional[date] = None
    multiplier: int = 100
    currency: str = "USD"

    @property
    def underlying(self) -> str:
        """Symbol the trade is grouped under (options map to their underlying)."""
        return self.underlying_symbol or self.symbol

    @property
    def kind(self) -> TradeKind:
        """Detector classification of this trade."""
        return classify_trade(self)

    @property
    def is_option(self) -> bool:
        return self.asset_class == AssetClass.OPTION

    @property
    def is_stock(self) -> bool:
        return self.asset_class == AssetClass.STOCK

    @property
    def signed_quantity(self) -> int:
        """Quantity with BUY positive and SELL negative."""
        return abs(self.quantity) if self.side == Side.BUY else -abs(self.quantity)


@dataclass(frozen=True)
class WheelCycle:
    """
    One wheel cycle on a single underlying: sell put, optional assignment,
    covered calls, and the eventual expiry or call-away.

    Instances are immutable; the cycle detector produces a new value for
    each folded trade with ``dataclasses.replace``.
    """

    cycle_id: str
    symbol: str
    start_date: datetime
    status: CycleStatus = CycleStatus.ACTIVE
    cycle_type: CycleType = CycleType.PUT_EXPIRED
    trades: tuple[Trade, ...] = ()
    total_premium_collected: Decimal = ZERO
    total_fees: Decimal = ZERO
    net_profit: Decimal = ZERO
    end_date: Optional[datetime] = None
    assignment_price: Optional[Decimal] = None
    shares_assigned: Optional[int] = None
    safe_strike_price: Optional[Decimal] = None

    @property
    def is_active(self) -> bool:
        return self.status == CycleStatus.ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.status == CycleStatus.COMPLETED

    @property
    def was_assigned(self) -> bool:
        """True once a put assignment has been recorded."""
        return self.assignment_price is not None and bool(self.shares_assigned)

    @property
    def duration_days(self) -> Optional[int]:
        """Calendar days from start to end (None while active)."""
        if self.end_date is None:
            return None
        return (self.end_date.date() - self.start_date.date()).days

    def to_dict(self) -> dict:
        """Serializable summary of the cycle (trades listed by id)."""
        return {
            "cycle_id": self.cycle_id,
            "symbol": self.symbol,
            "status": self.status.value,
            "cycle_type": self.cycle_type.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "trade_ids": [t.trade_id for t in self.trades],
            "total_premium_collected": str(self.total_premium_collected),
            "total_fees": str(self.total_fees),
            "net_profit": str(self.net_profit),
            "assignment_price": (
                str(self.assignment_price) if self.assignment_price is not None else None
            ),
            "shares_assigned": self.shares_assigned,
            "safe_strike_price": (
                str(self.safe_strike_price) if self.safe_strike_price is not None else None
            ),
        }


@dataclass
class Position:
    """
    Current share holding for one symbol, derived from stock legs only.

    ``active_cycles`` and ``completed_cycles`` are cross-referenced from
    the validated cycle detector output.
    """

    symbol: str
    quantity: int = 0
    average_cost: Decimal = ZERO
    total_cost: Decimal = ZERO
    realized_pnl: Decimal = ZERO
    active_cycles: list[WheelCycle] = field(default_factory=list)
    completed_cycles: list[WheelCycle] = field(default_factory=list)
    cost_basis_reliable: bool = True

    @property
    def has_shares(self) -> bool:
        return self.quantity > 0

    @property
    def covered_call_contracts(self) -> int:
        """Number of covered call contracts the held shares support."""
        return self.quantity // 100


class WarningCode(Enum):
    """Data-quality issues surfaced during an analysis pass."""

    MALFORMED_TRADE = "malformed_trade"
    OUT_OF_ORDER_LEDGER = "out_of_order_ledger"
    INSUFFICIENT_LOTS = "insufficient_lots"
    ORPHANED_OPTION_LEG = "orphaned_option_leg"


@dataclass(frozen=True)
class AnalysisWarning:
    """A single data-quality warning."""

    code: WarningCode
    symbol: str
    message: str
    trade_id: Optional[str] = None

    def __str__(self) -> str:
        ref = f" [{self.trade_id}]" if self.trade_id else ""
        return f"{self.code.value} {self.symbol}{ref}: {self.message}"


@dataclass
class AnalysisReport:
    """Warnings collected during one analysis pass."""

    warnings: list[AnalysisWarning] = field(default_factory=list)
    unreliable_symbols: set[str] = field(default_factory=set)

    def add(
        self,
        code: WarningCode,
        symbol: str,
        message: str,
        trade_id: Optional[str] = None,
    ) -> AnalysisWarning:
        """Record a warning and log it."""
        warning = AnalysisWarning(
            code=code, symbol=symbol, message=message, trade_id=trade_id
        )
        self.warnings.append(warning)
        logger.warning(str(warning))
        return warning

    def by_code(self, code: WarningCode) -> list[AnalysisWarning]:
        return [w for w in self.warnings if w.code == code]

    def for_symbol(self, symbol: str) -> list[AnalysisWarning]:
        return [w for w in self.warnings if w.symbol == symbol]

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def __len__(self) -> int:
        return len(self.warnings)
