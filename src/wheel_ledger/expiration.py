"""
Expiration inference for active wheel cycles.

Expirations are not recorded as trades, so after the cycle fold every
still-active cycle is checked against an explicit ``now``: if each of its
open option legs is past expiry, the cycle is closed on the latest of
those expiry dates.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from .detector import calculate_safe_strike
from .grouping import option_legs
from .models import WheelCycle
from .state import CycleStatus, CycleType, OptionType, Side

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptionLeg:
    """Net position in one option contract within a cycle."""

    strike: Decimal
    option_type: OptionType
    expiry: date
    net_quantity: int  # SELL negative, BUY positive

    @property
    def is_open(self) -> bool:
        return self.net_quantity != 0

    def is_expired(self, now: datetime) -> bool:
        """An option stays live through its expiry date."""
        return now.date() > self.expiry


def open_option_legs(cycle: WheelCycle) -> list[OptionLeg]:
    """
    Net option quantities for a cycle, keyed by contract.

    Args:
        cycle: Cycle to inspect

    Returns:
        Every contract traded in the cycle (open or flat), in first-traded order
    """
    totals: dict[tuple[Decimal, OptionType, date], int] = {}
    for trade in option_legs(cycle.trades):
        key = (trade.strike, trade.option_type, trade.expiry)
        totals[key] = totals.get(key, 0) + trade.signed_quantity

    return [
        OptionLeg(strike=strike, option_type=option_type, expiry=expiry, net_quantity=qty)
        for (strike, option_type, expiry), qty in totals.items()
    ]


def classify_expired_cycle(
    has_stock: bool, has_call_sale: bool, has_stock_sale: bool
) -> CycleType:
    """
    Cycle type for a cycle closed by expiry.

    "Stock bought, call sold, call expired" and "stock bought, never
    covered" both map to PUT_ASSIGNED_CALL_EXPIRED.
    """
    if has_stock and has_call_sale and has_stock_sale:
        return CycleType.PUT_ASSIGNED_CALL_ASSIGNED
    if has_stock and has_call_sale:
        return CycleType.PUT_ASSIGNED_CALL_EXPIRED
    if has_stock:
        return CycleType.PUT_ASSIGNED_CALL_EXPIRED
    return CycleType.PUT_EXPIRED


def _expiry_close(expiry: date) -> datetime:
    return datetime.combine(expiry, time.min)


def _close(cycle: WheelCycle, end_date: datetime, cycle_type: CycleType) -> WheelCycle:
    closed = replace(
        cycle,
        status=CycleStatus.COMPLETED,
        end_date=end_date,
        cycle_type=cycle_type,
    )
    if closed.was_assigned:
        closed = replace(closed, safe_strike_price=calculate_safe_strike(closed))
    logger.debug(f"{cycle.symbol}: cycle {cycle.cycle_id} expired ({cycle_type.value})")
    return closed


def resolve_cycle(cycle: WheelCycle, now: datetime) -> WheelCycle:
    """
    Close a single active cycle if all of its open option legs have expired.

    Args:
        cycle: Cycle to examine
        now: Reference time for expiry checks

    Returns:
        The completed cycle, or the input unchanged
    """
    if not cycle.is_active:
        return cycle

    # Lone sold put past expiry
    if len(cycle.trades) == 1:
        put = cycle.trades[0]
        if put.is_option and put.option_type == OptionType.PUT and put.side == Side.SELL:
            if now.date() > put.expiry:
                return _close(cycle, _expiry_close(put.expiry), CycleType.PUT_EXPIRED)
            return cycle

    open_legs = [leg for leg in open_option_legs(cycle) if leg.is_open]
    if not open_legs or not all(leg.is_expired(now) for leg in open_legs):
        return cycle

    end_date = _expiry_close(max(leg.expiry for leg in open_legs))
    cycle_type = classify_expired_cycle(
        has_stock=any(t.is_stock for t in cycle.trades),
        has_call_sale=any(
            t.is_option and t.option_type == OptionType.CALL and t.side == Side.SELL
            for t in cycle.trades
        ),
        has_stock_sale=any(t.is_stock and t.side == Side.SELL for t in cycle.trades),
    )
    return _close(cycle, end_date, cycle_type)


def resolve_expirations(
    cycles: Iterable[WheelCycle], now: Optional[datetime] = None
) -> list[WheelCycle]:
    """
    Apply expiration inference to every active cycle.

    Args:
        cycles: Detector output for one symbol
        now: Reference time (defaults to the current time)

    Returns:
        Cycles in the same order, expired ones completed
    """
    now = now or datetime.now()
    return [resolve_cycle(cycle, now) for cycle in cycles]
