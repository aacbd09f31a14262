"""Enums and trade classification for the wheel cycle state machine."""

from enum import Enum

from .exceptions import MalformedTradeError


class AssetClass(Enum):
    """Asset class of a ledger entry."""

    STOCK = "stock"
    OPTION = "option"


class Side(Enum):
    """Direction of a trade."""

    BUY = "buy"
    SELL = "sell"


class OptionType(Enum):
    """Option right."""

    PUT = "put"
    CALL = "call"


class TradeKind(Enum):
    """
    Classification of a trade as seen by the cycle detector.

    Derived once per trade so the detector can dispatch on a single
    value instead of re-checking asset class, side and option type.
    """

    STOCK_BUY = "stock_buy"  # Put assignment or manual purchase
    STOCK_SELL = "stock_sell"  # Call assignment or liquidation
    OPTION_SELL_PUT = "option_sell_put"  # Opens a cycle
    OPTION_BUY_PUT = "option_buy_put"  # Put buy-back
    OPTION_SELL_CALL = "option_sell_call"  # Covered call premium
    OPTION_BUY_CALL = "option_buy_call"  # Call buy-back


class CycleStatus(Enum):
    """Lifecycle status of a wheel cycle."""

    ACTIVE = "active"
    COMPLETED = "completed"


class CycleType(Enum):
    """How a wheel cycle concluded (provisional while active)."""

    PUT_EXPIRED = "put-expired"
    PUT_ASSIGNED_CALL_EXPIRED = "put-assigned-call-expired"
    PUT_ASSIGNED_CALL_ASSIGNED = "put-assigned-call-assigned"


_OPTION_KINDS: dict[tuple[Side, OptionType], TradeKind] = {
    (Side.SELL, OptionType.PUT): TradeKind.OPTION_SELL_PUT,
    (Side.BUY, OptionType.PUT): TradeKind.OPTION_BUY_PUT,
    (Side.SELL, OptionType.CALL): TradeKind.OPTION_SELL_CALL,
    (Side.BUY, OptionType.CALL): TradeKind.OPTION_BUY_CALL,
}


def missing_option_fields(trade) -> list[str]:
    """Return the names of required option fields that are unset."""
    if trade.asset_class != AssetClass.OPTION:
        return []
    missing = []
    if trade.strike is None:
        missing.append("strike")
    if trade.option_type is None:
        missing.append("option_type")
    if trade.expiry is None:
        missing.append("expiry")
    return missing


def classify_trade(trade) -> TradeKind:
    """
    Derive the TradeKind for a trade.

    Args:
        trade: Trade to classify

    Returns:
        The matching TradeKind

    Raises:
        MalformedTradeError: If an option trade lacks strike, type or expiry.
    """
    if trade.asset_class == AssetClass.STOCK:
        return TradeKind.STOCK_BUY if trade.side == Side.BUY else TradeKind.STOCK_SELL

    missing = missing_option_fields(trade)
    if missing:
        raise MalformedTradeError(trade.trade_id, missing)
    return _OPTION_KINDS[(trade.side, trade.option_type)]
