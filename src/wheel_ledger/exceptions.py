"""Custom exceptions for wheel ledger analysis."""

from typing import Optional


class WheelLedgerError(Exception):
    """Base exception for wheel ledger operations."""

    pass


class MalformedTradeError(WheelLedgerError):
    """Option trade is missing its strike, option type or expiry."""

    def __init__(self, trade_id: str, missing: list[str]):
        self.trade_id = trade_id
        self.missing = missing
        super().__init__(
            f"Trade {trade_id} is missing option fields: {', '.join(missing)}"
        )


class InsufficientLotsError(WheelLedgerError):
    """
    Stock sale exceeds the shares held in open lots.

    Raised by the FIFO lot queue before any lot is consumed, so callers
    can recover by selling only the available quantity.
    """

    def __init__(self, symbol: str, requested: int, available: int):
        self.symbol = symbol
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot sell {requested} shares of {symbol}: "
            f"only {available} held in open lots"
        )

    @property
    def shortfall(self) -> int:
        """Shares sold without a matching purchase lot."""
        return self.requested - self.available


class LedgerFormatError(WheelLedgerError):
    """Trade ledger file could not be parsed."""

    def __init__(self, message: str, row: Optional[int] = None):
        self.row = row
        if row is not None:
            message = f"Row {row}: {message}"
        super().__init__(message)
