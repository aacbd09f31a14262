"""
Trade ledger loading.

This module parses brokerage trade exports into Trade values for the
analysis engine. Supported sources are CSV files, JSON files and
Interactive Brokers Flex Query XML reports. Raw records are validated
with pydantic before conversion.
"""

import csv
import json
import logging
import xml.etree.ElementTree as ET
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import LedgerFormatError
from .models import Trade
from .state import AssetClass, OptionType, Side

logger = logging.getLogger(__name__)

STOCK_CATEGORIES = {"STK", "STOCK"}
OPTION_CATEGORIES = {"OPT", "FOP", "OPTION"}

LEDGER_FORMATS = ["auto", "csv", "json", "flex"]

_SIDES = {"BUY": Side.BUY, "B": Side.BUY, "SELL": Side.SELL, "S": Side.SELL}
_OPTION_TYPES = {
    "P": OptionType.PUT,
    "PUT": OptionType.PUT,
    "C": OptionType.CALL,
    "CALL": OptionType.CALL,
}


def _wall_clock(value: datetime) -> datetime:
    # Offsets are dropped; the ledger keeps the broker's local wall-clock time
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a trade timestamp.

    Accepts datetime/date objects, ISO strings ("2025-04-17",
    "2025-04-17 09:30:00", "2025-04-17T09:30:00-04:00") and IB Flex
    formats ("20250417", "20250417;093000"). The result is always naive:
    a UTC offset is dropped and the recorded wall-clock time kept.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return _wall_clock(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = str(value).strip()
    if not text:
        raise ValueError("empty timestamp")

    if ";" in text:
        return datetime.strptime(text, "%Y%m%d;%H%M%S")
    if len(text) == 8 and text.isdigit():
        return datetime.strptime(text, "%Y%m%d")
    return _wall_clock(datetime.fromisoformat(text))


def parse_expiry(value: Any) -> date:
    """Parse an option expiry date (ISO or IB "YYYYMMDD")."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_timestamp(value).date()


class TradeRow(BaseModel):
    """
    One raw ledger record.

    Field names follow the Trade model; common broker column names
    (tradeID, assetCategory, buySell, putCall, ...) are accepted as aliases.
    """

    trade_id: str = Field(validation_alias=AliasChoices("trade_id", "tradeID", "id"))
    symbol: str
    asset_class: AssetClass = Field(
        validation_alias=AliasChoices("asset_class", "assetCategory", "asset_category")
    )
    side: Side = Field(validation_alias=AliasChoices("side", "buySell", "buy_sell"))
    quantity: int
    trade_price: Decimal = Field(
        validation_alias=AliasChoices("trade_price", "tradePrice", "price")
    )
    net_cash: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("net_cash", "netCash")
    )
    proceeds: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("proceeds", "amount")
    )
    commission: Decimal = Field(
        Decimal("0"),
        validation_alias=AliasChoices("commission", "ibCommission", "commissionAndTax"),
    )
    timestamp: datetime = Field(
        validation_alias=AliasChoices("timestamp", "dateTime", "date_time", "tradeDate")
    )
    underlying_symbol: Optional[str] = Field(
        None, validation_alias=AliasChoices("underlying_symbol", "underlyingSymbol")
    )
    strike: Optional[Decimal] = None
    option_type: Optional[OptionType] = Field(
        None, validation_alias=AliasChoices("option_type", "putCall", "put_call")
    )
    expiry: Optional[date] = None
    multiplier: int = 100
    currency: str = "USD"

    @field_validator("net_cash", "proceeds", "underlying_symbol", "strike", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """CSV exports leave unused columns empty."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("trade_id", "symbol", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return str(v).strip() if v is not None else v

    @field_validator("commission", mode="before")
    @classmethod
    def blank_commission(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return Decimal("0")
        return v

    @field_validator("multiplier", mode="before")
    @classmethod
    def blank_multiplier(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return 100
        return v

    @field_validator("symbol", "underlying_symbol")
    @classmethod
    def normalize_symbol(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v

    @field_validator("asset_class", mode="before")
    @classmethod
    def parse_asset_class(cls, v: Any) -> Any:
        if isinstance(v, AssetClass):
            return v
        text = str(v).strip().upper()
        if text in STOCK_CATEGORIES:
            return AssetClass.STOCK
        if text in OPTION_CATEGORIES:
            return AssetClass.OPTION
        raise ValueError(f"Unsupported asset category '{v}'")

    @field_validator("side", mode="before")
    @classmethod
    def parse_side(cls, v: Any) -> Any:
        if isinstance(v, Side):
            return v
        side = _SIDES.get(str(v).strip().upper())
        if side is None:
            raise ValueError(f"Side must be BUY or SELL, got '{v}'")
        return side

    @field_validator("option_type", mode="before")
    @classmethod
    def parse_option_type(cls, v: Any) -> Any:
        if v is None or isinstance(v, OptionType):
            return v
        if isinstance(v, str) and not v.strip():
            return None
        option_type = _OPTION_TYPES.get(str(v).strip().upper())
        if option_type is None:
            raise ValueError(f"Option type must be P/PUT or C/CALL, got '{v}'")
        return option_type

    @field_validator("quantity", mode="before")
    @classmethod
    def absolute_quantity(cls, v: Any) -> Any:
        """Sell quantities are often exported negative."""
        try:
            quantity = abs(Decimal(str(v)))
        except InvalidOperation:
            raise ValueError(f"Quantity must be a number, got '{v}'")
        if quantity != quantity.to_integral_value():
            raise ValueError(f"Fractional quantity {v} is not supported")
        return int(quantity)

    @field_validator("commission")
    @classmethod
    def absolute_commission(cls, v: Decimal) -> Decimal:
        return abs(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_trade_timestamp(cls, v: Any) -> datetime:
        return parse_timestamp(v)

    @field_validator("expiry", mode="before")
    @classmethod
    def parse_option_expiry(cls, v: Any) -> Optional[date]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return parse_expiry(v)

    @model_validator(mode="after")
    def fill_derived_fields(self) -> "TradeRow":
        """Infer the underlying for options and net cash when absent."""
        if self.asset_class == AssetClass.OPTION and not self.underlying_symbol:
            # "AAPL  250417P00190000" -> "AAPL"
            self.underlying_symbol = self.symbol.split()[0]
        if self.net_cash is None and self.proceeds is not None:
            # Proceeds exclude commission; sign follows the side
            magnitude = abs(self.proceeds)
            self.net_cash = magnitude if self.side == Side.SELL else -magnitude
        if self.net_cash is None:
            multiplier = self.multiplier if self.asset_class == AssetClass.OPTION else 1
            gross = self.trade_price * self.quantity * multiplier
            self.net_cash = gross if self.side == Side.SELL else -gross
        return self

    def to_trade(self) -> Trade:
        """Convert the validated row into a Trade."""
        return Trade(
            trade_id=self.trade_id,
            symbol=self.symbol,
            asset_class=self.asset_class,
            side=self.side,
            quantity=self.quantity,
            trade_price=self.trade_price,
            net_cash=self.net_cash,
            commission=self.commission,
            timestamp=self.timestamp,
            underlying_symbol=self.underlying_symbol,
            strike=self.strike,
            option_type=self.option_type,
            expiry=self.expiry,
            multiplier=self.multiplier,
            currency=self.currency,
        )


def _is_supported(record: dict[str, Any]) -> bool:
    category = None
    for key in ("asset_class", "assetCategory", "asset_category"):
        if record.get(key):
            category = str(record[key]).strip().upper()
            break
    if category is None:
        return True  # let validation report the missing field
    return category in STOCK_CATEGORIES or category in OPTION_CATEGORIES


def parse_record(
    record: dict[str, Any], row: Optional[int] = None, multiplier: int = 100
) -> Optional[Trade]:
    """
    Validate one raw record and convert it to a Trade.

    Args:
        record: Raw field mapping (CSV row, JSON object or XML attributes)
        row: Source row number for error messages
        multiplier: Contract multiplier used when the record has none

    Returns:
        Trade, or None if the asset category is not a stock or option

    Raises:
        LedgerFormatError: If the record fails validation.
    """
    if not _is_supported(record):
        logger.warning(f"Skipping unsupported asset category in row {row}: {record}")
        return None
    if not str(record.get("multiplier") or "").strip():
        record = {**record, "multiplier": multiplier}
    try:
        return TradeRow.model_validate(record).to_trade()
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise LedgerFormatError(errors, row=row) from e


def sort_trades(trades: list[Trade]) -> list[Trade]:
    """Stable chronological sort, as the engine expects."""
    return sorted(trades, key=lambda t: t.timestamp)


def load_csv(path: Union[str, Path], multiplier: int = 100) -> list[Trade]:
    """
    Load trades from a CSV file with a header row.

    Raises:
        LedgerFormatError: If a row fails validation.
    """
    trades = []
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        for row_number, row in enumerate(reader, start=2):
            trade = parse_record(row, row=row_number, multiplier=multiplier)
            if trade is not None:
                trades.append(trade)
    logger.debug(f"Loaded {len(trades)} trades from {path}")
    return trades


def load_json(path: Union[str, Path], multiplier: int = 100) -> list[Trade]:
    """
    Load trades from a JSON file.

    The file holds either a list of trade objects or an object with a
    "trades" list.

    Raises:
        LedgerFormatError: If the JSON is invalid or a record fails validation.
    """
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise LedgerFormatError(f"Invalid JSON in {path}: {e}") from e

    records = data.get("trades", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise LedgerFormatError(f"Expected a list of trades in {path}")

    trades = []
    for index, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            raise LedgerFormatError("Trade record must be an object", row=index)
        trade = parse_record(record, row=index, multiplier=multiplier)
        if trade is not None:
            trades.append(trade)
    logger.debug(f"Loaded {len(trades)} trades from {path}")
    return trades


def _flex_record(attrs: dict[str, str]) -> dict[str, Any]:
    """Map IB Flex trade attributes onto TradeRow fields."""
    side = attrs.get("buySell", "")
    timestamp = attrs.get("dateTime") or attrs.get("orderTime") or attrs.get("tradeDate")
    return {
        "trade_id": attrs.get("tradeID") or attrs.get("transactionID"),
        "symbol": attrs.get("symbol"),
        "asset_class": attrs.get("assetCategory"),
        "side": side.split()[0] if side else side,
        "quantity": attrs.get("quantity"),
        "trade_price": attrs.get("tradePrice") or attrs.get("price"),
        "proceeds": attrs.get("proceeds") or attrs.get("amount"),
        "commission": attrs.get("ibCommission") or attrs.get("commission"),
        "timestamp": timestamp,
        "underlying_symbol": attrs.get("underlyingSymbol"),
        "strike": attrs.get("strike"),
        "option_type": attrs.get("putCall"),
        "expiry": attrs.get("expiry"),
        "multiplier": attrs.get("multiplier"),
        "currency": attrs.get("currency") or "USD",
    }


def load_flex_xml(
    path: Union[str, Path],
    seen: Optional[set[str]] = None,
    multiplier: int = 100,
) -> list[Trade]:
    """
    Load trades from an IB Flex Query XML report.

    Reads both TradeConfirm and Trade elements. Trades already in
    ``seen`` (by trade id) are skipped, so overlapping reports can be
    combined.

    Raises:
        LedgerFormatError: If the XML is malformed or a trade fails validation.
    """
    seen = seen if seen is not None else set()
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as e:
        raise LedgerFormatError(f"Invalid XML in {path}: {e}") from e

    trades = []
    elements = root.iter()
    for index, element in enumerate(elements, start=1):
        if element.tag not in ("TradeConfirm", "Trade"):
            continue
        trade = parse_record(
            _flex_record(element.attrib), row=index, multiplier=multiplier
        )
        if trade is None or trade.trade_id in seen:
            continue
        seen.add(trade.trade_id)
        trades.append(trade)

    logger.debug(f"Loaded {len(trades)} trades from {path}")
    return trades


def load_directory(path: Union[str, Path], multiplier: int = 100) -> list[Trade]:
    """Load and de-duplicate every Flex XML report in a directory."""
    seen: set[str] = set()
    trades = []
    for xml_file in sorted(Path(path).glob("*.xml")):
        trades.extend(load_flex_xml(xml_file, seen, multiplier))
    return trades


def detect_format(path: Union[str, Path]) -> str:
    """Guess the ledger format from a file suffix."""
    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        return "csv"
    if suffix == ".json":
        return "json"
    if suffix == ".xml":
        return "flex"
    raise LedgerFormatError(f"Cannot determine ledger format for {path}")


def load_ledger(
    path: Union[str, Path],
    fmt: str = "auto",
    sort: bool = True,
    multiplier: int = 100,
) -> list[Trade]:
    """
    Load a trade ledger from a file or a directory of Flex reports.

    Args:
        path: Ledger file or directory
        fmt: One of "auto", "csv", "json", "flex"
        sort: Sort trades chronologically (default True)
        multiplier: Contract multiplier for records without one

    Returns:
        List of trades

    Raises:
        LedgerFormatError: If the file cannot be read or parsed.
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise LedgerFormatError(f"Ledger not found: {path}")
    if fmt not in LEDGER_FORMATS:
        raise LedgerFormatError(
            f"Unknown ledger format '{fmt}'. Valid: {', '.join(LEDGER_FORMATS)}"
        )

    if path.is_dir():
        trades = load_directory(path, multiplier)
    else:
        if fmt == "auto":
            fmt = detect_format(path)
        loader = {"csv": load_csv, "json": load_json, "flex": load_flex_xml}[fmt]
        trades = loader(path, multiplier=multiplier)

    logger.info(f"Loaded {len(trades)} trades from {path}")
    return sort_trades(trades) if sort else trades
