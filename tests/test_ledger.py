"""Tests for trade ledger loading."""

import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from wheel_ledger.exceptions import LedgerFormatError
from wheel_ledger.ledger import (
    TradeRow,
    detect_format,
    load_csv,
    load_directory,
    load_flex_xml,
    load_json,
    load_ledger,
    parse_record,
    parse_timestamp,
)
from wheel_ledger.state import AssetClass, OptionType, Side

CSV_HEADER = (
    "trade_id,symbol,asset_class,side,quantity,trade_price,net_cash,commission,"
    "timestamp,underlying_symbol,strike,option_type,expiry\n"
)

FLEX_REPORT = """<?xml version="1.0" encoding="UTF-8"?>
<FlexQueryResponse queryName="trades" type="AF">
  <FlexStatements count="1">
    <FlexStatement accountId="U1234567">
      <Trades>
        <Trade tradeID="{put_id}" symbol="AAPL  250117P00150000" assetCategory="OPT"
               buySell="SELL" quantity="-1" tradePrice="2" proceeds="200"
               ibCommission="-1.05" dateTime="20250106;103000"
               underlyingSymbol="AAPL" strike="150" putCall="P" expiry="20250117"
               multiplier="100" currency="USD"/>
        <Trade tradeID="{stock_id}" symbol="AAPL" assetCategory="STK"
               buySell="BUY" quantity="100" tradePrice="150" proceeds="-15000"
               ibCommission="-1" dateTime="20250117;162000" currency="USD"/>
        <Trade tradeID="FX1" symbol="EUR.USD" assetCategory="CASH"
               buySell="BUY" quantity="1000" tradePrice="1.1" dateTime="20250110;120000"/>
      </Trades>
    </FlexStatement>
  </FlexStatements>
</FlexQueryResponse>
"""


@pytest.fixture
def csv_ledger(tmp_path):
    """A CSV ledger holding a put and its assignment, out of order."""
    path = tmp_path / "trades.csv"
    path.write_text(
        CSV_HEADER
        + "2,AAPL,STK,BUY,100,150,-15000,1,2025-01-17 16:20:00,,,,\n"
        + "1,AAPL  250117P00150000,OPT,SELL,-1,2.00,200,-1,2025-01-06 10:30:00,"
        + "AAPL,150,P,2025-01-17\n"
    )
    return path


def _flex_file(directory, name, put_id="P1", stock_id="S1"):
    path = directory / name
    path.write_text(FLEX_REPORT.format(put_id=put_id, stock_id=stock_id))
    return path


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_formats(self) -> None:
        """ISO and IB Flex formats are accepted."""
        expected = datetime(2025, 1, 6, 10, 30)
        assert parse_timestamp("2025-01-06 10:30:00") == expected
        assert parse_timestamp("2025-01-06T10:30:00") == expected
        assert parse_timestamp("20250106;103000") == expected
        assert parse_timestamp("20250106") == datetime(2025, 1, 6)
        assert parse_timestamp(date(2025, 1, 6)) == datetime(2025, 1, 6)

    def test_invalid(self) -> None:
        """Unparseable values raise ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")

    def test_offsets_dropped(self) -> None:
        """Offset timestamps become naive with the recorded wall-clock time."""
        parsed = parse_timestamp("2025-01-06T10:30:00-05:00")
        assert parsed == datetime(2025, 1, 6, 10, 30)
        assert parsed.tzinfo is None

        aware = datetime(2025, 1, 6, 10, 30, tzinfo=timezone(timedelta(hours=2)))
        assert parse_timestamp(aware) == datetime(2025, 1, 6, 10, 30)


class TestTradeRow:
    """Tests for record validation."""

    def test_broker_aliases_and_normalization(self) -> None:
        """Broker column names and codes are normalized."""
        row = TradeRow.model_validate(
            {
                "tradeID": 42,
                "symbol": "aapl  250117c00155000",
                "assetCategory": "opt",
                "buySell": "S",
                "quantity": "-2",
                "tradePrice": "1.50",
                "ibCommission": "-2.10",
                "dateTime": "20250108;093000",
                "strike": "155",
                "putCall": "C",
                "expiry": "20250131",
            }
        )
        trade = row.to_trade()

        assert trade.trade_id == "42"
        assert trade.asset_class == AssetClass.OPTION
        assert trade.side == Side.SELL
        assert trade.quantity == 2
        assert trade.commission == Decimal("2.10")
        assert trade.option_type == OptionType.CALL
        assert trade.expiry == date(2025, 1, 31)
        assert trade.underlying == "AAPL"
        # 1.50 x 2 x 100, positive for a sale
        assert trade.net_cash == Decimal("300")

    def test_stock_net_cash_derived_without_multiplier(self) -> None:
        """Stock net cash is price times quantity, negative for a buy."""
        trade = TradeRow.model_validate(
            {
                "trade_id": "S1",
                "symbol": "MSFT",
                "asset_class": "STK",
                "side": "BUY",
                "quantity": 10,
                "trade_price": "400",
                "timestamp": "2025-01-06",
            }
        ).to_trade()
        assert trade.net_cash == Decimal("-4000")
        assert trade.commission == Decimal("0")
        assert trade.underlying == "MSFT"

    def test_fractional_quantity_rejected(self) -> None:
        """Quantities must be whole shares or contracts."""
        with pytest.raises(LedgerFormatError) as exc_info:
            parse_record(
                {
                    "trade_id": "S1",
                    "symbol": "MSFT",
                    "asset_class": "STK",
                    "side": "BUY",
                    "quantity": "0.5",
                    "trade_price": "400",
                    "timestamp": "2025-01-06",
                },
                row=7,
            )
        assert str(exc_info.value).startswith("Row 7:")
        assert exc_info.value.row == 7

    def test_bad_side_rejected(self) -> None:
        """Unknown sides fail validation."""
        with pytest.raises(LedgerFormatError) as exc_info:
            parse_record(
                {
                    "trade_id": "S1",
                    "symbol": "MSFT",
                    "asset_class": "STK",
                    "side": "HOLD",
                    "quantity": "1",
                    "trade_price": "400",
                    "timestamp": "2025-01-06",
                }
            )
        assert "side" in str(exc_info.value)

    def test_unsupported_category_skipped(self, caplog) -> None:
        """Cash and other categories are skipped with a warning."""
        with caplog.at_level("WARNING"):
            assert parse_record({"asset_class": "CASH", "symbol": "EUR.USD"}, row=3) is None
        assert "unsupported asset category" in caplog.text

    def test_default_multiplier_applied(self) -> None:
        """Records without a multiplier take the configured default."""
        trade = parse_record(
            {
                "trade_id": "O1",
                "symbol": "XSP 250117P00500000",
                "asset_class": "OPT",
                "side": "SELL",
                "quantity": 1,
                "trade_price": "2",
                "timestamp": "2025-01-06",
                "strike": "500",
                "option_type": "PUT",
                "expiry": "2025-01-17",
            },
            multiplier=10,
        )
        assert trade.multiplier == 10
        assert trade.net_cash == Decimal("20")


class TestFileLoaders:
    """Tests for the CSV, JSON and Flex loaders."""

    def test_load_csv(self, csv_ledger) -> None:
        """CSV rows load in file order with blank columns as None."""
        trades = load_csv(csv_ledger)

        assert [t.trade_id for t in trades] == ["2", "1"]
        stock, put = trades
        assert stock.strike is None
        assert stock.option_type is None
        assert put.underlying == "AAPL"
        assert put.quantity == 1
        assert put.commission == Decimal("1")

    def test_load_csv_reports_row(self, tmp_path) -> None:
        """A bad row is reported by its line number."""
        path = tmp_path / "bad.csv"
        path.write_text(CSV_HEADER + "1,AAPL,STK,BUY,x,150,,1,2025-01-06,,,,\n")
        with pytest.raises(LedgerFormatError) as exc_info:
            load_csv(path)
        assert exc_info.value.row == 2

    def test_load_json_list_and_object(self, tmp_path) -> None:
        """JSON ledgers may be a list or hold a trades list."""
        record = {
            "trade_id": "S1",
            "symbol": "AAPL",
            "asset_class": "STOCK",
            "side": "BUY",
            "quantity": 100,
            "trade_price": "150",
            "timestamp": "2025-01-06T10:00:00",
        }
        as_list = tmp_path / "list.json"
        as_list.write_text(json.dumps([record]))
        as_object = tmp_path / "object.json"
        as_object.write_text(json.dumps({"trades": [record]}))

        assert load_json(as_list) == load_json(as_object)
        assert load_json(as_list)[0].quantity == 100

    def test_load_json_invalid(self, tmp_path) -> None:
        """Malformed JSON and non-object records are format errors."""
        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        with pytest.raises(LedgerFormatError):
            load_json(broken)

        scalar = tmp_path / "scalar.json"
        scalar.write_text(json.dumps([1]))
        with pytest.raises(LedgerFormatError) as exc_info:
            load_json(scalar)
        assert exc_info.value.row == 1

    def test_load_flex_xml(self, tmp_path) -> None:
        """Flex trades load; cash trades are skipped."""
        trades = load_flex_xml(_flex_file(tmp_path, "report.xml"))

        assert [t.trade_id for t in trades] == ["P1", "S1"]
        put, stock = trades
        assert put.net_cash == Decimal("200")
        assert put.commission == Decimal("1.05")
        assert put.timestamp == datetime(2025, 1, 6, 10, 30)
        assert put.expiry == date(2025, 1, 17)
        assert stock.net_cash == Decimal("-15000")

    def test_load_flex_bad_proceeds(self, tmp_path) -> None:
        """Non-numeric proceeds are a format error with the element's row."""
        path = tmp_path / "report.xml"
        path.write_text(
            '<FlexQueryResponse><Trades>'
            '<Trade tradeID="X1" symbol="AAPL" assetCategory="STK" buySell="SELL" '
            'quantity="-100" tradePrice="156" proceeds="n/a" dateTime="20250131;160000"/>'
            "</Trades></FlexQueryResponse>"
        )
        with pytest.raises(LedgerFormatError) as exc_info:
            load_flex_xml(path)
        assert exc_info.value.row == 3
        assert "proceeds" in str(exc_info.value)

    def test_flex_amount_signed_by_side(self, tmp_path) -> None:
        """Flex amounts are signed by side, negative for a buy."""
        path = tmp_path / "report.xml"
        path.write_text(
            '<FlexQueryResponse><Trades>'
            '<Trade tradeID="X2" symbol="AAPL" assetCategory="STK" buySell="BUY" '
            'quantity="100" tradePrice="150" amount="15000" dateTime="20250117;160000"/>'
            "</Trades></FlexQueryResponse>"
        )
        assert load_flex_xml(path)[0].net_cash == Decimal("-15000")

    def test_load_flex_invalid_xml(self, tmp_path) -> None:
        """Broken XML is a format error."""
        path = tmp_path / "broken.xml"
        path.write_text("<FlexQueryResponse>")
        with pytest.raises(LedgerFormatError):
            load_flex_xml(path)

    def test_load_directory_dedupes(self, tmp_path) -> None:
        """Overlapping reports contribute each trade once."""
        _flex_file(tmp_path, "a.xml")
        _flex_file(tmp_path, "b.xml", put_id="P1", stock_id="S2")

        trades = load_directory(tmp_path)

        assert sorted(t.trade_id for t in trades) == ["P1", "S1", "S2"]


class TestLoadLedger:
    """Tests for load_ledger."""

    def test_sorts_by_default(self, csv_ledger) -> None:
        """Trades come back in chronological order."""
        assert [t.trade_id for t in load_ledger(csv_ledger)] == ["1", "2"]
        assert [t.trade_id for t in load_ledger(csv_ledger, sort=False)] == ["2", "1"]

    def test_explicit_format(self, tmp_path, csv_ledger) -> None:
        """An explicit format overrides the file suffix."""
        renamed = tmp_path / "trades.txt"
        renamed.write_text(csv_ledger.read_text())
        assert len(load_ledger(renamed, fmt="csv")) == 2
        with pytest.raises(LedgerFormatError):
            load_ledger(renamed)

    def test_directory(self, tmp_path) -> None:
        """A directory loads its Flex reports."""
        _flex_file(tmp_path, "a.xml")
        assert len(load_ledger(tmp_path)) == 2

    def test_missing_path(self, tmp_path) -> None:
        """A missing ledger is a format error."""
        with pytest.raises(LedgerFormatError) as exc_info:
            load_ledger(tmp_path / "nope.csv")
        assert "not found" in str(exc_info.value)

    def test_unknown_format(self, csv_ledger) -> None:
        """Only known formats are accepted."""
        with pytest.raises(LedgerFormatError):
            load_ledger(csv_ledger, fmt="xlsx")

    def test_detect_format(self) -> None:
        """Formats are inferred from the suffix."""
        assert detect_format("a.CSV") == "csv"
        assert detect_format("a.json") == "json"
        assert detect_format("a.xml") == "flex"
