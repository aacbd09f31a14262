"""Tests for performance tracking."""

import csv
import io
import json
from datetime import date, datetime
from decimal import Decimal

import pytest

from wheel_ledger.engine import analyze_ledger
from wheel_ledger.performance import PerformanceTracker, period_start

MSFT_EXPIRY = date(2025, 2, 21)


@pytest.fixture
def tracker(trades, wheel_trades, after_expiry) -> PerformanceTracker:
    """Tracker over one called-away wheel, one expired put and a losing put."""
    ledger = wheel_trades + [
        trades.sell_put(strike="150", premium="100"),  # T5, expires
        trades.sell_put(
            symbol="MSFT", strike="400", expiry=MSFT_EXPIRY, premium="300",
            timestamp=datetime(2025, 2, 3),
        ),
        trades.buy_put(
            symbol="MSFT", strike="400", expiry=MSFT_EXPIRY, cost="500",
            timestamp=datetime(2025, 2, 4),
        ),
    ]
    return PerformanceTracker(analyze_ledger(ledger, after_expiry))


class TestPerformance:
    """Tests for per-symbol and portfolio metrics."""

    def test_symbol_metrics(self, tracker) -> None:
        """AAPL has two completed, winning cycles."""
        perf = tracker.get_performance("AAPL")

        assert perf.total_premium_collected == Decimal("450")
        assert perf.total_fees == Decimal("5")
        assert perf.net_income == Decimal("445")
        assert perf.completed_cycles == 2
        assert perf.active_cycles == 0
        assert perf.win_rate_pct == 100.0
        assert perf.total_trades == 5
        assert perf.average_premium_per_trade == Decimal("90")
        assert perf.assignments == 1
        assert perf.called_away == 1
        assert perf.realized_cycle_pnl == Decimal("946") + Decimal("99")

    def test_losing_cycle_stays_active(self, tracker) -> None:
        """A bought-back put has no open legs and is still active."""
        perf = tracker.get_performance("MSFT")
        assert perf.active_cycles == 1
        assert perf.completed_cycles == 0
        assert perf.win_rate_pct == 0.0

    def test_portfolio(self, tracker) -> None:
        """Portfolio metrics aggregate every symbol."""
        perf = tracker.get_portfolio_performance()
        assert perf.symbol == "ALL"
        assert perf.total_cycles == 3
        assert perf.total_premium_collected == Decimal("750")

    def test_unknown_symbol_is_empty(self, tracker) -> None:
        """A symbol with no cycles has zeroed metrics."""
        perf = tracker.get_performance("TSLA")
        assert perf.total_cycles == 0
        assert perf.net_income == Decimal("0")

    def test_summary_formatting(self, tracker) -> None:
        """The summary renders money and percentages."""
        summary = tracker.get_summary("AAPL")
        assert summary["total_premium"] == "$450.00"
        assert summary["win_rate"] == "100.0%"
        assert tracker.get_summary()["symbol"] == "ALL"


class TestOptionIncome:
    """Tests for option income."""

    def test_by_symbol(self, tracker) -> None:
        """Sold premium less buy-backs less option fees."""
        income = tracker.option_income()
        assert income["AAPL"] == Decimal("450") - Decimal("3")
        assert income["MSFT"] == Decimal("300") - Decimal("500") - Decimal("2")

    def test_monthly_breakdown(self, tracker) -> None:
        """Income is bucketed per calendar month."""
        buckets = tracker.income_breakdown("month")

        assert [b.start for b in buckets] == [date(2025, 1, 1), date(2025, 2, 1)]
        assert buckets[0].income == Decimal("450")
        assert buckets[0].fees == Decimal("3")
        assert buckets[0].net_income == Decimal("447")
        assert len(buckets[0].trades) == 5
        assert buckets[1].income == Decimal("-200")

    def test_weekly_breakdown_starts_monday(self, tracker) -> None:
        """Weekly buckets start on Monday."""
        buckets = tracker.income_breakdown("week", symbol="MSFT")
        assert [b.start for b in buckets] == [date(2025, 2, 3)]

    def test_invalid_period(self, tracker) -> None:
        """Only week and month are supported."""
        with pytest.raises(ValueError):
            tracker.income_breakdown("year")

    def test_period_start(self) -> None:
        """Period starts for a mid-week date."""
        assert period_start(date(2025, 1, 9), "week") == date(2025, 1, 6)
        assert period_start(date(2025, 1, 9), "month") == date(2025, 1, 1)


class TestExport:
    """Tests for cycle export."""

    def test_csv(self, tracker) -> None:
        """CSV export has a header and one row per cycle."""
        rows = list(csv.DictReader(io.StringIO(tracker.export_cycles(format="csv"))))

        assert len(rows) == 3
        assert rows[0]["cycle_id"] == "AAPL:T1"
        assert rows[0]["net_profit"] == "946"
        assert rows[0]["cycle_type"] == "put-assigned-call-assigned"

    def test_json_filtered(self, tracker) -> None:
        """JSON export can be limited to one symbol."""
        data = json.loads(tracker.export_cycles("MSFT", format="json"))
        assert [c["symbol"] for c in data] == ["MSFT"]
        assert data[0]["status"] == "active"
