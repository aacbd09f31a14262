"""
Wheel Ledger - Reconcile option trades into wheel strategy cycles.

This package reads a broker trade ledger and reconstructs wheel cycles
(sold put, assignment, covered calls, called away), FIFO share positions,
open option legs and premium income.

Public API:
    WheelLedgerEngine: Stateless analyzer for a full trade ledger
    LedgerAnalysis: Query surface over one analysis pass
    Trade: One ledger execution
    WheelCycle: A detected wheel cycle
    Position: Share holding derived from FIFO lots
    AnalysisReport: Data-quality warnings from a pass
    load_ledger: Load trades from CSV, JSON or IB Flex XML
"""

from .exceptions import (
    InsufficientLotsError,
    LedgerFormatError,
    MalformedTradeError,
    WheelLedgerError,
)
from .models import (
    AnalysisReport,
    AnalysisWarning,
    Position,
    Trade,
    WarningCode,
    WheelCycle,
)
from .state import (
    AssetClass,
    CycleStatus,
    CycleType,
    OptionType,
    Side,
    TradeKind,
    classify_trade,
)

__all__ = [
    # Core classes
    "Trade",
    "WheelCycle",
    "Position",
    "AnalysisReport",
    "AnalysisWarning",
    "WarningCode",
    # Enums
    "AssetClass",
    "Side",
    "OptionType",
    "TradeKind",
    "CycleStatus",
    "CycleType",
    "classify_trade",
    # Exceptions
    "WheelLedgerError",
    "MalformedTradeError",
    "InsufficientLotsError",
    "LedgerFormatError",
]

# Deferred imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import for the engine, loaders and tracker."""
    if name in ("WheelLedgerEngine", "LedgerAnalysis", "analyze_ledger"):
        from . import engine
        return getattr(engine, name)
    if name == "load_ledger":
        from .ledger import load_ledger
        return load_ledger
    if name == "PerformanceTracker":
        from .performance import PerformanceTracker
        return PerformanceTracker
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
