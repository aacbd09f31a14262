"""Filtering and ordering of detected cycles before they are exposed."""

from collections.abc import Iterable
from datetime import datetime

from .models import WheelCycle


def is_valid_active(cycle: WheelCycle) -> bool:
    """Active cycles need at least one trade and some premium collected."""
    return cycle.is_active and len(cycle.trades) > 0 and cycle.total_premium_collected > 0


def is_valid_completed(cycle: WheelCycle) -> bool:
    """Completed cycles need at least one trade; zero premium is allowed."""
    return cycle.is_completed and len(cycle.trades) > 0


def sort_active(cycles: Iterable[WheelCycle]) -> list[WheelCycle]:
    """Most recently started first."""
    return sorted(cycles, key=lambda c: c.start_date, reverse=True)


def sort_completed(cycles: Iterable[WheelCycle]) -> list[WheelCycle]:
    """Most recently ended first."""
    return sorted(cycles, key=lambda c: c.end_date or datetime.min, reverse=True)


def validate_cycles(
    cycles: Iterable[WheelCycle],
) -> tuple[list[WheelCycle], list[WheelCycle]]:
    """
    Split cycles into valid active and valid completed lists.

    Args:
        cycles: Raw detector output (after expiration inference)

    Returns:
        Tuple of (active cycles by start date desc,
        completed cycles by end date desc)
    """
    cycles = list(cycles)
    active = sort_active(c for c in cycles if is_valid_active(c))
    completed = sort_completed(c for c in cycles if is_valid_completed(c))
    return active, completed
