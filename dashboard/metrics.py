"""Derived dashboard metrics: percentages, funnel ratios and display formatting.

Every chart goes through these helpers so side-by-side dashboards agree on
thresholds and rounding.
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable

from pydantic.alias_generators import to_snake


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, like the dashboard front end does."""
    return math.floor(value + 0.5)


def percentage(part: float, whole: float) -> int:
    """Whole-number share of ``whole``; 0 when ``whole`` is not positive."""
    if not whole or whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def ratio_percent(part: float, whole: float) -> float:
    """Unrounded percentage for rate cards, with the same zero guard."""
    if not whole or whole <= 0:
        return 0.0
    return part / whole * 100


@dataclass
class FunnelRates:
    checkout_conversion_rate: float
    purchase_conversion_rate: float


def funnel_rates(checkout_starts: int, checkout_completes: int, purchases: int) -> FunnelRates:
    return FunnelRates(
        checkout_conversion_rate=ratio_percent(checkout_completes, checkout_starts),
        purchase_conversion_rate=ratio_percent(purchases, checkout_starts),
    )


def average(values: Iterable[float]) -> float:
    """Arithmetic mean; 0 for an empty column."""
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def format_duration(seconds: float) -> str:
    """< 1 minute as whole seconds, < 1 hour as minutes, otherwise hours (one decimal)."""
    if seconds < 60:
        return f"{round_half_up(seconds)}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def format_currency(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


@dataclass
class BreakdownRow:
    label: str
    count: int
    percentage: int


def breakdown(
    items: Iterable[Any],
    label_attr: str,
    count_attr: str = "count",
    limit: int | None = None,
    unknown_label: str = "Unknown",
) -> list[BreakdownRow]:
    """
    Share of each category in a (category → count) breakdown. The total is
    taken over every item before ``limit`` trims the displayed rows.
    """
    items = list(items)
    total = sum(field_value(item, count_attr) or 0 for item in items)
    rows = [
        BreakdownRow(
            label=field_value(item, label_attr) or unknown_label,
            count=field_value(item, count_attr) or 0,
            percentage=percentage(field_value(item, count_attr) or 0, total),
        )
        for item in items
    ]
    return rows[:limit] if limit is not None else rows


def field_value(item: Any, name: str) -> Any:
    """Read a column from a dict row or a model row; camelCase names map to attributes."""
    if isinstance(item, dict):
        return item.get(name)
    if hasattr(item, name):
        return getattr(item, name)
    return getattr(item, to_snake(name), None)
