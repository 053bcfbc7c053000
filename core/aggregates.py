from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.records import LineItem, parse_cost

UNKNOWN_MONTH = "unknown"
UNKNOWN_PRODUCT = "Unknown"

_MONTH_PREFIX = re.compile(r"[0-9]{4}-[0-9]{2}")


def month_key(period_start: Any) -> str:
    """'2024-01-05' -> '2024-01'; anything not shaped YYYY-MM... -> 'unknown'."""
    if isinstance(period_start, str) and _MONTH_PREFIX.match(period_start):
        return period_start[:7]
    return UNKNOWN_MONTH


def _date_sort_key(value: Any) -> Tuple[int, str]:
    # Missing dates sort ahead of every string key.
    if value is None:
        return (0, "")
    return (1, str(value))


def _sum_by(items: Iterable[LineItem], key_fn) -> Dict[Any, float]:
    totals: Dict[Any, float] = {}
    for item in items:
        key = key_fn(item)
        totals[key] = totals.get(key, 0.0) + parse_cost(item.cost)
    return totals


def generate_monthly_cost_trend(items: Iterable[LineItem]) -> List[Dict[str, Any]]:
    totals = _sum_by(items, lambda item: month_key(item.period_start))
    points = [{"month": month, "cost": round(cost, 2)} for month, cost in totals.items()]
    return sorted(points, key=lambda p: p["month"])


def generate_daily_cost_trend(items: Iterable[LineItem]) -> List[Dict[str, Any]]:
    totals = _sum_by(items, lambda item: item.period_start)
    points = [{"date": date, "cost": round(cost, 2)} for date, cost in totals.items()]
    return sorted(points, key=lambda p: _date_sort_key(p["date"]))


def generate_cost_breakdown(items: Iterable[LineItem]) -> Dict[str, float]:
    def product(item: LineItem) -> Any:
        return UNKNOWN_PRODUCT if item.product_code is None else item.product_code

    return {code: round(cost, 2) for code, cost in _sum_by(items, product).items()}


def generate_cost_comparison(monthly_trend: List[Dict[str, Any]]) -> Dict[str, List[Any]]:
    first_three = sorted(monthly_trend, key=lambda p: p["month"])[:3]
    return {
        "labels": [p["month"] for p in first_three],
        "data": [p["cost"] for p in first_three],
    }


def get_total_monthly_cost(monthly_trend: List[Dict[str, Any]]) -> float:
    if not monthly_trend:
        return 0.0
    return sorted(monthly_trend, key=lambda p: p["month"])[-1]["cost"]


@dataclass(frozen=True)
class AggregateViews:
    monthly: List[Dict[str, Any]] = field(default_factory=list)
    daily: List[Dict[str, Any]] = field(default_factory=list)
    breakdown: Dict[str, float] = field(default_factory=dict)
    comparison: Dict[str, List[Any]] = field(default_factory=lambda: {"labels": [], "data": []})
    latest_total: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def aggregate(items: Optional[Iterable[LineItem]]) -> AggregateViews:
    """Compute every chart view from the full (unfiltered) line item list."""
    items = list(items or [])
    monthly = generate_monthly_cost_trend(items)
    return AggregateViews(
        monthly=monthly,
        daily=generate_daily_cost_trend(items),
        breakdown=generate_cost_breakdown(items),
        comparison=generate_cost_comparison(monthly),
        latest_total=get_total_monthly_cost(monthly),
    )
