"""Per-session dashboard state and the events that mutate it.

A ``ViewState`` is created once per dashboard session by :func:`mount`, which
performs the single record source fetch. Filter events only recompute the
filtered subset; chart views are always built from the full line item list.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from core.aggregates import AggregateViews, aggregate
from core.data import CurReportError, RecordSource
from core.filters import DEFAULT_FILTERS, FilterSpec, apply_filters, normalize_filters
from core.records import LineItem

logger = logging.getLogger(__name__)


@dataclass
class ViewState:
    line_items: List[LineItem] = field(default_factory=list)
    filtered_line_items: List[LineItem] = field(default_factory=list)
    aggregate: Dict[str, Any] = field(default_factory=dict)
    views: AggregateViews = field(default_factory=AggregateViews)
    filters: FilterSpec = DEFAULT_FILTERS
    error: Optional[str] = None
    export_requests: int = 0

    @property
    def monthly_cost_trend(self) -> List[Dict[str, Any]]:
        return self.views.monthly

    @property
    def daily_cost_trend(self) -> List[Dict[str, Any]]:
        return self.views.daily

    @property
    def cost_breakdown(self) -> Dict[str, float]:
        return self.views.breakdown

    @property
    def cost_comparison(self) -> Dict[str, List[Any]]:
        return self.views.comparison

    @property
    def total_monthly_cost(self) -> float:
        return self.views.latest_total

    def to_payload(self) -> Dict[str, Any]:
        return {
            "monthly_cost_trend": self.monthly_cost_trend,
            "daily_cost_trend": self.daily_cost_trend,
            "cost_breakdown": self.cost_breakdown,
            "cost_comparison": self.cost_comparison,
            "total_monthly_cost": self.total_monthly_cost,
            "filtered_line_items": [item.to_record() for item in self.filtered_line_items],
            "line_item_count": len(self.line_items),
            "filters": asdict(self.filters),
            "aggregate": self.aggregate,
            "error": self.error,
        }


def mount(source: RecordSource) -> ViewState:
    try:
        report = source.fetch_report()
    except CurReportError as exc:
        logger.error("CUR Error: %s", exc.reason)
        return ViewState(error=exc.reason)

    line_items = list(report.line_items)
    state = ViewState(
        line_items=line_items,
        filtered_line_items=apply_filters(line_items, DEFAULT_FILTERS),
        aggregate=dict(report.aggregate),
        views=aggregate(line_items),
        filters=DEFAULT_FILTERS,
    )
    logger.info("Mounted CUR dashboard with %d line items", len(line_items))
    return state


def update_filters(state: ViewState, filters_params: Any) -> ViewState:
    spec = normalize_filters(filters_params)
    state.filters = spec
    state.filtered_line_items = apply_filters(state.line_items, spec)
    logger.debug("Filters %s kept %d of %d line items", spec, len(state.filtered_line_items), len(state.line_items))
    return state


def clear_filters(state: ViewState) -> ViewState:
    return update_filters(state, DEFAULT_FILTERS)


def request_export(state: ViewState) -> Dict[str, Any]:
    """Acknowledge a report download; the document itself is produced client-side."""
    state.export_requests += 1
    return {
        "status": "accepted",
        "filters": asdict(state.filters),
        "line_item_count": len(state.filtered_line_items),
    }
