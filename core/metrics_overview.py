from __future__ import annotations

from typing import Any, Dict, List

from core.charts import build_charts
from core.session import ViewState


def display_rows(state: ViewState) -> List[Dict[str, Any]]:
    return [item.to_display_record() for item in state.filtered_line_items]


def compute_overview(state: ViewState, *, include_charts: bool = True) -> Dict[str, Any]:
    payload = state.to_payload()
    payload["kpis"] = {
        "total_monthly_cost": state.total_monthly_cost,
        "months": len(state.monthly_cost_trend),
        "services": len(state.cost_breakdown),
        "line_items": len(state.line_items),
        "filtered_line_items": len(state.filtered_line_items),
    }
    payload["table"] = display_rows(state)
    payload["charts"] = build_charts(payload) if include_charts and state.error is None else {}
    return payload
