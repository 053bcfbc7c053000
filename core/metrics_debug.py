from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from core.aggregates import UNKNOWN_MONTH, month_key
from core.filters import parse_iso_date
from core.records import is_parsable_cost
from core.session import ViewState


def compute_data_quality(state: ViewState) -> Dict[str, Any]:
    """Counts of the values the dashboard silently defaulted while aggregating and filtering."""
    items = state.line_items
    payload: Dict[str, Any] = {
        "filters": asdict(state.filters),
        "row_counts": {
            "line_items": len(items),
            "filtered_line_items": len(state.filtered_line_items),
        },
        "parse_warnings": {
            "unparsable_cost": sum(1 for i in items if not is_parsable_cost(i.cost)),
            "unknown_month": sum(1 for i in items if month_key(i.period_start) == UNKNOWN_MONTH),
            "unparsable_period_start": sum(1 for i in items if parse_iso_date(i.period_start) is None),
            "unparsable_period_end": sum(1 for i in items if parse_iso_date(i.period_end) is None),
            "missing_product_code": sum(1 for i in items if i.product_code is None),
        },
        "unparsable_cost_samples": [],
        "error": state.error,
    }
    samples = [i.to_record() for i in items if not is_parsable_cost(i.cost)]
    payload["unparsable_cost_samples"] = samples[:20]
    return payload
