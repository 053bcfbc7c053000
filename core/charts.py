from __future__ import annotations

from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def breakdown_frame(cost_breakdown: Dict[str, float]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"service": str(k), "cost": v} for k, v in cost_breakdown.items()],
        columns=["service", "cost"],
    )


def monthly_cost_chart(monthly_cost_trend: List[Dict[str, Any]]) -> Optional[alt.Chart]:
    if not monthly_cost_trend:
        return None
    df = pd.DataFrame(monthly_cost_trend)
    return (
        alt.Chart(df)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("month:O", title="Month", sort=None),
            y=alt.Y("cost:Q", title="Cost", axis=alt.Axis(format="$,.2f", gridDash=[4, 4])),
            tooltip=["month", alt.Tooltip("cost:Q", format="$,.2f")],
        )
        .properties(height=260)
    )


def daily_cost_chart(daily_cost_trend: List[Dict[str, Any]]) -> Optional[alt.Chart]:
    if not daily_cost_trend:
        return None
    df = pd.DataFrame(daily_cost_trend)
    df["date"] = df["date"].astype(str)
    return (
        alt.Chart(df)
        .mark_line(point=True)
        .encode(
            x=alt.X("date:O", title="Period Start", sort=None),
            y=alt.Y("cost:Q", title="Cost", axis=alt.Axis(format="$,.2f")),
            tooltip=["date", alt.Tooltip("cost:Q", format="$,.2f")],
        )
        .properties(height=260)
    )


def breakdown_bar_chart(cost_breakdown: Dict[str, float]) -> Optional[alt.Chart]:
    if not cost_breakdown:
        return None
    return (
        alt.Chart(breakdown_frame(cost_breakdown))
        .mark_bar()
        .encode(
            x=alt.X("service:N", title="Service", sort="-y"),
            y=alt.Y("cost:Q", title="Cost", axis=alt.Axis(format="$,.2f")),
            color=alt.Color("service:N", legend=None),
            tooltip=["service", alt.Tooltip("cost:Q", format="$,.2f")],
        )
        .properties(height=260)
    )


def comparison_bar_chart(cost_comparison: Dict[str, List[Any]]) -> Optional[alt.Chart]:
    labels = cost_comparison.get("labels") or []
    if not labels:
        return None
    df = pd.DataFrame({"month": labels, "cost": cost_comparison.get("data") or []})
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("month:O", title="Month", sort=None),
            y=alt.Y("cost:Q", title="Cost", axis=alt.Axis(format="$,.2f")),
            tooltip=["month", alt.Tooltip("cost:Q", format="$,.2f")],
        )
        .properties(height=260)
    )


def service_pie_chart(cost_breakdown: Dict[str, float]) -> Optional[alt.Chart]:
    if not cost_breakdown:
        return None
    return (
        alt.Chart(breakdown_frame(cost_breakdown))
        .mark_arc()
        .encode(
            theta=alt.Theta("cost:Q"),
            color=alt.Color("service:N", title="Service"),
            tooltip=["service", alt.Tooltip("cost:Q", format="$,.2f")],
        )
        .properties(height=260)
    )


def build_charts(payload: Dict[str, Any]) -> Dict[str, Optional[Dict[str, Any]]]:
    """Vega-Lite specs for every chart slot of the dashboard; None where there is no data."""
    charts = {
        "monthly_cost": monthly_cost_chart(payload.get("monthly_cost_trend") or []),
        "daily_cost": daily_cost_chart(payload.get("daily_cost_trend") or []),
        "breakdown": breakdown_bar_chart(payload.get("cost_breakdown") or {}),
        "comparison": comparison_bar_chart(payload.get("cost_comparison") or {}),
        "service_pie": service_pie_chart(payload.get("cost_breakdown") or {}),
    }
    return {name: (to_vega_spec(chart) if chart is not None else None) for name, chart in charts.items()}
