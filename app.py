import altair as alt
import pandas as pd
import streamlit as st
from contextlib import contextmanager
from datetime import date
from typing import Optional

from core.charts import (
    breakdown_bar_chart,
    comparison_bar_chart,
    daily_cost_chart,
    monthly_cost_chart,
    service_pie_chart,
)
from core.data import get_record_source
from core.filters import parse_iso_date
from core.metrics_overview import display_rows
from core.records import FIELD_NAMES
from core.session import ViewState, clear_filters, mount, request_export, update_filters

alt.data_transformers.disable_max_rows()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .metric-value {font-size: 1.5rem;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def chart_or_info(chart: Optional[alt.Chart], empty_message: str = "No cost data to chart."):
    if chart is None:
        st.info(empty_message)
    else:
        st.altair_chart(chart, use_container_width=True)


def get_view_state() -> ViewState:
    """One ViewState per browser session; the record source is fetched only on first load."""
    if "view_state" not in st.session_state:
        st.session_state["view_state"] = mount(get_record_source())
    return st.session_state["view_state"]


# ---------- Event handlers ----------
def on_apply_filters():
    date_from: Optional[date] = st.session_state.get("filter_date_from")
    date_to: Optional[date] = st.session_state.get("filter_date_to")
    update_filters(get_view_state(), {"date_from": date_from, "date_to": date_to})


def on_clear_filters():
    st.session_state["filter_date_from"] = None
    st.session_state["filter_date_to"] = None
    clear_filters(get_view_state())


def on_download_report():
    request_export(get_view_state())


# ---------- Page sections ----------
def render_metrics(state: ViewState):
    cols = st.columns(3)
    with cols[0]:
        with card("Total Monthly Cost"):
            st.markdown(f"<div class='metric-value'>${state.total_monthly_cost}</div>", unsafe_allow_html=True)
    with cols[1]:
        with card("Cost Breakdown by Service"):
            if not state.cost_breakdown:
                st.caption("No services.")
            for service, cost in state.cost_breakdown.items():
                st.markdown(f"- {service}: ${cost}")
    with cols[2]:
        with card("Cost Trends"):
            st.write("View monthly and daily trends below")


def render_filters(state: ViewState):
    for key, bound in (("filter_date_from", state.filters.date_from), ("filter_date_to", state.filters.date_to)):
        if key not in st.session_state:
            st.session_state[key] = parse_iso_date(bound)
    with card("Filters"):
        with st.form("filters"):
            cols = st.columns(2)
            cols[0].date_input("From:", key="filter_date_from")
            cols[1].date_input("To:", key="filter_date_to")
            st.form_submit_button("Apply Filters", on_click=on_apply_filters)
        st.button("Clear Filters", on_click=on_clear_filters)


def render_records(state: ViewState):
    with card("Detailed Billing Records"):
        table = pd.DataFrame(display_rows(state), columns=list(FIELD_NAMES))
        if not table.empty:
            table["Cost"] = "$" + table["Cost"].astype(str)
        st.dataframe(table, hide_index=True, use_container_width=True, height=384)


def render_charts(state: ViewState):
    st.subheader("Data Visualization")
    st.markdown("#### Time-Series Charts")
    ts_cols = st.columns(2)
    with ts_cols[0]:
        with card("Monthly Cost Trend"):
            chart_or_info(monthly_cost_chart(state.monthly_cost_trend))
    with ts_cols[1]:
        with card("Daily Cost Trend"):
            chart_or_info(daily_cost_chart(state.daily_cost_trend))

    st.markdown("#### Bar Charts")
    bar_cols = st.columns(2)
    with bar_cols[0]:
        with card("Cost Breakdown by Service"):
            chart_or_info(breakdown_bar_chart(state.cost_breakdown))
    with bar_cols[1]:
        with card("Cost Comparison"):
            chart_or_info(comparison_bar_chart(state.cost_comparison))

    st.markdown("#### Pie Charts")
    with card("Cost Distribution by Service"):
        chart_or_info(service_pie_chart(state.cost_breakdown))


def render_reports(state: ViewState):
    st.subheader("Detailed Reports")
    st.write("Download the filtered line items together with the current date filters.")
    export_df = pd.DataFrame([item.to_record() for item in state.filtered_line_items], columns=list(FIELD_NAMES))
    st.download_button(
        "Download Report",
        data=export_df.to_csv(index=False).encode("utf-8"),
        file_name="cur_report.csv",
        mime="text/csv",
        on_click=on_download_report,
    )


# ---------- UI setup ----------
st.set_page_config(page_title="AWS Cost Analysis", layout="wide")
inject_base_styles()
st.title("AWS Cost Analysis")

view_state = get_view_state()
if view_state.error is not None:
    st.error(f"Could not load the Cost and Usage Report: {view_state.error}")
    st.stop()

render_metrics(view_state)
render_filters(view_state)
render_records(view_state)
render_charts(view_state)
render_reports(view_state)
