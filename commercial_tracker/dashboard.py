"""Dashboard view: fiscal-year KPIs and income vs. budget charts.

To run the tracker from the command line::

    streamlit run commercial_tracker/Home.py

or execute ``run_tracker.py`` from the project root.
"""

from __future__ import annotations

import streamlit as st

from . import visualization as viz
from .aggregation import AggregationResult
from .formatting import format_currency
from .session import TrackerSession
from .shared_sidebar import live_updates, render_shared_sidebar, require_session


def render_kpis(result: AggregationResult) -> None:
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Income (Posted)", format_currency(result.total_income))
    with col2:
        st.metric("Total Budget", format_currency(result.total_budget))
    with col3:
        st.metric(
            "Variance",
            format_currency(result.variance),
            delta="On target" if result.variance >= 0 else "Under target",
            delta_color="normal" if result.variance >= 0 else "inverse",
        )


def render_charts(result: AggregationResult) -> None:
    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(viz.create_income_vs_budget_chart(result.monthly_frame()), use_container_width=True)
    with col2:
        st.plotly_chart(viz.create_income_by_type_chart(result.income_by_type_series()), use_container_width=True)


def render_dashboard(session: TrackerSession) -> None:
    settings = session.settings
    st.header("📊 Dashboard")
    st.caption(
        f"Fiscal window {settings.fiscal_start:%d %b %Y} to {settings.fiscal_end:%d %b %Y}. "
        "Only posted income is counted."
    )
    result = session.summary()
    render_kpis(result)
    render_charts(result)


def main() -> None:
    """Entry point for the Streamlit app."""
    st.set_page_config(
        page_title="Dashboard",
        page_icon="📊",
        layout="wide",
        initial_sidebar_state="expanded",
    )
    session = require_session()
    render_shared_sidebar(session)
    live_updates(session)
    render_dashboard(session)
