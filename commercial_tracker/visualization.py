"""Plotly visualisation helpers for the tracker dashboard.

Each function accepts the data objects produced by :mod:`aggregation` and
returns a ``plotly.graph_objects.Figure`` that Streamlit renders via
``st.plotly_chart``.  Empty inputs produce an empty figure titled
"No data to display" rather than raising.
"""

from __future__ import annotations

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

INCOME_COLOR = "#3b82f6"
BUDGET_COLOR = "#8884d8"
HOVER_CURRENCY = "%{x}<br>$%{y:,.2f}"


def _empty_figure(title: str = "No data to display") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_income_vs_budget_chart(monthly: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Line chart of monthly income against monthly budget.

    Parameters
    ----------
    monthly : pandas.DataFrame
        Indexed by month key with ``Income`` and ``Budget`` columns, as
        returned by :meth:`AggregationResult.monthly_frame`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Two-line chart, one line per series.
    """
    if monthly.empty:
        return _empty_figure()
    df = monthly.reset_index().rename(columns={monthly.index.name or "index": "Month"})
    long_df = df.melt(id_vars="Month", value_vars=["Income", "Budget"], var_name="Series", value_name="Amount")
    fig = px.line(
        long_df,
        x="Month",
        y="Amount",
        color="Series",
        markers=True,
        color_discrete_map={"Income": INCOME_COLOR, "Budget": BUDGET_COLOR},
    )
    fig.update_traces(hovertemplate=HOVER_CURRENCY)
    fig.update_layout(
        title=title or "Income vs. Budget Over Time",
        xaxis_title="Month",
        yaxis_title="Amount ($)",
        legend_title_text="",
    )
    return fig


def create_income_by_type_chart(series: pd.Series, title: str | None = None) -> go.Figure:
    """Bar chart of posted income per income type.

    Parameters
    ----------
    series : pandas.Series
        Totals indexed by income type.
    title : str, optional
        Chart title.
    """
    if series.empty:
        return _empty_figure()
    df = series.reset_index()
    df.columns = ["Type", "Value"]
    fig = px.bar(df, x="Type", y="Value", color_discrete_sequence=[INCOME_COLOR])
    fig.update_traces(hovertemplate=HOVER_CURRENCY)
    fig.update_layout(
        title=title or "Income by Type (Posted)",
        xaxis_title="Income type",
        yaxis_title="Value ($)",
    )
    return fig
