"""Tests for table builders, formatting and Plotly figures."""

from __future__ import annotations

import math

import pandas as pd

from commercial_tracker import visualization as viz
from commercial_tracker.formatting import escape_dollar_for_markdown, format_currency, month_label
from commercial_tracker.pages.config import get_config_value
from commercial_tracker.views import TOTAL_BUDGET_COLUMN, budget_grid, changed_budget_cells, ledger_table

CATEGORIES = ["Procurement Income", "Consultancy"]
MONTHS = ["2025-10", "2025-11"]


def _resolve(partner_id):
    return {"p1": "Acme"}.get(partner_id, "Unknown")


def test_ledger_table_includes_pending_records() -> None:
    records = [
        {"id": "a", "status": "pending", "incomeType": "Consultancy", "value": "500", "partnerId": "p1"},
        {"id": "b", "status": "posted", "incomeType": "", "value": "abc", "partnerId": "gone"},
    ]
    table = ledger_table(records, _resolve)
    assert list(table["id"]) == ["a", "b"]
    assert list(table["Status"]) == ["pending", "posted"]
    assert list(table["Partner"]) == ["Acme", "Unknown"]
    assert list(table["Type"]) == ["Consultancy", "Uncategorized"]
    assert list(table["Value"]) == [500.0, 0.0]


def test_ledger_table_empty() -> None:
    assert ledger_table([], _resolve).empty


def _grid():
    values = {("2025-10", "Consultancy"): 1000.0, ("2025-11", "Procurement Income"): 300.0}
    return budget_grid(lambda month, category: values.get((month, category)), MONTHS, CATEGORIES)


def test_budget_grid_layout() -> None:
    grid = _grid()
    assert list(grid.index) == MONTHS
    assert list(grid["Month"]) == ["October 2025", "November 2025"]
    assert math.isnan(grid.at["2025-10", "Procurement Income"])
    assert grid.at["2025-10", TOTAL_BUDGET_COLUMN] == 1000.0
    assert grid.at["2025-11", TOTAL_BUDGET_COLUMN] == 300.0


def test_changed_budget_cells() -> None:
    before = _grid()
    after = before.copy()
    after.at["2025-10", "Consultancy"] = 1500.0
    after.at["2025-11", "Procurement Income"] = float("nan")
    after.at["2025-11", TOTAL_BUDGET_COLUMN] = 99.0
    assert changed_budget_cells(before, after, CATEGORIES) == [
        ("2025-10", "Consultancy", 1500.0),
        ("2025-11", "Procurement Income", 0.0),
    ]
    assert changed_budget_cells(before, before.copy(), CATEGORIES) == []


def test_formatting() -> None:
    assert format_currency(1234.56) == "$1,234.56"
    assert format_currency(-800) == "-$800.00"
    assert format_currency(5, include_sign=False) == "5.00"
    assert escape_dollar_for_markdown("New Entry: Consultancy - $5") == "New Entry: Consultancy - \\$5"
    assert month_label("2026-09") == "September 2026"


def test_empty_figures() -> None:
    empty_monthly = pd.DataFrame(columns=["Income", "Budget"])
    assert viz.create_income_vs_budget_chart(empty_monthly).layout.title.text == "No data to display"
    assert viz.create_income_by_type_chart(pd.Series(dtype=float)).layout.title.text == "No data to display"


def test_income_vs_budget_chart() -> None:
    monthly = pd.DataFrame(
        {"Income": [100.0, 200.0], "Budget": [150.0, 150.0]},
        index=pd.Index(MONTHS, name="Month"),
    )
    fig = viz.create_income_vs_budget_chart(monthly)
    assert sorted(trace.name for trace in fig.data) == ["Budget", "Income"]
    assert fig.layout.title.text == "Income vs. Budget Over Time"


def test_income_by_type_chart() -> None:
    series = pd.Series([10.0, 20.0], index=pd.Index(CATEGORIES, name="Type"), name="Value")
    fig = viz.create_income_by_type_chart(series, title="By type")
    assert len(fig.data) == 1
    assert list(fig.data[0].x) == CATEGORIES
    assert fig.layout.title.text == "By type"


def test_total_column_label_comes_from_catalog() -> None:
    assert TOTAL_BUDGET_COLUMN == get_config_value("tracker", "labels", "total_budget_column")
    assert TOTAL_BUDGET_COLUMN in _grid().columns
