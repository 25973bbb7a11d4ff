"""Income vs. budget aggregation over the fiscal window.

:func:`aggregate` turns the raw income ledger and budget plan into the data
behind the dashboard: posted income per income type, a monthly series of
income against budget, and the three headline KPIs.  It is a pure function
of its inputs, so the dashboard recomputes it from scratch on every snapshot.

Only posted records whose agreement start date falls inside the window are
counted.  Amounts that do not parse count as zero rather than failing the
whole aggregation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union

import pandas as pd

from .models import STATUS_POSTED, UNCATEGORIZED, coerce_amount, parse_date

DateLike = Union[str, date, pd.Timestamp]


@dataclass
class AggregationResult:
    income_by_type: List[Dict[str, Any]] = field(default_factory=list)
    monthly_series: List[Dict[str, Any]] = field(default_factory=list)
    total_income: float = 0.0
    total_budget: float = 0.0
    variance: float = 0.0

    def monthly_frame(self) -> pd.DataFrame:
        """Monthly series as a DataFrame indexed by month key."""
        frame = pd.DataFrame(self.monthly_series, columns=['name', 'Income', 'Budget'])
        return frame.set_index('name').rename_axis('Month')

    def income_by_type_series(self) -> pd.Series:
        if not self.income_by_type:
            return pd.Series(dtype=float, name='Value')
        return pd.Series(
            [row['Value'] for row in self.income_by_type],
            index=pd.Index([row['name'] for row in self.income_by_type], name='Type'),
            name='Value',
        )


def _window_bound(value: DateLike, name: str) -> pd.Timestamp:
    ts = parse_date(value)
    if ts is None:
        raise ValueError(f"{name} is not a valid date: {value!r}")
    return ts.normalize()


def month_keys(window_start: DateLike, window_end: DateLike) -> List[str]:
    """Ordered ``YYYY-MM`` keys from ``window_start`` to ``window_end``.

    One key per calendar month the window touches, so a record dated
    anywhere inside the window always has a month to land in.
    """
    start = _window_bound(window_start, 'window_start')
    end = _window_bound(window_end, 'window_end')
    if start > end:
        return []
    return [str(period) for period in pd.period_range(start=start, end=end, freq='M')]


def income_frame(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Normalise raw income documents for aggregation.

    Columns: ``incomeType`` (blank -> "Uncategorized"), ``value`` (float,
    unparseable -> 0), ``start`` (naive UTC Timestamp or NaT), ``month``
    and ``status``.
    """
    rows = []
    for record in records:
        if not isinstance(record, Mapping):
            continue
        income_type = record.get('incomeType')
        start = parse_date(record.get('agreementStartDate'))
        rows.append({
            'incomeType': str(income_type) if income_type else UNCATEGORIZED,
            'value': coerce_amount(record.get('value')),
            'start': start if start is not None else pd.NaT,
            'month': start.strftime('%Y-%m') if start is not None else None,
            'status': record.get('status'),
        })
    frame = pd.DataFrame(rows, columns=['incomeType', 'value', 'start', 'month', 'status'])
    frame['start'] = pd.to_datetime(frame['start'])
    frame['value'] = frame['value'].astype(float)
    return frame


def budget_frame(entries: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    rows = [
        {'month': entry.get('month'), 'type': entry.get('type'), 'value': coerce_amount(entry.get('value'))}
        for entry in entries
        if isinstance(entry, Mapping)
    ]
    frame = pd.DataFrame(rows, columns=['month', 'type', 'value'])
    frame['value'] = frame['value'].astype(float)
    return frame


def filter_posted_in_window(frame: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp) -> pd.DataFrame:
    """Keep posted rows whose start date falls in ``[start, end]`` (whole days)."""
    day = frame['start'].dt.normalize()
    mask = frame['status'].eq(STATUS_POSTED) & frame['start'].notna() & (day >= start) & (day <= end)
    return frame[mask]


def aggregate(
    income_records: Iterable[Mapping[str, Any]],
    budget_entries: Iterable[Mapping[str, Any]],
    window_start: DateLike,
    window_end: DateLike,
) -> AggregationResult:
    """Aggregate posted income and budgets over an inclusive date window.

    Parameters
    ----------
    income_records : iterable of mapping
        Income documents (``incomeType``, ``value``, ``agreementStartDate``,
        ``status``...).  Other fields are ignored.
    budget_entries : iterable of mapping
        Budget documents (``month``, ``type``, ``value``).
    window_start, window_end : str, date or Timestamp
        Inclusive bounds of the fiscal window.

    Returns
    -------
    AggregationResult
        ``income_by_type`` rows ``{"name", "Value"}`` in first-seen order,
        ``monthly_series`` rows ``{"name", "Income", "Budget"}`` with one row
        per window month, and ``total_income``, ``total_budget`` and
        ``variance = total_income - total_budget``.
    """
    start = _window_bound(window_start, 'window_start')
    end = _window_bound(window_end, 'window_end')
    months = month_keys(start, end)

    posted = filter_posted_in_window(income_frame(income_records), start, end)
    budgets = budget_frame(budget_entries)
    budgets = budgets[budgets['month'].isin(months)]

    by_type = posted.groupby('incomeType', sort=False)['value'].sum()
    income_by_type = [{'name': name, 'Value': float(total)} for name, total in by_type.items()]

    monthly_income = posted.groupby('month')['value'].sum().reindex(months, fill_value=0.0)
    monthly_budget = budgets.groupby('month')['value'].sum().reindex(months, fill_value=0.0)

    monthly_series = [
        {'name': month, 'Income': float(monthly_income[month]), 'Budget': float(monthly_budget[month])}
        for month in months
    ]

    total_income, total_budget = _totals(monthly_series)
    return AggregationResult(
        income_by_type=income_by_type,
        monthly_series=monthly_series,
        total_income=total_income,
        total_budget=total_budget,
        variance=total_income - total_budget,
    )


def _totals(monthly_series: List[Dict[str, Any]]) -> Tuple[float, float]:
    total_income = sum(row['Income'] for row in monthly_series)
    total_budget = sum(row['Budget'] for row in monthly_series)
    return float(total_income), float(total_budget)
