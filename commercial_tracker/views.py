"""Table and grid builders for the tracker pages.

These functions turn collection documents into the DataFrames the pages
render, and keep that logic out of the Streamlit scripts so it can be
tested without a running app.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .formatting import month_label
from .models import IncomeRecord, coerce_amount
from .pages.config import get_config_value

LEDGER_COLUMNS = ['id', 'Status', 'Start Date', 'Partner', 'Type', 'Value', 'Invoice #', 'Invoice Status']
PARTNER_COLUMNS = ['id', 'Company', 'Contact', 'Email', 'Phone']
TOTAL_BUDGET_COLUMN = get_config_value('tracker', 'labels', 'total_budget_column', default='Total Monthly Budget')


def ledger_table(records: Sequence[Mapping[str, Any]], resolve_partner: Callable[[Optional[str]], str]) -> pd.DataFrame:
    """Raw ledger rows, every record included whatever its status.

    Args:
        records: Income documents, already in display order
        resolve_partner: Maps a partner id to a display name

    Returns:
        DataFrame with :data:`LEDGER_COLUMNS`
    """
    rows = []
    for doc in records:
        record = IncomeRecord.from_document(doc)
        rows.append({
            'id': record.id,
            'Status': record.status,
            'Start Date': record.agreementStartDate,
            'Partner': resolve_partner(record.partnerId),
            'Type': record.incomeType,
            'Value': record.amount,
            'Invoice #': record.invoiceNumber or '',
            'Invoice Status': record.invoiceStatus,
        })
    return pd.DataFrame(rows, columns=LEDGER_COLUMNS)


def partner_table(partners: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    rows = [
        {
            'id': partner.get('id'),
            'Company': partner.get('name') or '',
            'Contact': partner.get('contactName') or '',
            'Email': partner.get('contactEmail') or '',
            'Phone': partner.get('contactPhone') or '',
        }
        for partner in partners
    ]
    return pd.DataFrame(rows, columns=PARTNER_COLUMNS)


def budget_grid(
    value_for: Callable[[str, str], Optional[float]],
    months: Sequence[str],
    categories: Sequence[str],
) -> pd.DataFrame:
    """Editable budget grid, one row per month and one column per category.

    Missing entries are NaN so the editor shows an empty cell; the total
    column treats them as zero.
    """
    rows: List[Dict[str, Any]] = []
    for month in months:
        row: Dict[str, Any] = {'Month': month_label(month)}
        total = 0.0
        for category in categories:
            value = value_for(month, category)
            row[category] = float('nan') if value is None else value
            total += value or 0.0
        row[TOTAL_BUDGET_COLUMN] = total
        rows.append(row)
    frame = pd.DataFrame(rows, columns=['Month', *categories, TOTAL_BUDGET_COLUMN])
    frame.index = pd.Index(list(months), name='month')
    return frame


def changed_budget_cells(
    before: pd.DataFrame,
    after: pd.DataFrame,
    categories: Sequence[str],
) -> List[Tuple[str, str, float]]:
    """Cells edited between two versions of :func:`budget_grid`.

    Returns:
        ``(month, category, value)`` for each changed cell, in grid order.
        A cleared cell is saved as 0.
    """
    changes: List[Tuple[str, str, float]] = []
    for month in after.index:
        if month not in before.index:
            continue
        for category in categories:
            old = before.at[month, category]
            new = after.at[month, category]
            if _same_cell(old, new):
                continue
            changes.append((str(month), category, coerce_amount(new)))
    return changes


def _same_cell(old: Any, new: Any) -> bool:
    old_missing = old is None or bool(pd.isna(old))
    new_missing = new is None or bool(pd.isna(new))
    if old_missing or new_missing:
        return old_missing and new_missing
    return coerce_amount(old) == coerce_amount(new)
