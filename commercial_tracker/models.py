"""Document shapes for partners, income records and budget entries.

Records travel through the store and the in-memory collections as plain
dicts (``{"id": ..., **fields}``).  The dataclasses here give the forms and
tables a typed view of those dicts, and the helpers implement the lenient
parsing rules shared with :mod:`aggregation`: an amount that is not a number
counts as zero and a date that does not parse is treated as missing.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .pages.config import get_tracker_config

_CATALOG = get_tracker_config()

INCOME_TYPES = tuple(_CATALOG['income_types'])
INVOICE_STATUSES = tuple(_CATALOG['invoice_statuses'])
PARTNER_TYPES = tuple(_CATALOG['partner_types'])
BUDGET_CATEGORIES = tuple(_CATALOG['budget_categories'])
PARTNER_TYPE_FOR_INCOME: Dict[str, str] = dict(_CATALOG['partner_type_for_income'])

STATUS_PENDING = 'pending'
STATUS_POSTED = 'posted'
UNCATEGORIZED = 'Uncategorized'
UNKNOWN_PARTNER = 'Unknown'
INVOICE_PREFIX = 'AVE'

_MONTH_KEY = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Lenient parsing
# ---------------------------------------------------------------------------


def coerce_amount(value: Any) -> float:
    """Convert a stored amount into a float, falling back to 0.0.

    Strings, ints, floats and Decimals are accepted; anything that does not
    parse to a finite number (``None``, ``"abc"``, booleans, NaN) contributes
    zero.  Thousands separators are dropped, so ``"1,000"`` reads as 1000.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, Decimal):
        return float(value) if value.is_finite() else 0.0
    if isinstance(value, str):
        value = value.strip().replace(',', '')
        if not value:
            return 0.0
    elif not isinstance(value, (int, float, np.number)):
        return 0.0
    number = pd.to_numeric(pd.Series([value]), errors='coerce').iloc[0]
    if pd.isna(number) or not np.isfinite(number):
        return 0.0
    return float(number)


def parse_date(value: Any) -> Optional[pd.Timestamp]:
    """Parse an ISO date/timestamp into a naive UTC :class:`pandas.Timestamp`.

    Returns ``None`` for empty, non-date or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
    elif not isinstance(value, (date, datetime, pd.Timestamp)):
        return None
    ts = pd.to_datetime(value, errors='coerce', utc=True)
    if pd.isna(ts):
        return None
    return ts.tz_convert(None)


def month_key(value: Any) -> Optional[str]:
    """Return the ``YYYY-MM`` key of a date-like value, or ``None``."""
    ts = parse_date(value)
    return ts.strftime('%Y-%m') if ts is not None else None


def budget_key(month: str, category: str) -> str:
    """Document id of the budget entry for ``(month, category)``.

    The encoding is ``<month>-<category without whitespace>``, e.g.
    ``2025-10-ProcurementIncome``.  Reads and writes both go through this
    function so that re-saving a cell overwrites the same document.

    Raises:
        ValueError: If ``month`` is not a ``YYYY-MM`` key or category is blank.
    """
    if not isinstance(month, str) or not _MONTH_KEY.match(month):
        raise ValueError(f"Budget month must look like YYYY-MM, got {month!r}")
    stripped = _WHITESPACE.sub('', category or '')
    if not stripped:
        raise ValueError("Budget category cannot be empty")
    return f"{month}-{stripped}"


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    """Invoice number ``AVE-<creation epoch millis>``."""
    moment = now or datetime.now(timezone.utc)
    return f"{INVOICE_PREFIX}-{int(moment.timestamp() * 1000)}"


def utc_now_iso(now: Optional[datetime] = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Partner:
    id: Optional[str]
    type: str = 'customer'
    name: str = ''
    contactName: str = ''
    contactEmail: str = ''
    contactPhone: str = ''

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> 'Partner':
        return cls(
            id=doc.get('id'),
            type=str(doc.get('type') or 'customer'),
            name=str(doc.get('name') or ''),
            contactName=str(doc.get('contactName') or ''),
            contactEmail=str(doc.get('contactEmail') or ''),
            contactPhone=str(doc.get('contactPhone') or ''),
        )

    def to_document(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop('id')
        return data


@dataclass
class IncomeRecord:
    id: Optional[str]
    incomeType: str = INCOME_TYPES[0]
    partnerId: str = ''
    value: Any = ''
    agreementStartDate: str = ''
    agreementEndDate: str = ''
    invoiceStatus: str = STATUS_PENDING
    invoiceNumber: Optional[str] = None
    status: str = STATUS_PENDING
    createdAt: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> 'IncomeRecord':
        return cls(
            id=doc.get('id'),
            incomeType=doc.get('incomeType') or UNCATEGORIZED,
            partnerId=doc.get('partnerId') or '',
            value=doc.get('value', ''),
            agreementStartDate=doc.get('agreementStartDate') or '',
            agreementEndDate=doc.get('agreementEndDate') or '',
            invoiceStatus=doc.get('invoiceStatus') or STATUS_PENDING,
            invoiceNumber=doc.get('invoiceNumber'),
            status=doc.get('status') or STATUS_PENDING,
            createdAt=doc.get('createdAt'),
        )

    @property
    def amount(self) -> float:
        return coerce_amount(self.value)

    @property
    def is_posted(self) -> bool:
        return self.status == STATUS_POSTED


@dataclass
class BudgetEntry:
    month: str
    type: str
    value: float = 0.0

    @property
    def key(self) -> str:
        return budget_key(self.month, self.type)

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> 'BudgetEntry':
        return cls(
            month=str(doc.get('month') or ''),
            type=str(doc.get('type') or ''),
            value=coerce_amount(doc.get('value')),
        )

    def to_document(self) -> Dict[str, Any]:
        return {'month': self.month, 'type': self.type, 'value': coerce_amount(self.value)}


# ---------------------------------------------------------------------------
# Form shape checks
# ---------------------------------------------------------------------------


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_income_form(form: Mapping[str, Any]) -> List[str]:
    """Return messages for missing required income fields (empty if valid)."""
    errors: List[str] = []
    if _is_blank(form.get('incomeType')):
        errors.append("Income type is required.")
    if _is_blank(form.get('partnerId')):
        errors.append("Select a partner.")
    if _is_blank(form.get('value')):
        errors.append("Value is required.")
    if _is_blank(form.get('agreementStartDate')):
        errors.append("Agreement start date is required.")
    return errors


def validate_partner_form(form: Mapping[str, Any]) -> List[str]:
    """Return messages for a partner form that cannot be saved."""
    errors: List[str] = []
    if form.get('type') not in PARTNER_TYPES:
        errors.append(f"Partner type must be one of: {', '.join(PARTNER_TYPES)}.")
    if _is_blank(form.get('name')):
        errors.append("Company name is required.")
    return errors
