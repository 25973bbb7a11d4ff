"""Modal forms for income records and partners.

A dialog closes (via ``st.rerun``) only after the store accepted the write;
when the write fails the dialog stays open with the user's input so they
can try again.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Mapping, Optional

import streamlit as st

from .models import (
    INCOME_TYPES,
    INVOICE_STATUSES,
    PARTNER_TYPE_FOR_INCOME,
    PARTNER_TYPES,
    coerce_amount,
    parse_date,
    validate_income_form,
    validate_partner_form,
)
from .session import TrackerSession


def _to_date(value: Any) -> Optional[date]:
    ts = parse_date(value)
    return ts.date() if ts is not None else None


def _index_of(options, value, default: Optional[int] = 0) -> Optional[int]:
    return options.index(value) if value in options else default


def _clear_widget_state(prefix: str) -> None:
    for key in [k for k in st.session_state.keys() if str(k).startswith(prefix)]:
        del st.session_state[key]


def open_income_dialog(session: TrackerSession, record: Optional[Mapping[str, Any]] = None) -> None:
    _clear_widget_state("income_form_")
    income_dialog(session, record)


def open_partner_dialog(
    session: TrackerSession,
    partner: Optional[Mapping[str, Any]] = None,
    partner_type: str = 'customer',
) -> None:
    _clear_widget_state("partner_form_")
    partner_dialog(session, partner, partner_type)


@st.dialog("Income Entry", width="large")
def income_dialog(session: TrackerSession, record: Optional[Mapping[str, Any]] = None) -> None:
    """Create a new income record, or edit ``record``."""
    editing = record is not None
    record = dict(record or {})

    income_type = st.selectbox(
        "Income Type *",
        options=list(INCOME_TYPES),
        index=_index_of(list(INCOME_TYPES), record.get('incomeType')),
        key="income_form_type",
    )
    partner_type = PARTNER_TYPE_FOR_INCOME.get(income_type, 'customer')
    partners = session.partners.by_type(partner_type)
    partner_ids = [p['id'] for p in partners]
    names = {p['id']: p.get('name') or p['id'] for p in partners}

    # A new entry's partner choice resets whenever the income type changes
    partner_key = "income_form_partner" if editing else f"income_form_partner_{income_type}"
    partner_id = st.selectbox(
        f"{partner_type.capitalize()} *",
        options=partner_ids,
        index=_index_of(partner_ids, record.get('partnerId'), default=None),
        format_func=lambda pid: names.get(pid, pid),
        placeholder="Select a partner",
        key=partner_key,
    )

    value = st.number_input(
        "Value *",
        value=coerce_amount(record.get('value')) if editing else None,
        step=100.0,
        placeholder="5000",
        key="income_form_value",
    )
    invoice_status = st.selectbox(
        "Invoice Status",
        options=list(INVOICE_STATUSES),
        index=_index_of(list(INVOICE_STATUSES), record.get('invoiceStatus')),
        format_func=str.capitalize,
        key="income_form_invoice_status",
    )
    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("Agreement Start Date *", value=_to_date(record.get('agreementStartDate')), key="income_form_start")
    with col2:
        end = st.date_input("Agreement End Date", value=_to_date(record.get('agreementEndDate')), key="income_form_end")

    form: Dict[str, Any] = {
        'incomeType': income_type,
        'partnerId': partner_id or '',
        'value': value,
        'invoiceStatus': invoice_status,
        'agreementStartDate': start.isoformat() if start else '',
        'agreementEndDate': end.isoformat() if end else '',
    }
    if editing:
        form['id'] = record.get('id')

    cancel_col, save_col = st.columns(2)
    with cancel_col:
        if st.button("Cancel", use_container_width=True):
            st.rerun()
    with save_col:
        if st.button("Save Income", type="primary", use_container_width=True):
            errors = validate_income_form(form)
            for error in errors:
                st.error(error)
            if not errors and session.income.save(form):
                st.rerun()


@st.dialog("Partner")
def partner_dialog(
    session: TrackerSession,
    partner: Optional[Mapping[str, Any]] = None,
    partner_type: str = 'customer',
) -> None:
    """Create a partner of ``partner_type``, or edit ``partner``."""
    partner = dict(partner or {'type': partner_type})

    form: Dict[str, Any] = {
        'type': st.selectbox(
            "Partner Type",
            options=list(PARTNER_TYPES),
            index=_index_of(list(PARTNER_TYPES), partner.get('type')),
            format_func=str.capitalize,
            key="partner_form_type",
        ),
        'name': st.text_input(
            "Company Name *", value=partner.get('name', ''), placeholder="Acme Corp", key="partner_form_name"
        ),
        'contactName': st.text_input(
            "Contact Name", value=partner.get('contactName', ''), placeholder="Jane Doe", key="partner_form_contact"
        ),
        'contactEmail': st.text_input(
            "Contact Email", value=partner.get('contactEmail', ''), placeholder="jane.doe@acme.com",
            key="partner_form_email",
        ),
        'contactPhone': st.text_input(
            "Contact Phone", value=partner.get('contactPhone', ''), placeholder="+44 20 7946 0958",
            key="partner_form_phone",
        ),
    }
    if partner.get('id'):
        form['id'] = partner['id']

    cancel_col, save_col = st.columns(2)
    with cancel_col:
        if st.button("Cancel", use_container_width=True):
            st.rerun()
    with save_col:
        if st.button("Save Partner", type="primary", use_container_width=True):
            errors = validate_partner_form(form)
            for error in errors:
                st.error(error)
            if not errors and session.partners.save(form):
                st.rerun()
