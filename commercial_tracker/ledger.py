"""In-memory, store-synchronized collections and their write intents.

Each collection mirrors the latest snapshot of one store collection.  Write
intents go straight to the store and never touch the local list: the change
becomes visible when the subscription delivers it back.  Write failures are
logged and reported through the return value so the UI can leave a form
open for the user to retry.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .models import (
    STATUS_PENDING,
    STATUS_POSTED,
    UNKNOWN_PARTNER,
    BudgetEntry,
    Partner,
    budget_key,
    coerce_amount,
    generate_invoice_number,
    parse_date,
    utc_now_iso,
)
from .store import DocumentStore, Snapshot, StoreError, Subscription

logger = logging.getLogger(__name__)

# Fields assigned once at creation and never rewritten by an update
IMMUTABLE_INCOME_FIELDS = ('invoiceNumber', 'createdAt')
# Lifecycle field; only validate() moves it, and only to posted
LIFECYCLE_INCOME_FIELDS = ('status',)


class LiveCollection:
    """Latest snapshot of one store collection."""

    collection: str = ''

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._documents: List[Dict[str, Any]] = []
        self._subscription: Optional[Subscription] = None
        self._hook: Optional[Callable[[Snapshot], None]] = None
        self.last_error: Optional[Exception] = None
        self.version = 0

    # Subscription lifecycle -------------------------------------------------

    def attach(self, on_snapshot: Optional[Callable[[Snapshot], None]] = None) -> Subscription:
        """Subscribe to the store; ``on_snapshot`` runs before the list is replaced."""
        self.detach()
        self._hook = on_snapshot
        # The store only holds these bound methods weakly; dropping the
        # collection ends its subscription.
        self._subscription = self.store.subscribe(self.collection, self._handle_snapshot, on_error=self._on_error)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    @property
    def attached(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def _handle_snapshot(self, snapshot: Snapshot) -> None:
        if self._hook is not None:
            self._hook(snapshot)
        self.apply_snapshot(snapshot)

    def apply_snapshot(self, snapshot: Snapshot) -> None:
        self._documents = [dict(doc) for doc in snapshot.documents]
        self.version += 1

    def _on_error(self, exc: Exception) -> None:
        logger.error("Error listening to %s: %s", self.collection, exc)
        self.last_error = exc

    # Reads ------------------------------------------------------------------

    @property
    def documents(self) -> List[Dict[str, Any]]:
        return list(self._documents)

    def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        for doc in self._documents:
            if doc.get('id') == doc_id:
                return dict(doc)
        return None

    def __len__(self) -> int:
        return len(self._documents)

    # Writes -----------------------------------------------------------------

    def _upsert(self, doc_id: Optional[str], fields: Mapping[str, Any], action: str) -> Optional[str]:
        try:
            return self.store.upsert(self.collection, doc_id, fields, merge=True)
        except StoreError as exc:
            logger.error("Error %s %s %s: %s", action, self.collection, doc_id or '(new)', exc)
            return None

    def _delete(self, doc_id: str) -> bool:
        try:
            self.store.delete(self.collection, doc_id)
        except StoreError as exc:
            logger.error("Error deleting %s %s: %s", self.collection, doc_id, exc)
            return False
        return True


class PartnerRegistry(LiveCollection):
    """Customers and suppliers."""

    collection = 'partners'

    def by_type(self, partner_type: str) -> List[Dict[str, Any]]:
        return [doc for doc in self._documents if doc.get('type') == partner_type]

    def resolve_name(self, partner_id: Optional[str]) -> str:
        """Name of the partner, or ``"Unknown"`` for a dangling reference."""
        if partner_id:
            doc = self.get(partner_id)
            if doc and doc.get('name'):
                return str(doc['name'])
        return UNKNOWN_PARTNER

    def save(self, partner: Mapping[str, Any]) -> Optional[str]:
        """Create a partner, or merge into the existing one when ``id`` is set."""
        record = Partner.from_document(partner)
        action = 'updating' if record.id else 'creating'
        return self._upsert(record.id, record.to_document(), action)

    def delete(self, partner_id: str) -> bool:
        """Remove a partner; income records referencing it are left as they are."""
        return self._delete(partner_id)


class IncomeLedger(LiveCollection):
    """Income records with the pending -> posted lifecycle."""

    collection = 'income'

    def create(self, form: Mapping[str, Any], now: Optional[datetime] = None) -> Optional[str]:
        """Store a new record as ``pending`` with a fresh invoice number."""
        fields = {k: v for k, v in form.items() if k != 'id'}
        fields.update(
            status=STATUS_PENDING,
            invoiceNumber=generate_invoice_number(now),
            createdAt=utc_now_iso(now),
        )
        return self._upsert(None, fields, 'creating')

    def update(self, record_id: str, form: Mapping[str, Any]) -> bool:
        """Merge caller fields into a record.

        The invoice number, creation timestamp and lifecycle status are kept
        as they are whatever the caller sends.
        """
        protected = ('id', *IMMUTABLE_INCOME_FIELDS, *LIFECYCLE_INCOME_FIELDS)
        fields = {k: v for k, v in form.items() if k not in protected}
        return self._upsert(record_id, fields, 'updating') is not None

    def save(self, form: Mapping[str, Any], now: Optional[datetime] = None) -> bool:
        record_id = form.get('id')
        if record_id:
            return self.update(record_id, form)
        return self.create(form, now=now) is not None

    def validate(self, record_id: str) -> bool:
        """Move a record to ``posted``; repeating it changes nothing."""
        return self._upsert(record_id, {'status': STATUS_POSTED}, 'validating') is not None

    def delete(self, record_id: str) -> bool:
        return self._delete(record_id)

    def pending(self) -> List[Dict[str, Any]]:
        return [doc for doc in self._documents if doc.get('status') == STATUS_PENDING]

    def sorted_records(self) -> List[Dict[str, Any]]:
        """Pending records first, then newest ``createdAt`` first."""

        def created(doc: Mapping[str, Any]) -> float:
            ts = parse_date(doc.get('createdAt'))
            return ts.value if ts is not None else float('-inf')

        by_date = sorted(self._documents, key=created, reverse=True)
        return sorted(by_date, key=lambda doc: 0 if doc.get('status') == STATUS_PENDING else 1)


class BudgetPlan(LiveCollection):
    """Monthly targets keyed by (month, category)."""

    collection = 'budgets'

    def upsert(self, month: str, category: str, value: Any) -> bool:
        """Save the target for ``(month, category)``; bad numbers are stored as 0."""
        entry = BudgetEntry(month=month, type=category, value=coerce_amount(value))
        return self._upsert(entry.key, entry.to_document(), 'saving') is not None

    def value_for(self, month: str, category: str) -> Optional[float]:
        for doc in self._documents:
            if doc.get('month') == month and doc.get('type') == category:
                return coerce_amount(doc.get('value'))
        return None

    def entries_for(self, months: Iterable[str]) -> List[Dict[str, Any]]:
        wanted = set(months)
        return [doc for doc in self._documents if doc.get('month') in wanted]
