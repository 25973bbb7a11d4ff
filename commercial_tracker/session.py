"""One user's view of the tracker: identity, collections and notifications.

A :class:`TrackerSession` owns the three live collections for one browser
session.  It subscribes only once an identity is available, re-requests a
session if the identity is lost, and tears its subscriptions down on
:meth:`close`.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from . import aggregation
from .config import ConfigError, Settings, ensure_data_directories, load_settings
from .identity import Identity, IdentityError, LocalIdentityProvider
from .ledger import BudgetPlan, IncomeLedger, PartnerRegistry
from .notifier import ChangeNotifier, Notification, validated_message
from .store import DocumentStore, Snapshot, SQLiteDocumentStore, StoreError

logger = logging.getLogger(__name__)


class TrackerSession:
    """Wires the identity provider, the store and the live collections."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[DocumentStore] = None,
        identity: Optional[LocalIdentityProvider] = None,
        notification: Optional[Notification] = None,
        store_factory: Optional[Callable[..., DocumentStore]] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.store_factory = store_factory or SQLiteDocumentStore
        self.identity = identity
        self.notification = notification or Notification()
        self.notifier = ChangeNotifier()
        self.user: Optional[Identity] = None
        self.partners: Optional[PartnerRegistry] = None
        self.income: Optional[IncomeLedger] = None
        self.budgets: Optional[BudgetPlan] = None
        self._unsubscribe_identity: Optional[Callable[[], None]] = None
        self._initialized = False
        self._failed = False

    # Lifecycle --------------------------------------------------------------

    def start(self) -> bool:
        """Build clients and establish a session.

        Returns:
            False if initialization failed; the session then stays not ready.
        """
        if self._initialized or self._failed:
            return self.ready
        try:
            if self.settings is None:
                self.settings = load_settings()
            if self.store is None:
                ensure_data_directories(self.settings)
                self.store = self.store_factory(
                    self.settings.store_path,
                    self.settings.namespace,
                    timeout=self.settings.store_timeout,
                )
            if self.identity is None:
                self.identity = LocalIdentityProvider(self.settings.auth_token)
        except (ConfigError, StoreError, IdentityError, OSError) as exc:
            logger.error("Error initializing tracker: %s", exc)
            self._failed = True
            return False

        self.partners = PartnerRegistry(self.store)
        self.income = IncomeLedger(self.store)
        self.budgets = BudgetPlan(self.store)
        self._initialized = True
        self._unsubscribe_identity = self.identity.on_session_change(self._on_session_change)
        return self.ready

    def close(self) -> None:
        """Detach every subscription and the identity listener."""
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None
        self._detach_all()

    @property
    def ready(self) -> bool:
        return self._initialized and self.user is not None

    @property
    def version(self) -> int:
        """Changes whenever any collection receives a snapshot."""
        if not self._initialized:
            return 0
        return self.partners.version + self.income.version + self.budgets.version

    def refresh(self) -> int:
        """Pull changes written by other processes."""
        if not self.ready:
            return 0
        try:
            return self.store.poll()
        except StoreError as exc:
            logger.error("Error refreshing tracker data: %s", exc)
            return 0

    # Identity ---------------------------------------------------------------

    def _on_session_change(self, user: Optional[Identity]) -> None:
        if user is not None:
            self.user = user
            self._attach_all()
            return
        self.user = None
        self._detach_all()
        try:
            self.identity.establish_session()
        except IdentityError as exc:
            logger.error("Error signing in: %s", exc)

    def _attach_all(self) -> None:
        if self.income.attached:
            return
        self.notifier.reset()
        self.partners.attach()
        self.budgets.attach()
        self.income.attach(self._on_income_snapshot)

    def _detach_all(self) -> None:
        for collection in (self.partners, self.income, self.budgets):
            if collection is not None:
                collection.detach()

    def _on_income_snapshot(self, snapshot: Snapshot) -> None:
        message = self.notifier.process(snapshot)
        if message:
            self.notification.show(message)

    # Intents the UI calls directly -----------------------------------------

    def validate_income(self, record_id: str) -> bool:
        ok = self.income.validate(record_id)
        if ok:
            self.notification.show(validated_message(record_id))
        return ok

    def summary(self) -> aggregation.AggregationResult:
        """Aggregation of the current snapshots over the configured fiscal window."""
        return aggregation.aggregate(
            self.income.documents,
            self.budgets.documents,
            self.settings.fiscal_start,
            self.settings.fiscal_end,
        )

    def fiscal_months(self) -> List[str]:
        return aggregation.month_keys(self.settings.fiscal_start, self.settings.fiscal_end)
