"""Tests for identity handling and the per-user tracker session."""

from __future__ import annotations

import gc
import hashlib

import pytest

from commercial_tracker.config import load_settings
from commercial_tracker.identity import IdentityError, LocalIdentityProvider, token_uid
from commercial_tracker.session import TrackerSession
from commercial_tracker.store import SQLiteDocumentStore, StoreError


@pytest.fixture
def settings(tmp_path):
    return load_settings({"AVE_STORE_PATH": str(tmp_path / "tracker.db"), "AVE_APP_ID": "test-app"})


@pytest.fixture
def store(settings):
    return SQLiteDocumentStore(settings.store_path, settings.namespace)


def test_anonymous_session() -> None:
    provider = LocalIdentityProvider()
    seen = []
    provider.on_session_change(seen.append)
    identity = provider.establish_session()
    assert seen == [None, identity]
    assert identity.anonymous
    assert len(identity.uid) == 28


def test_token_session_is_stable() -> None:
    expected = "tok-" + hashlib.sha256(b"secret").hexdigest()[:24]
    assert token_uid("secret") == expected
    identity = LocalIdentityProvider("secret").establish_session()
    assert identity.uid == expected
    assert not identity.anonymous


def test_blank_token_is_rejected() -> None:
    with pytest.raises(IdentityError):
        LocalIdentityProvider("   ").establish_session()


def test_unsubscribed_listener_is_not_called() -> None:
    provider = LocalIdentityProvider()
    seen = []
    unsubscribe = provider.on_session_change(seen.append)
    unsubscribe()
    provider.establish_session()
    assert seen == [None]


def test_session_starts_and_attaches(settings, store) -> None:
    session = TrackerSession(settings=settings, store=store)
    assert session.start()
    assert session.ready
    assert session.user is not None
    assert session.income.attached and session.partners.attached and session.budgets.attached
    assert store.subscription_count == 3
    assert session.fiscal_months()[0] == "2025-10"


def test_sign_out_reestablishes_session(settings, store) -> None:
    session = TrackerSession(settings=settings, store=store)
    session.start()
    first = session.user
    session.identity.sign_out()
    assert session.ready
    assert session.user != first
    assert store.subscription_count == 3


def test_close_detaches_everything(settings, store) -> None:
    session = TrackerSession(settings=settings, store=store)
    session.start()
    session.close()
    assert store.subscription_count == 0


def test_failed_initialization_stays_not_ready(settings) -> None:
    def broken_factory(*args, **kwargs):
        raise StoreError("unreachable")

    session = TrackerSession(settings=settings, store_factory=broken_factory)
    assert session.start() is False
    assert not session.ready
    assert session.version == 0
    assert session.start() is False


def test_bad_environment_stays_not_ready(monkeypatch) -> None:
    monkeypatch.setenv("AVE_FISCAL_START", "yesterday")
    session = TrackerSession()
    assert session.start() is False
    assert not session.ready


def test_changes_from_other_sessions_raise_banner(settings, store) -> None:
    viewer = TrackerSession(settings=settings, store=store)
    editor = TrackerSession(settings=settings, store=store)
    viewer.start()
    editor.start()
    assert viewer.notification.message is None

    editor.income.create({"incomeType": "Consultancy", "partnerId": "p1", "value": 5000,
                          "agreementStartDate": "2025-10-01"})
    assert viewer.notification.message == "New Entry: Consultancy - $5000"
    assert len(viewer.income) == 1


def test_validate_income_shows_confirmation(settings, store) -> None:
    session = TrackerSession(settings=settings, store=store)
    session.start()
    record_id = session.income.create({"incomeType": "Consultancy", "value": 100,
                                       "agreementStartDate": "2025-10-01"})
    assert session.validate_income(record_id)
    assert session.notification.message == f"Entry {record_id[:5]}... validated!"


def test_summary_counts_only_posted(settings, store) -> None:
    session = TrackerSession(settings=settings, store=store)
    session.start()
    posted = session.income.create({"incomeType": "Consultancy", "value": 1200,
                                    "agreementStartDate": "2025-11-03"})
    session.income.create({"incomeType": "Consultancy", "value": 800, "agreementStartDate": "2025-11-04"})
    session.validate_income(posted)
    session.budgets.upsert("2025-11", "Consultancy", 2000)

    result = session.summary()
    assert result.total_income == 1200.0
    assert result.total_budget == 2000.0
    assert result.variance == -800.0


def test_refresh_reads_other_process_writes(settings) -> None:
    session = TrackerSession(settings=settings)
    session.start()
    version = session.version
    other = SQLiteDocumentStore(settings.store_path, settings.namespace)
    other.upsert("partners", None, {"type": "customer", "name": "Acme"})
    assert session.refresh() == 1
    assert session.version == version + 1


def test_dropped_sessions_release_their_subscriptions(settings, store) -> None:
    for _ in range(20):
        TrackerSession(settings=settings, store=store).start()
    gc.collect()
    assert store.subscription_count == 0

    kept = TrackerSession(settings=settings, store=store)
    kept.start()
    store.upsert("partners", None, {"type": "customer", "name": "Acme"})
    assert store.subscription_count == 3
    assert len(kept.partners) == 1
