"""Tests for change notifications and the banner slot."""

from __future__ import annotations

from commercial_tracker.notifier import ChangeNotifier, Notification, format_change, validated_message
from commercial_tracker.store import ADDED, MODIFIED, REMOVED, DocumentChange, Snapshot


def _snapshot(*changes, initial=False):
    return Snapshot("income", [], [DocumentChange(*change) for change in changes], initial)


def test_message_templates() -> None:
    data = {"incomeType": "Consultancy", "value": 5000}
    assert format_change(ADDED, data) == "New Entry: Consultancy - $5000"
    assert format_change(MODIFIED, data) == "Updated: Consultancy - $5000"
    assert format_change(REMOVED, data) is None
    assert validated_message("abcdef123") == "Entry abcde... validated!"


def test_first_snapshot_is_silent() -> None:
    notifier = ChangeNotifier()
    initial = _snapshot((ADDED, "a", {"incomeType": "Consultancy", "value": 1}), initial=True)
    assert notifier.process(initial) is None


def test_empty_first_snapshot_still_primes() -> None:
    notifier = ChangeNotifier()
    assert notifier.process(_snapshot(initial=True)) is None
    message = notifier.process(_snapshot((ADDED, "a", {"incomeType": "Consultancy", "value": 5000})))
    assert message == "New Entry: Consultancy - $5000"


def test_last_qualifying_change_wins() -> None:
    notifier = ChangeNotifier()
    notifier.process(_snapshot(initial=True))
    message = notifier.process(
        _snapshot(
            (ADDED, "a", {"incomeType": "Consultancy", "value": 1}),
            (MODIFIED, "b", {"incomeType": "Procurement Income", "value": 2}),
            (REMOVED, "c", {"incomeType": "Consultancy", "value": 3}),
        )
    )
    assert message == "Updated: Procurement Income - $2"


def test_removal_only_snapshot_is_silent() -> None:
    notifier = ChangeNotifier()
    notifier.process(_snapshot(initial=True))
    assert notifier.process(_snapshot((REMOVED, "a", {"incomeType": "Consultancy", "value": 1}))) is None


def test_same_change_is_not_announced_twice() -> None:
    notifier = ChangeNotifier()
    notifier.process(_snapshot(initial=True))
    change = (MODIFIED, "a", {"incomeType": "Consultancy", "value": 1})
    assert notifier.process(_snapshot(change)) is not None
    assert notifier.process(_snapshot(change)) is None


def test_reset_reprimes() -> None:
    notifier = ChangeNotifier()
    notifier.process(_snapshot(initial=True))
    notifier.reset()
    assert notifier.process(_snapshot((ADDED, "a", {"incomeType": "Consultancy", "value": 1}))) is None


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_notification_expires_after_ttl() -> None:
    clock = FakeClock()
    banner = Notification(ttl=5.0, clock=clock)
    assert banner.message is None
    banner.show("New Entry: Consultancy - $1")
    clock.now += 4.9
    assert banner.is_showing
    clock.now += 0.2
    assert banner.message is None


def test_new_message_replaces_and_restarts_timer() -> None:
    clock = FakeClock()
    banner = Notification(ttl=5.0, clock=clock)
    banner.show("first")
    clock.now += 4.0
    banner.show("second")
    clock.now += 4.0
    assert banner.message == "second"
    banner.dismiss()
    assert not banner.is_showing


def test_whole_float_amounts_read_without_decimals() -> None:
    assert format_change(ADDED, {"incomeType": "Consultancy", "value": 700.0}) == "New Entry: Consultancy - $700"
    assert format_change(MODIFIED, {"incomeType": "Consultancy", "value": 700.5}) == "Updated: Consultancy - $700.5"
    assert format_change(ADDED, {"incomeType": "Consultancy", "value": "700"}) == "New Entry: Consultancy - $700"
