"""Change notifications for the income ledger.

:class:`ChangeNotifier` turns income snapshots into at most one banner
message each, ignoring the first snapshot after (re)subscribing so records
loaded at start-up are not announced as new.  :class:`Notification` holds
the single message currently on screen and clears it after a fixed delay.
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Mapping, Optional

from .config import NOTIFICATION_SECONDS
from .store import ADDED, MODIFIED, REMOVED, Snapshot


def _display_value(value: Any) -> Any:
    # Whole amounts entered as floats read "700", not "700.0"
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def format_change(change_type: str, data: Mapping[str, Any]) -> Optional[str]:
    """Banner text for a change, or ``None`` for removals."""
    value = _display_value(data.get('value'))
    if change_type == ADDED:
        return f"New Entry: {data.get('incomeType')} - ${value}"
    if change_type == MODIFIED:
        return f"Updated: {data.get('incomeType')} - ${value}"
    return None


def validated_message(record_id: str) -> str:
    return f"Entry {record_id[:5]}... validated!"


class ChangeNotifier:
    """Reduce income snapshots to the message for their last qualifying change."""

    def __init__(self) -> None:
        self._primed = False
        self._emitted: Dict[str, str] = {}

    def reset(self) -> None:
        """Forget everything; call when the subscription is re-established."""
        self._primed = False
        self._emitted.clear()

    def process(self, snapshot: Snapshot) -> Optional[str]:
        if not self._primed:
            self._primed = True
            for change in snapshot.changes:
                if change.type != REMOVED:
                    self._emitted[change.doc_id] = _fingerprint(change.type, change.data)
            return None

        message: Optional[str] = None
        for change in snapshot.changes:
            if change.type == REMOVED:
                self._emitted.pop(change.doc_id, None)
                continue
            fingerprint = _fingerprint(change.type, change.data)
            if self._emitted.get(change.doc_id) == fingerprint:
                continue
            self._emitted[change.doc_id] = fingerprint
            message = format_change(change.type, change.data) or message
        return message


def _fingerprint(change_type: str, data: Mapping[str, Any]) -> str:
    return change_type + ':' + json.dumps(data, sort_keys=True, default=str)


class Notification:
    """Single-slot banner: empty, or showing one message until it expires."""

    def __init__(self, ttl: float = NOTIFICATION_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self.clock = clock
        self._message: Optional[str] = None
        self._expires_at = 0.0

    def show(self, message: str) -> None:
        """Replace whatever is showing and restart the timer."""
        self._message = message
        self._expires_at = self.clock() + self.ttl

    def dismiss(self) -> None:
        self._message = None

    @property
    def message(self) -> Optional[str]:
        """Current message, clearing it first if its time is up."""
        if self._message is not None and self.clock() >= self._expires_at:
            self._message = None
        return self._message

    @property
    def is_showing(self) -> bool:
        return self.message is not None
