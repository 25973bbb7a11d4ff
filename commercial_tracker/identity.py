"""Session identity for the tracker.

The identity is only displayed in the header; it never gates access to
data.  A session is established anonymously unless a pre-issued token is
configured, in which case the user id is derived from the token so the
same token always maps to the same user.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional['Identity']], None]


class IdentityError(RuntimeError):
    """Raised when a session cannot be established."""


@dataclass(frozen=True)
class Identity:
    uid: str
    anonymous: bool = True


class LocalIdentityProvider:
    """Anonymous or token-based session provider."""

    def __init__(self, auth_token: Optional[str] = None) -> None:
        self.auth_token = auth_token
        self._current: Optional[Identity] = None
        self._listeners: List[SessionListener] = []
        self._lock = threading.RLock()

    @property
    def current_user(self) -> Optional[Identity]:
        return self._current

    def establish_session(self) -> Identity:
        """Sign in with the configured token, or anonymously without one.

        Raises:
            IdentityError: If the configured token is blank.
        """
        with self._lock:
            if self.auth_token is not None:
                identity = Identity(uid=token_uid(self.auth_token), anonymous=False)
            else:
                identity = Identity(uid=uuid.uuid4().hex[:28], anonymous=True)
            self._set(identity)
        logger.info("Session established for %s (anonymous=%s)", identity.uid, identity.anonymous)
        return identity

    def sign_out(self) -> None:
        """Drop the current session and notify listeners with ``None``."""
        with self._lock:
            if self._current is None:
                return
            logger.info("Session for %s ended", self._current.uid)
            self._set(None)

    def on_session_change(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener``; it is called at once with the current identity.

        Returns:
            Callable that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)
            current = self._current
        listener(current)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _set(self, identity: Optional[Identity]) -> None:
        self._current = identity
        for listener in list(self._listeners):
            listener(identity)


def token_uid(token: str) -> str:
    """Stable user id for a pre-issued session token."""
    if not token or not token.strip():
        raise IdentityError("Session token is empty")
    digest = hashlib.sha256(token.strip().encode('utf-8')).hexdigest()
    return f"tok-{digest[:24]}"
