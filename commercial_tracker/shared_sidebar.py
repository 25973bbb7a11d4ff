"""Shared page furniture for the multi-page tracker.

Every page calls :func:`require_session` first, then renders its content,
and finishes with :func:`live_updates`, which polls the store, expires the
notification banner and reruns the page when new data has arrived.
"""

from __future__ import annotations

import logging
from pathlib import Path

import streamlit as st

from .config import configure_logging
from .formatting import escape_dollar_for_markdown
from .pages.config import get_config_value
from .session import TrackerSession
from .store import SQLiteDocumentStore

logger = logging.getLogger(__name__)

SESSION_KEY = 'tracker_session'
RENDERED_VERSION_KEY = 'tracker_rendered_version'
LIVE_UPDATE_INTERVAL = 1.0


@st.cache_resource(show_spinner=False)
def _shared_store(path: Path, namespace: str, timeout: float = 5.0) -> SQLiteDocumentStore:
    """One store per process so writes fan out to every open browser session."""
    return SQLiteDocumentStore(path, namespace, timeout=timeout)


def get_tracker_session() -> TrackerSession:
    """The :class:`TrackerSession` bound to this browser session."""
    session = st.session_state.get(SESSION_KEY)
    if session is None:
        configure_logging()
        session = TrackerSession(store_factory=_shared_store)
        st.session_state[SESSION_KEY] = session
    session.start()
    return session


def require_session() -> TrackerSession:
    """Return a ready session or show the loading screen and stop the page."""
    session = get_tracker_session()
    if not session.ready:
        st.info(get_config_value('tracker', 'labels', 'loading', default="Loading..."))
        st.stop()
    st.session_state[RENDERED_VERSION_KEY] = session.version
    return session


def render_shared_sidebar(session: TrackerSession) -> None:
    """Brand, user id and a manual refresh in the sidebar."""
    st.sidebar.title(get_config_value('tracker', 'labels', 'app_title', default="Tracker"))
    if session.user is not None:
        st.sidebar.caption(f"User ID: {session.user.uid}")
    if st.sidebar.button("🔄 Refresh data", help="Pull changes made by other sessions"):
        session.refresh()
        st.rerun()
    for collection in (session.partners, session.income, session.budgets):
        if collection.last_error is not None:
            st.sidebar.caption(f"⚠️ {collection.collection} stopped updating")


@st.fragment(run_every=LIVE_UPDATE_INTERVAL)
def live_updates(session: TrackerSession) -> None:
    """Notification banner plus polling for changes from other sessions."""
    session.refresh()
    message = session.notification.message
    if message:
        col1, col2 = st.columns([12, 1])
        with col1:
            st.success(f"🔔 {escape_dollar_for_markdown(message)}")
        with col2:
            st.button("✖", key="dismiss_notification", help="Dismiss", on_click=session.notification.dismiss)
    if session.version != st.session_state.get(RENDERED_VERSION_KEY):
        st.rerun()
