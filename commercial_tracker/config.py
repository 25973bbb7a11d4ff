"""Configuration management for the commercial tracker.

This module centralizes all configuration values including paths,
the store namespace, the fiscal window and environment variable overrides.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

# Base project root - assumes this file is in commercial_tracker/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directory
DATA_DIR = Path(os.getenv("AVE_DATA_DIR", _PROJECT_ROOT / "data"))

DEFAULT_APP_ID = "default-ave-tracker"
DEFAULT_FISCAL_START = "2025-10-01"
DEFAULT_FISCAL_END = "2026-09-30"
DEFAULT_STORE_TIMEOUT = 5.0

# Seconds a notification banner stays up before clearing itself
NOTIFICATION_SECONDS = 5.0

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ConfigError(ValueError):
    """Raised when an environment setting cannot be interpreted."""


@dataclass(frozen=True)
class Settings:
    store_path: Path
    app_id: str
    auth_token: Optional[str]
    fiscal_start: date
    fiscal_end: date
    store_timeout: float = DEFAULT_STORE_TIMEOUT
    log_level: str = "INFO"
    store_options: Dict[str, Any] = field(default_factory=dict)

    @property
    def namespace(self) -> str:
        """Logical path every collection lives under."""
        return f"artifacts/{self.app_id}/public/data"


def _parse_window_date(name: str, value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an ISO date (YYYY-MM-DD), got {value!r}") from exc


def _parse_store_config(raw: Optional[str]) -> Dict[str, Any]:
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"AVE_STORE_CONFIG is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ConfigError("AVE_STORE_CONFIG must be a JSON object")
    return parsed


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from environment variables.

    Args:
        env: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        Immutable settings for one tracker process.

    Raises:
        ConfigError: If the store config, fiscal window or timeout is malformed.
    """
    env = os.environ if env is None else env
    store_options = _parse_store_config(env.get("AVE_STORE_CONFIG"))

    data_dir = Path(env.get("AVE_DATA_DIR", DATA_DIR))
    store_path = env.get("AVE_STORE_PATH") or store_options.get("path") or data_dir / "tracker.db"

    try:
        timeout = float(store_options.get("timeout", DEFAULT_STORE_TIMEOUT))
    except (TypeError, ValueError) as exc:
        raise ConfigError("AVE_STORE_CONFIG timeout must be a number") from exc

    fiscal_start = _parse_window_date("AVE_FISCAL_START", env.get("AVE_FISCAL_START", DEFAULT_FISCAL_START))
    fiscal_end = _parse_window_date("AVE_FISCAL_END", env.get("AVE_FISCAL_END", DEFAULT_FISCAL_END))
    if fiscal_start > fiscal_end:
        raise ConfigError(f"Fiscal window starts after it ends: {fiscal_start} > {fiscal_end}")

    token = env.get("AVE_AUTH_TOKEN")
    app_id = (env.get("AVE_APP_ID") or DEFAULT_APP_ID).strip() or DEFAULT_APP_ID

    return Settings(
        store_path=Path(store_path),
        app_id=app_id,
        auth_token=token if token else None,
        fiscal_start=fiscal_start,
        fiscal_end=fiscal_end,
        store_timeout=timeout,
        log_level=env.get("AVE_LOG_LEVEL", "INFO").upper(),
        store_options=store_options,
    )


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the app and scripts."""
    level_name = (level or os.getenv("AVE_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)


def ensure_data_directories(settings: Optional[Settings] = None) -> None:
    """Create the directory holding the store file if it doesn't exist."""
    target = settings.store_path.parent if settings else DATA_DIR
    target.mkdir(parents=True, exist_ok=True)
