"""Configuration constants and environment lookups."""

import os
from pathlib import Path

from .errors import HomeDirUnresolvable

APP_NAME = "secretly"
DEFAULT_DB_NAME = f".{APP_NAME}.db"

# Environment variables
PASSWORD_ENV_VAR = "SECRETLY_VAULT_PASSWORD"
LOG_ENV_VAR = "SECRETLY_LOG"
DEFAULT_LOG_LEVEL = "WARNING"


def default_vault_path() -> Path:
    """Return ~/.secretly.db, resolved at call time."""
    try:
        home = Path.home()
    except RuntimeError as e:
        raise HomeDirUnresolvable(f"Could not resolve home directory: {e}") from e
    return home / DEFAULT_DB_NAME


def get_log_level() -> str:
    """Get log level from SECRETLY_LOG, falling back to WARNING."""
    return os.environ.get(LOG_ENV_VAR, "").strip().upper() or DEFAULT_LOG_LEVEL
