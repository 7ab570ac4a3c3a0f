import logging
import os

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _canon_log_level(val):
    """
    Normalize the configured log level name:
      - defaults to 'INFO' when unset/empty
      - case-insensitive
      - unknown names fall back to 'INFO'
    """
    level = (val or "INFO").strip().upper()
    if level not in _LOG_LEVELS:
        logger.warning("DARTMATCH_LOG_LEVEL %r is not a log level; defaulting to INFO", val)
        return "INFO"
    return level


def _optional_path(val):
    val = (val or "").strip()
    return val or None


LOG_LEVEL = _canon_log_level(os.getenv("DARTMATCH_LOG_LEVEL"))

# Unset keeps match snapshots in memory only.
DATA_DIR = _optional_path(os.getenv("DARTMATCH_DATA_DIR"))

STATE_KEY = os.getenv("DARTMATCH_STATE_KEY") or "dartGameState"
SETTINGS_KEY = os.getenv("DARTMATCH_SETTINGS_KEY") or "dartGameSettings"
