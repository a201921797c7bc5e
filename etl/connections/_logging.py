import logging
import os
from threading import Lock
from typing import Any

ROOT_LOGGER_NAME = "bqsync"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_SETUP_LOCK = Lock()
_SETUP_DONE = False
_SENSITIVE_KEYS = {
    "password",
    "secret",
    "token",
    "private_key",
    "private_key_id",
    "credentials",
}


def _level_from_name(level_name: str | None) -> int:
    return getattr(logging, (level_name or "INFO").upper(), logging.INFO)


def _setup_default_logging() -> None:
    global _SETUP_DONE
    if _SETUP_DONE:
        return

    with _SETUP_LOCK:
        if _SETUP_DONE:
            return

        if not logging.getLogger().handlers:
            logging.basicConfig(level=_level_from_name(os.getenv("BQSYNC_LOG_LEVEL")), format=LOG_FORMAT)

        _SETUP_DONE = True


def get_logger(name: str) -> logging.Logger:
    _setup_default_logging()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level_name: str) -> None:
    """Change the level of every bqsync logger, e.g. from a --log-level flag."""
    _setup_default_logging()
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(_level_from_name(level_name))


def redact_config(values: dict[str, Any]) -> dict[str, Any]:
    """Mask secrets before a settings dict is logged; nested sections are masked too."""
    redacted: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, dict):
            redacted[key] = redact_config(value)
        elif key.lower() in _SENSITIVE_KEYS and value is not None:
            redacted[key] = "***"
        else:
            redacted[key] = value
    return redacted
