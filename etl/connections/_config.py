"""Layered settings resolution shared by the MySQL, BigQuery and sync configuration."""

import json
import os
from pathlib import Path
from typing import Any

from ._logging import get_logger, redact_config

LOGGER = get_logger("config")


def _read_prefixed_env(prefix: str) -> dict[str, Any]:
    """Collect <PREFIX>_* environment variables as lowercased keys without the prefix."""
    prefix_token = f"{prefix.upper()}_"
    values: dict[str, Any] = {}

    for key, value in os.environ.items():
        if key.startswith(prefix_token):
            values[key.removeprefix(prefix_token).lower()] = value

    LOGGER.debug("Read %s settings from environment prefix %s", len(values), prefix_token)
    return values


def _read_json_file(file_path: str | None) -> dict[str, Any]:
    """Read a JSON settings file, or nothing when no path is given."""
    if not file_path:
        return {}

    path = Path(file_path)
    if not path.exists():
        LOGGER.error("Settings file not found: %s", file_path)
        raise FileNotFoundError(f"Settings file not found: {file_path}")

    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Settings file must contain a JSON object at the root")

    LOGGER.info("Loaded JSON settings from %s", file_path)
    return data


def _section(values: dict[str, Any], name: str | None) -> dict[str, Any]:
    """Pick a named sub-object from a shared settings file, or the whole file."""
    if not name or name not in values:
        return values
    section = values[name]
    if not isinstance(section, dict):
        raise ValueError(f"Settings section '{name}' must be a JSON object")
    return section


def _not_none_values(values: dict[str, Any] | None) -> dict[str, Any]:
    if not values:
        return {}
    return {key: value for key, value in values.items() if value is not None}


def _ensure_required_keys(config: dict[str, Any], required: tuple[str, ...]) -> None:
    missing = [key for key in required if config.get(key) in (None, "")]
    if missing:
        joined = ", ".join(missing)
        LOGGER.error("Required settings missing: %s", joined)
        raise ValueError(f"Missing required settings: {joined}")


def load_connection_config(
    config: dict[str, Any] | None = None,
    *,
    file_path: str | None = None,
    section: str | None = None,
    env_prefix: str | None = None,
    required: tuple[str, ...] = (),
    defaults: dict[str, Any] | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Resolve settings from defaults, JSON file, environment, explicit config and overrides.

    Later layers win. ``section`` selects a sub-object of the JSON file so one
    file can hold ``mysql``, ``bigquery`` and ``sync`` blocks side by side.
    """
    layers = [
        defaults or {},
        _section(_read_json_file(file_path), section),
        _read_prefixed_env(env_prefix) if env_prefix else {},
        config or {},
        _not_none_values(overrides),
    ]
    merged: dict[str, Any] = {}
    for layer in layers:
        merged.update(layer)

    _ensure_required_keys(merged, required)
    LOGGER.info("Settings resolved for prefix=%s: %s", env_prefix, redact_config(merged))
    return merged


def split_list(value: str | list[str] | tuple[str, ...] | None) -> list[str]:
    """Turn a comma separated string (or a list) into a clean list of names."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    return [item.strip() for item in items if item and item.strip()]
