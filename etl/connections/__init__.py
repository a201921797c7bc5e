"""Public entrypoints for connection builders, health checks, and cache cleanup."""

from typing import Any

from ._client_cache import close_all_clients
from .source import SQLSourceConnector, get_mysql_engine, test_mysql_connection
from .warehouse import (
    BigQueryWarehouse,
    get_bigquery_client,
    get_bigquery_warehouse,
    test_bigquery_connection,
)

_MYSQL_ALIASES = {"mysql", "source", "db"}
_BIGQUERY_ALIASES = {"bigquery", "bq", "warehouse", "destination"}


def get_connection(target: str, **kwargs) -> Any:
    """Return an engine or client for the requested connection alias."""
    target_key = target.strip().lower()

    if target_key in _MYSQL_ALIASES:
        return get_mysql_engine(**kwargs)

    if target_key in _BIGQUERY_ALIASES:
        return get_bigquery_client(**kwargs)

    raise ValueError(f"Unsupported target '{target}'. Use one of: mysql, bigquery")


def test_connection(target: str, **kwargs) -> bool:
    """Run a lightweight health check for the requested connection alias."""
    target_key = target.strip().lower()

    if target_key in _MYSQL_ALIASES:
        return test_mysql_connection(**kwargs)

    if target_key in _BIGQUERY_ALIASES:
        return test_bigquery_connection(**kwargs)

    raise ValueError(f"Unsupported target '{target}'. Use one of: mysql, bigquery")


def close_all_connections() -> None:
    """Dispose cached engines and close cached warehouse clients."""
    close_all_clients()


__all__ = [
    "get_connection",
    "test_connection",
    "close_all_connections",
    "SQLSourceConnector",
    "BigQueryWarehouse",
    "get_mysql_engine",
    "test_mysql_connection",
    "get_bigquery_client",
    "get_bigquery_warehouse",
    "test_bigquery_connection",
]
