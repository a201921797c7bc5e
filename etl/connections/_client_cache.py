"""Thread-safe cache for SQLAlchemy engines and BigQuery clients keyed by connection config."""

from threading import Lock
from typing import Any, Callable, TypeVar

from ._logging import get_logger

ClientT = TypeVar("ClientT")

_CACHE_LOCK = Lock()
_CLIENT_CACHE: dict[tuple[str, tuple[tuple[str, str], ...]], Any] = {}
LOGGER = get_logger("client_cache")


def _cache_key(connection_type: str, config: dict[str, Any]) -> tuple[str, tuple[tuple[str, str], ...]]:
    """Build a stable cache key from connection type and normalized config values."""
    normalized_items = tuple(sorted((str(key), str(value)) for key, value in config.items()))
    return connection_type, normalized_items


def get_or_create_client(
    connection_type: str,
    config: dict[str, Any],
    factory: Callable[[], ClientT],
    *,
    reuse: bool,
) -> ClientT:
    """Return a cached client or create/store a new one when reuse is enabled."""
    if not reuse:
        LOGGER.info("Client reuse disabled for %s, creating new client", connection_type)
        return factory()

    key = _cache_key(connection_type, config)

    with _CACHE_LOCK:
        cached = _CLIENT_CACHE.get(key)
        if cached is not None:
            LOGGER.info("Client cache hit for %s", connection_type)
            return cached

        client = factory()
        _CLIENT_CACHE[key] = client
        LOGGER.info("Client cache miss for %s, new client created", connection_type)
        return client


def _release(client: Any) -> None:
    # SQLAlchemy engines are disposed, API clients are closed.
    if hasattr(client, "dispose"):
        client.dispose()
    else:
        client.close()


def close_all_clients() -> None:
    """Release and clear every cached engine and client."""
    with _CACHE_LOCK:
        clients = list(_CLIENT_CACHE.values())
        _CLIENT_CACHE.clear()

    for client in clients:
        _release(client)

    LOGGER.info("Released %s cached clients", len(clients))
