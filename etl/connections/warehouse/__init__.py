from .base import BaseWarehouse
from .bigquery import (
    BigQueryWarehouse,
    get_bigquery_client,
    get_bigquery_warehouse,
    resolve_bigquery_config,
    test_bigquery_connection,
)
from .config import BigQueryConfig

__all__ = [
    "BaseWarehouse",
    "BigQueryConfig",
    "BigQueryWarehouse",
    "get_bigquery_client",
    "get_bigquery_warehouse",
    "resolve_bigquery_config",
    "test_bigquery_connection",
]
