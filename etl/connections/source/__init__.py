from .base import BaseSource
from .config import MySQLConfig
from .connector import SQLSourceConnector, normalize_source_type
from .mysql import get_mysql_engine, test_mysql_connection

__all__ = [
    "BaseSource",
    "MySQLConfig",
    "SQLSourceConnector",
    "normalize_source_type",
    "get_mysql_engine",
    "test_mysql_connection",
]
