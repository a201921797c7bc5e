from collections.abc import Iterator
from typing import Any

from sqlalchemy import Column, MetaData, Table, asc, func, select
from sqlalchemy import types as sqltypes
from sqlalchemy.dialects import mysql
from sqlalchemy.engine import Engine

from .._logging import get_logger
from ..data_contract import ColumnDescriptor, SourceType
from .base import BaseSource

LOGGER = get_logger("source.connector")


def normalize_source_type(column_type: sqltypes.TypeEngine) -> SourceType:
    """Collapse a reflected SQLAlchemy column type into a SourceType."""
    if isinstance(column_type, sqltypes.JSON):
        return SourceType.JSON

    if isinstance(column_type, sqltypes.Boolean):
        return SourceType.BOOLEAN

    # MySQL has no real boolean: BOOL columns are declared as TINYINT(1)
    if isinstance(column_type, mysql.TINYINT) and getattr(column_type, "display_width", None) == 1:
        return SourceType.BOOLEAN

    if isinstance(column_type, mysql.YEAR):
        return SourceType.INTEGER

    if isinstance(column_type, sqltypes.BigInteger):
        return SourceType.BIGINT

    if isinstance(column_type, sqltypes.SmallInteger):
        return SourceType.SMALLINT

    if isinstance(column_type, sqltypes.Integer):
        return SourceType.INTEGER

    if isinstance(column_type, sqltypes.Float):
        return SourceType.FLOAT

    if isinstance(column_type, sqltypes.Numeric):
        return SourceType.DECIMAL

    if isinstance(column_type, sqltypes.TIMESTAMP):
        return SourceType.TIMESTAMP

    if isinstance(column_type, sqltypes.DateTime):
        return SourceType.DATETIME

    if isinstance(column_type, sqltypes.Date):
        return SourceType.DATE

    if isinstance(column_type, sqltypes.Time):
        return SourceType.TIME

    if isinstance(column_type, (sqltypes.Enum, mysql.SET)):
        return SourceType.ENUM

    if isinstance(column_type, sqltypes.Text):
        return SourceType.TEXT

    if isinstance(column_type, sqltypes.String):
        return SourceType.STRING

    return SourceType.OTHER


class SQLSourceConnector(BaseSource):
    """Read side of a sync run backed by any SQLAlchemy engine (MySQL in production)."""

    def __init__(self, engine: Engine, schema: str | None = None):
        self.engine = engine
        self.schema = schema
        self._tables: dict[str, Table] = {}

    def connect(self) -> None:
        with self.engine.connect():
            LOGGER.info("Connected to source dialect=%s schema=%s", self.engine.dialect.name, self.schema)

    def close(self) -> None:
        self._tables.clear()

    def _table(self, table_name: str) -> Table:
        table = self._tables.get(table_name)
        if table is None:
            table = Table(table_name, MetaData(), schema=self.schema, autoload_with=self.engine)
            self._tables[table_name] = table
        return table

    def _column(self, table: Table, column_name: str) -> Column:
        for column in table.columns:
            if column.name.lower() == column_name.lower():
                return column
        raise ValueError(f"column '{column_name}' not found in table '{table.name}'")

    def count_rows(
        self,
        table: str,
        column: str | None = None,
        value: Any = None,
        *,
        inclusive: bool = True,
    ) -> int:
        source_table = self._table(table)
        statement = select(func.count()).select_from(source_table)

        if column and value is not None:
            field = self._column(source_table, column)
            statement = statement.where(field >= value if inclusive else field > value)

        with self.engine.connect() as connection:
            count = int(connection.execute(statement).scalar_one())

        LOGGER.info("Source count table=%s column=%s value=%s rows=%s", table, column, value, count)
        return count

    def max_value(self, table: str, column: str) -> Any:
        source_table = self._table(table)
        statement = select(func.max(self._column(source_table, column)))

        with self.engine.connect() as connection:
            return connection.execute(statement).scalar()

    def list_columns(self, table: str) -> list[ColumnDescriptor]:
        return [
            ColumnDescriptor(name=column.name, source_type=normalize_source_type(column.type))
            for column in self._table(table).columns
        ]

    def query_rows(
        self,
        table: str,
        *,
        order_by: str | None = None,
        greater_than: Any = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        source_table = self._table(table)
        statement = select(source_table)

        if order_by:
            field = self._column(source_table, order_by)
            if greater_than is not None:
                statement = statement.where(field > greater_than)
            # Primary key breaks ties so LIMIT/OFFSET windows never overlap or skip rows
            tie_breakers = [asc(column) for column in source_table.primary_key.columns if column is not field]
            statement = statement.order_by(asc(field), *tie_breakers)
        elif greater_than is not None:
            raise ValueError("greater_than requires an order_by column")

        if limit is not None:
            statement = statement.limit(limit)
        if offset:
            statement = statement.offset(offset)

        LOGGER.debug(
            "Reading source table=%s order_by=%s greater_than=%s offset=%s limit=%s",
            table,
            order_by,
            greater_than,
            offset,
            limit,
        )

        with self.engine.connect() as connection:
            if self.engine.dialect.supports_server_side_cursors:
                connection = connection.execution_options(stream_results=True)
            for row in connection.execute(statement):
                yield dict(row._mapping)
