from collections.abc import Iterable, Iterator
from typing import Any

from connections.data_contract import BatchRecord, ColumnDescriptor
from connections.exceptions import SchemaMismatch

from .type_mapper import coerce_value


def build_column_index(columns: Iterable[ColumnDescriptor]) -> dict[str, ColumnDescriptor]:
    """Key descriptors by lowercased name; BigQuery compares column names case-insensitively."""
    return {column.key: column for column in columns}


def normalize_ignore_columns(ignore_columns: Iterable[str] | None) -> frozenset[str]:
    return frozenset(name.strip().lower() for name in ignore_columns or () if name.strip())


def transform_row(
    row: dict[str, Any],
    column_index: dict[str, ColumnDescriptor],
    ignore_columns: frozenset[str] = frozenset(),
    *,
    table: str | None = None,
) -> BatchRecord:
    record: BatchRecord = {}
    for name, value in row.items():
        key = name.lower()
        if key in ignore_columns:
            continue

        column = column_index.get(key)
        if column is None:
            raise SchemaMismatch(name, table)

        record[key] = coerce_value(column.source_type, value)
    return record


def transform_rows(
    rows: Iterable[dict[str, Any]],
    column_index: dict[str, ColumnDescriptor],
    ignore_columns: frozenset[str] = frozenset(),
    *,
    table: str | None = None,
) -> Iterator[BatchRecord]:
    for row in rows:
        yield transform_row(row, column_index, ignore_columns, table=table)
