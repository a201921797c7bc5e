"""Abstract contract for the relational side of a sync run."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Any

from ..data_contract import ColumnDescriptor


class BaseSource(ABC):
    @abstractmethod
    def connect(self) -> None:
        """Open and validate access to the source database."""
        pass

    @abstractmethod
    def count_rows(
        self,
        table: str,
        column: str | None = None,
        value: Any = None,
        *,
        inclusive: bool = True,
    ) -> int:
        """Count rows, optionally only those with ``column`` >= (or >) ``value``."""
        pass

    @abstractmethod
    def max_value(self, table: str, column: str) -> Any:
        """Return MAX(column), or None for an empty table."""
        pass

    @abstractmethod
    def list_columns(self, table: str) -> list[ColumnDescriptor]:
        """Describe the table columns in declaration order."""
        pass

    @abstractmethod
    def query_rows(
        self,
        table: str,
        *,
        order_by: str | None = None,
        greater_than: Any = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Stream rows as dictionaries keyed by column name."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release source resources."""
        pass
