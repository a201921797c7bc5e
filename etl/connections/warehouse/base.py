"""Abstract contract for the warehouse side of a sync run."""

from abc import ABC, abstractmethod
from typing import Any, BinaryIO

from ..data_contract import DestColumnSpec, JobStatus


class BaseWarehouse(ABC):
    @abstractmethod
    def table_exists(self, table: str) -> bool:
        pass

    @abstractmethod
    def create_table(self, table: str, columns: list[DestColumnSpec]) -> None:
        """Create the table; raises SchemaCreationError when the backend refuses."""
        pass

    @abstractmethod
    def delete_table(self, table: str) -> None:
        pass

    @abstractmethod
    def count_rows(self, table: str) -> int:
        """Row count from table metadata; raises TableNotFound for a missing table."""
        pass

    @abstractmethod
    def max_value(self, table: str, column: str) -> Any:
        pass

    @abstractmethod
    def delete_where(self, table: str, column: str, value: Any) -> None:
        """Delete every row where ``column`` equals ``value``."""
        pass

    @abstractmethod
    def submit_load(self, table: str, payload: BinaryIO) -> str:
        """Start an append load of a newline-delimited JSON payload and return the job id."""
        pass

    @abstractmethod
    def poll_job(self, job_id: str) -> JobStatus:
        pass
