"""Errors raised while synchronizing a source table into the warehouse."""


class SyncError(Exception):
    """Base class for every synchronization failure."""


class TableNotFound(SyncError):
    """Destination table is missing and creating it was not requested."""

    def __init__(self, table: str):
        super().__init__(f"BigQuery table {table} not found")
        self.table = table


class SchemaMismatch(SyncError):
    """A row carries a column the cached source schema does not know about."""

    def __init__(self, column: str, table: str | None = None):
        where = f" of table {table}" if table else ""
        super().__init__(f"Column '{column}'{where} is not part of the introspected schema")
        self.column = column
        self.table = table


class SchemaCreationError(SyncError):
    """The warehouse rejected the table definition."""


class LoadJobError(SyncError):
    """A bulk load job finished with server reported errors."""

    def __init__(self, job_id: str, errors: list[str]):
        details = "\n".join(errors) if errors else "no details reported"
        super().__init__(f"BigQuery load job {job_id} replied with errors:\n{details}")
        self.job_id = job_id
        self.errors = list(errors)


class LoadJobTimeout(SyncError):
    """A load job did not reach a terminal state within the allowed time."""

    def __init__(self, job_id: str, waited_seconds: float):
        super().__init__(f"BigQuery load job {job_id} still running after {waited_seconds:.0f}s")
        self.job_id = job_id
        self.waited_seconds = waited_seconds


class SyncCancelled(SyncError):
    """The run was cancelled from outside between batches or while polling."""
