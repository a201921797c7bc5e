"""In-memory stand-ins for the source and warehouse connectors."""

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
ETL_PATH = ROOT / "etl"
if str(ETL_PATH) not in sys.path:
    sys.path.insert(0, str(ETL_PATH))

from connections.data_contract import ColumnDescriptor, JobStatus, LoadJobState, SourceType  # noqa: E402
from connections.exceptions import SchemaCreationError, TableNotFound  # noqa: E402
from connections.source.base import BaseSource  # noqa: E402
from connections.warehouse.base import BaseWarehouse  # noqa: E402


class FakeSource(BaseSource):
    def __init__(self, columns=None, rows=None, total_rows=None):
        self.columns = columns or [ColumnDescriptor(name="id", source_type=SourceType.INTEGER)]
        self.rows = rows
        self.total_rows = total_rows
        self.queries = []
        self.connected = False
        self.closed = False

    def _all_rows(self):
        if self.rows is not None:
            return list(self.rows)
        return [{"id": index} for index in range(1, (self.total_rows or 0) + 1)]

    def connect(self):
        self.connected = True

    def close(self):
        self.closed = True

    def count_rows(self, table, column=None, value=None, *, inclusive=True):
        if self.rows is None and column is None:
            return self.total_rows or 0
        rows = self._all_rows()
        if column and value is not None:
            if inclusive:
                rows = [row for row in rows if row[column] >= value]
            else:
                rows = [row for row in rows if row[column] > value]
        return len(rows)

    def max_value(self, table, column):
        values = [row[column] for row in self._all_rows() if row.get(column) is not None]
        return max(values) if values else None

    def list_columns(self, table):
        return list(self.columns)

    def query_rows(self, table, *, order_by=None, greater_than=None, offset=0, limit=None):
        self.queries.append(
            {"order_by": order_by, "greater_than": greater_than, "offset": offset, "limit": limit}
        )
        if self.rows is None and order_by is None:
            stop = self.total_rows or 0
            if limit is not None:
                stop = min(stop, offset + limit)
            for index in range(offset + 1, stop + 1):
                yield {"id": index}
            return

        rows = self._all_rows()
        if order_by:
            if greater_than is not None:
                rows = [row for row in rows if row[order_by] > greater_than]
            rows = sorted(rows, key=lambda row: row[order_by])
        end = None if limit is None else offset + limit
        yield from rows[offset:end]


class FakeWarehouse(BaseWarehouse):
    """Keeps tables as lists of dicts; load jobs land when their poll reports success."""

    def __init__(self, tables=None, job_states=None, failing_jobs=None, reject_create=False):
        self.tables = {name: list(rows) for name, rows in (tables or {}).items()}
        self.schemas = {}
        self.job_states = job_states or [LoadJobState.RUNNING, LoadJobState.SUCCEEDED]
        self.failing_jobs = failing_jobs or {}
        self.reject_create = reject_create
        self.jobs = {}
        self.submitted = []
        self.deleted_where = []
        self.deleted_tables = []
        self.active = set()
        self.max_in_flight = 0

    def table_exists(self, table):
        return table in self.tables

    def create_table(self, table, columns):
        if self.reject_create:
            raise SchemaCreationError(f"invalid table {table}")
        self.tables[table] = []
        self.schemas[table] = list(columns)

    def delete_table(self, table):
        self.tables.pop(table, None)
        self.deleted_tables.append(table)

    def count_rows(self, table):
        if table not in self.tables:
            raise TableNotFound(table)
        return len(self.tables[table])

    def max_value(self, table, column):
        values = [row[column] for row in self.tables.get(table, []) if row.get(column) is not None]
        return max(values) if values else None

    def delete_where(self, table, column, value):
        self.deleted_where.append((table, column, value))
        self.tables[table] = [row for row in self.tables[table] if row.get(column) != value]

    def submit_load(self, table, payload):
        lines = [line for line in payload.read().decode("utf-8").splitlines() if line]
        job_id = f"job-{len(self.submitted) + 1}"
        self.submitted.append({"id": job_id, "table": table, "rows": [json.loads(line) for line in lines]})
        self.jobs[job_id] = list(self.job_states)
        self.active.add(job_id)
        self.max_in_flight = max(self.max_in_flight, len(self.active))
        return job_id

    def poll_job(self, job_id):
        states = self.jobs[job_id]
        state = states.pop(0) if len(states) > 1 else states[0]

        if state == LoadJobState.SUCCEEDED and job_id in self.failing_jobs:
            state = LoadJobState.FAILED

        if state.is_terminal and job_id in self.active:
            self.active.discard(job_id)
            if state == LoadJobState.SUCCEEDED:
                submitted = next(job for job in self.submitted if job["id"] == job_id)
                self.tables[submitted["table"]].extend(submitted["rows"])

        if state == LoadJobState.FAILED:
            return JobStatus(state=state, errors=self.failing_jobs.get(job_id, ["load failed"]))
        return JobStatus(state=state)


class RecordingProgress:
    def __init__(self):
        self.messages = []
        self.progress = []
        self.ticks = []

    def on_message(self, message):
        self.messages.append(message)

    def on_progress(self, batch_index, total_batches):
        self.progress.append((batch_index, total_batches))

    def on_poll_tick(self, job):
        self.ticks.append((job.id, job.state))
