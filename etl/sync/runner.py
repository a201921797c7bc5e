import tempfile
import threading
import time
import uuid
from datetime import UTC, datetime

from sqlalchemy.engine import Engine

from connections._logging import get_logger
from connections.data_contract import ColumnDescriptor
from connections.exceptions import SyncCancelled
from connections.source.base import BaseSource
from connections.warehouse.base import BaseWarehouse
from staging import build_column_index, map_column, normalize_ignore_columns, transform_rows, write_batch

from .audit import ensure_audit_table, write_audit_record
from .compensation import TailCompensation
from .config import SyncSettings
from .jobs import LoadJobMonitor
from .models import SyncMode, SyncPlan, SyncRequest, SyncResult, SyncState
from .planner import DeltaPlanner, watermark_text
from .progress import LoggingProgress, SyncProgress

logger = get_logger("sync.runner")


class SyncOrchestrator:
    """Drives one table sync: plan, create, clean the tail, send batches, verify."""

    def __init__(
        self,
        source: BaseSource,
        warehouse: BaseWarehouse,
        settings: SyncSettings | None = None,
        *,
        progress: SyncProgress | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self.source = source
        self.warehouse = warehouse
        self.settings = settings or SyncSettings()
        self.progress = progress or LoggingProgress()
        self.cancel_event = cancel_event or threading.Event()
        self.state = SyncState.START
        self.run_id: str | None = None
        self.monitor: LoadJobMonitor | None = None

    def _enter(self, state: SyncState) -> None:
        logger.info("Sync %s state %s -> %s", self.run_id, self.state.value, state.value)
        self.state = state

    def run(self, request: SyncRequest) -> SyncResult:
        self.run_id = str(uuid.uuid4())
        self.state = SyncState.START
        started = time.monotonic()

        try:
            result = self._run(request)
        except Exception:
            self._enter(SyncState.FAILED)
            raise

        return result.model_copy(update={"duration_seconds": time.monotonic() - started})

    def _run(self, request: SyncRequest) -> SyncResult:
        source_table = request.source_table
        target_table = request.target_table
        ignore_columns = normalize_ignore_columns(request.ignore_columns)
        create_if_missing = request.create_if_missing

        if request.force_recreate:
            if self.warehouse.table_exists(target_table):
                self.progress.on_message(f'Deleting BigQuery table "{target_table}"')
                self.warehouse.delete_table(target_table)
            create_if_missing = True

        self._enter(SyncState.PLANNING)
        if request.order_column:
            self.progress.on_message(f'Using order column "{request.order_column}"')

        planner = DeltaPlanner(self.source, self.warehouse, request.batch_size or self.settings.batch_size)
        plan = planner.plan(
            source_table,
            target_table,
            create_if_missing=create_if_missing,
            order_column=request.order_column,
        )

        columns: list[ColumnDescriptor] | None = None
        if plan.needs_create:
            self._enter(SyncState.CREATING_TABLE)
            columns = self.source.list_columns(source_table)
            self._create_table(target_table, columns, ignore_columns)

        if plan.needs_cleanup:
            self._enter(SyncState.CLEANING_UP)
            compensation = TailCompensation(self.warehouse, self.progress)
            watermark = compensation.apply(target_table, plan.order_column, plan.cleanup_value)
            plan = planner.plan_from_watermark(plan, source_table, watermark)

        if plan.is_synced:
            self.progress.on_message("Already synced!")
            self._enter(SyncState.DONE)
            return self._result(request, plan, rows_synced=0, job_ids=[], already_synced=True)

        self.progress.on_message(f"Syncing {plan.rows_to_sync} rows")
        self.progress.on_message(f"Sending {len(plan.batches)} batches of {plan.batch_size} rows/batch")

        self._enter(SyncState.BATCHING)
        column_index = build_column_index(columns or self.source.list_columns(source_table))
        self.monitor = LoadJobMonitor(
            self.warehouse,
            poll_interval_seconds=self.settings.poll_interval_seconds,
            max_wait_seconds=self.settings.max_wait_seconds,
            cancel_event=self.cancel_event,
            progress=self.progress,
        )
        rows_synced, job_ids = self._send_batches(request, plan, column_index, ignore_columns)

        self._enter(SyncState.VERIFYING)
        self.monitor.drain()

        self.progress.on_message(f"Synced! rows synced: {rows_synced}")
        self._enter(SyncState.DONE)
        return self._result(request, plan, rows_synced=rows_synced, job_ids=job_ids, already_synced=False)

    def _create_table(
        self,
        table: str,
        columns: list[ColumnDescriptor],
        ignore_columns: frozenset[str],
    ) -> None:
        specs = [map_column(column) for column in columns if column.key not in ignore_columns]
        self.progress.on_message(f'Creating BigQuery table "{table}" with {len(specs)} columns')
        self.warehouse.create_table(table, specs)

    def _spool(self):
        return tempfile.SpooledTemporaryFile(
            max_size=self.settings.spool_max_bytes,
            mode="r+b",
            dir=self.settings.cache_dir,
        )

    def _send_batches(
        self,
        request: SyncRequest,
        plan: SyncPlan,
        column_index: dict[str, ColumnDescriptor],
        ignore_columns: frozenset[str],
    ) -> tuple[int, list[str]]:
        total = len(plan.batches)
        rows_synced = 0
        job_ids: list[str] = []

        for index, window in enumerate(plan.batches, start=1):
            if self.cancel_event.is_set():
                raise SyncCancelled(f"cancelled before batch {index} of {total}")

            rows = self.source.query_rows(
                request.source_table,
                order_by=plan.order_column,
                greater_than=plan.watermark,
                offset=window.offset,
                limit=window.limit,
            )
            records = transform_rows(rows, column_index, ignore_columns, table=request.source_table)

            with self._spool() as payload:
                lines = write_batch(records, payload)
                if lines == 0:
                    logger.warning("Batch %s of %s read no rows at offset=%s, nothing to load", index, total, window.offset)
                    self.progress.on_progress(index, total)
                    continue

                # Build N+1 while N loads, but never let two jobs run at once
                if self.monitor.in_flight is not None:
                    self.monitor.await_completion(self.monitor.in_flight)

                job = self.monitor.submit(request.target_table, payload)
                job_ids.append(job.id)

                # The first job is awaited right away to fail fast on credentials or schema errors
                if len(job_ids) == 1:
                    self.monitor.await_completion(job)

            rows_synced += lines
            self.progress.on_progress(index, total)

        return rows_synced, job_ids

    def _result(
        self,
        request: SyncRequest,
        plan: SyncPlan,
        *,
        rows_synced: int,
        job_ids: list[str],
        already_synced: bool,
    ) -> SyncResult:
        return SyncResult(
            run_id=self.run_id,
            state=self.state,
            mode=plan.mode,
            source_table=request.source_table,
            destination_table=request.target_table,
            rows_to_sync=plan.rows_to_sync,
            rows_synced=rows_synced,
            batches_total=len(plan.batches),
            batches_submitted=len(job_ids),
            job_ids=job_ids,
            cleanup_value=None if plan.cleanup_value is None else watermark_text(plan.cleanup_value),
            watermark=None if plan.watermark is None else watermark_text(plan.watermark),
            already_synced=already_synced,
        )


def run_sync(
    source: BaseSource,
    warehouse: BaseWarehouse,
    request: SyncRequest,
    settings: SyncSettings | None = None,
    *,
    progress: SyncProgress | None = None,
    cancel_event: threading.Event | None = None,
    audit_engine: Engine | None = None,
) -> dict:
    """
    Run one table sync and return a JSON-ready summary.

    When ``audit_engine`` is given, every run (successful or not) is recorded
    in its sync_audit_log table. Failures are re-raised after auditing.
    """
    orchestrator = SyncOrchestrator(
        source,
        warehouse,
        settings,
        progress=progress,
        cancel_event=cancel_event,
    )
    mode = SyncMode.WATERMARK if request.order_column else SyncMode.ROW_COUNT
    started_at = datetime.now(UTC)

    if audit_engine is not None:
        ensure_audit_table(audit_engine)

    try:
        result = orchestrator.run(request)
    except Exception as e:
        logger.exception("Sync run failed", extra={"run_id": orchestrator.run_id})
        if audit_engine is not None:
            write_audit_record(
                audit_engine, orchestrator.run_id, request.source_table, request.target_table,
                mode.value, "failure", 0, 0, started_at, datetime.now(UTC), str(e)
            )
        raise

    if audit_engine is not None:
        write_audit_record(
            audit_engine, result.run_id, result.source_table, result.destination_table,
            result.mode.value, "success", result.rows_synced, result.batches_submitted,
            started_at, datetime.now(UTC)
        )

    return result.model_dump(mode="json")
