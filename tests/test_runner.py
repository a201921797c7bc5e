import threading

import pytest
from sqlalchemy import create_engine, text

from fakes import FakeSource, FakeWarehouse, RecordingProgress

from connections.data_contract import ColumnDescriptor, DestType, SourceType
from connections.exceptions import (
    LoadJobError,
    SchemaCreationError,
    SchemaMismatch,
    SyncCancelled,
    TableNotFound,
)
from sync.config import SyncSettings
from sync.models import SyncMode, SyncRequest, SyncState
from sync.runner import SyncOrchestrator, run_sync

FAST = SyncSettings(poll_interval_seconds=0)
DAY_COLUMNS = [ColumnDescriptor(name="day", source_type=SourceType.DATE)]


def _orchestrator(source, warehouse, settings=FAST, **kwargs):
    return SyncOrchestrator(source, warehouse, settings, progress=RecordingProgress(), **kwargs)


def test_missing_destination_without_create_fails_before_transfer():
    source = FakeSource(total_rows=10)
    warehouse = FakeWarehouse()
    orchestrator = _orchestrator(source, warehouse)

    with pytest.raises(TableNotFound):
        orchestrator.run(SyncRequest(source_table="orders"))

    assert orchestrator.state == SyncState.FAILED
    assert warehouse.submitted == []
    assert source.queries == []


def test_full_load_into_new_table_sends_thirteen_batches():
    source = FakeSource(total_rows=250000)
    warehouse = FakeWarehouse()
    orchestrator = _orchestrator(source, warehouse, SyncSettings(poll_interval_seconds=0, batch_size=20000))

    result = orchestrator.run(SyncRequest(source_table="orders", create_if_missing=True))

    assert result.state == SyncState.DONE
    assert result.mode == SyncMode.ROW_COUNT
    assert result.rows_to_sync == 250000
    assert result.rows_synced == 250000
    assert result.batches_total == 13
    assert len(warehouse.submitted) == 13
    assert [len(job["rows"]) for job in warehouse.submitted] == [20000] * 12 + [10000]
    assert len(warehouse.tables["orders"]) == 250000
    assert "Syncing 250000 rows" in orchestrator.progress.messages
    assert "Sending 13 batches of 20000 rows/batch" in orchestrator.progress.messages


def test_only_one_load_job_is_in_flight_at_a_time():
    source = FakeSource(total_rows=50)
    warehouse = FakeWarehouse(tables={"orders": []})

    result = _orchestrator(source, warehouse, SyncSettings(poll_interval_seconds=0, batch_size=10)).run(
        SyncRequest(source_table="orders")
    )

    assert warehouse.max_in_flight == 1
    assert result.batches_submitted == 5
    assert result.job_ids == ["job-1", "job-2", "job-3", "job-4", "job-5"]
    assert [row["id"] for row in warehouse.tables["orders"]] == list(range(1, 51))


def test_watermark_mode_equal_maxima_submits_nothing():
    source = FakeSource(columns=DAY_COLUMNS, rows=[{"day": "2024-01-04"}, {"day": "2024-01-05"}])
    warehouse = FakeWarehouse(tables={"events": [{"day": "2024-01-05"}]})
    orchestrator = _orchestrator(source, warehouse)

    result = orchestrator.run(SyncRequest(source_table="events", order_column="day"))

    assert result.already_synced
    assert result.mode == SyncMode.WATERMARK
    assert warehouse.deleted_where == []
    assert warehouse.submitted == []
    assert "Already synced!" in orchestrator.progress.messages


def test_watermark_mode_cleans_tail_and_resumes_after_new_watermark():
    source = FakeSource(
        columns=DAY_COLUMNS,
        rows=[{"day": "2024-01-04"}, {"day": "2024-01-05"}, {"day": "2024-01-06"}],
    )
    warehouse = FakeWarehouse(
        tables={"events": [{"day": "2024-01-04"}, {"day": "2024-01-05"}, {"day": "2024-01-05"}]}
    )
    orchestrator = _orchestrator(source, warehouse)

    result = orchestrator.run(SyncRequest(source_table="events", order_column="day"))

    assert warehouse.deleted_where == [("events", "day", "2024-01-05")]
    assert result.cleanup_value == "2024-01-05"
    assert result.watermark == "2024-01-04"
    assert result.rows_synced == 2
    assert all(query["order_by"] == "day" for query in source.queries)
    assert all(query["greater_than"] == "2024-01-04" for query in source.queries)
    assert [row["day"] for row in warehouse.tables["events"]] == ["2024-01-04", "2024-01-05", "2024-01-06"]
    assert 'Cleaning "events" for "day" = "2024-01-05"' in orchestrator.progress.messages
    assert 'Syncing from "2024-01-04"' in orchestrator.progress.messages


def test_unknown_column_aborts_before_submitting_batch():
    source = FakeSource(rows=[{"id": 1, "unexpected": "x"}])
    warehouse = FakeWarehouse(tables={"orders": []})
    orchestrator = _orchestrator(source, warehouse)

    with pytest.raises(SchemaMismatch):
        orchestrator.run(SyncRequest(source_table="orders"))

    assert orchestrator.state == SyncState.FAILED
    assert warehouse.submitted == []


def test_force_recreate_deletes_then_creates_table():
    source = FakeSource(total_rows=3)
    warehouse = FakeWarehouse(tables={"orders": [{"id": 1}, {"id": 2}, {"id": 3}, {"id": 4}]})

    result = _orchestrator(source, warehouse).run(SyncRequest(source_table="orders", force_recreate=True))

    assert warehouse.deleted_tables == ["orders"]
    assert result.rows_synced == 3
    assert warehouse.tables["orders"] == [{"id": 1}, {"id": 2}, {"id": 3}]


def test_created_table_skips_ignored_columns_and_renames_destination():
    columns = [
        ColumnDescriptor(name="ID", source_type=SourceType.BIGINT),
        ColumnDescriptor(name="Password", source_type=SourceType.STRING),
        ColumnDescriptor(name="created_at", source_type=SourceType.DATETIME),
    ]
    source = FakeSource(
        columns=columns,
        rows=[{"ID": 1, "Password": "secret", "created_at": "2024-01-05 10:00:00"}],
    )
    warehouse = FakeWarehouse()

    result = _orchestrator(source, warehouse).run(
        SyncRequest(
            source_table="users",
            destination_table="users_copy",
            create_if_missing=True,
            ignore_columns="password",
        )
    )

    schema = warehouse.schemas["users_copy"]
    assert [(spec.name, spec.dest_type) for spec in schema] == [
        ("id", DestType.INTEGER),
        ("created_at", DestType.DATETIME),
    ]
    assert warehouse.tables["users_copy"] == [{"id": 1, "created_at": "2024-01-05T10:00:00"}]
    assert result.destination_table == "users_copy"


def test_rejected_schema_fails_run():
    warehouse = FakeWarehouse(reject_create=True)
    orchestrator = _orchestrator(FakeSource(total_rows=2), warehouse)

    with pytest.raises(SchemaCreationError):
        orchestrator.run(SyncRequest(source_table="orders", create_if_missing=True))

    assert orchestrator.state == SyncState.FAILED


def test_failed_job_keeps_earlier_batches_and_stops():
    source = FakeSource(total_rows=30)
    warehouse = FakeWarehouse(tables={"orders": []}, failing_jobs={"job-2": ["Invalid row"]})
    settings = SyncSettings(poll_interval_seconds=0, batch_size=10)

    with pytest.raises(LoadJobError) as excinfo:
        _orchestrator(source, warehouse, settings).run(SyncRequest(source_table="orders"))

    assert excinfo.value.job_id == "job-2"
    assert len(warehouse.submitted) == 2
    assert len(warehouse.tables["orders"]) == 10


def test_cancelled_run_submits_nothing():
    cancel = threading.Event()
    cancel.set()
    warehouse = FakeWarehouse(tables={"orders": []})
    orchestrator = _orchestrator(FakeSource(total_rows=5), warehouse, cancel_event=cancel)

    with pytest.raises(SyncCancelled):
        orchestrator.run(SyncRequest(source_table="orders"))

    assert warehouse.submitted == []
    assert orchestrator.state == SyncState.FAILED


def test_run_sync_returns_summary_and_audits_success(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'audit.db'}")
    warehouse = FakeWarehouse(tables={"orders": []})

    summary = run_sync(
        FakeSource(total_rows=4),
        warehouse,
        SyncRequest(source_table="orders"),
        FAST,
        progress=RecordingProgress(),
        audit_engine=engine,
    )

    assert summary["status"] == "success"
    assert summary["state"] == "DONE"
    assert summary["mode"] == "row_count"
    assert summary["rows_synced"] == 4

    with engine.connect() as connection:
        rows = connection.execute(text("SELECT run_id, status, rows_synced, batches FROM sync_audit_log")).all()

    assert rows == [(summary["run_id"], "success", 4, 1)]


def test_run_sync_audits_failure_and_reraises(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'audit.db'}")

    with pytest.raises(TableNotFound):
        run_sync(
            FakeSource(total_rows=4),
            FakeWarehouse(),
            SyncRequest(source_table="orders", order_column="id"),
            FAST,
            audit_engine=engine,
        )

    with engine.connect() as connection:
        row = connection.execute(text("SELECT mode, status, error_message FROM sync_audit_log")).one()

    assert row.mode == "watermark"
    assert row.status == "failure"
    assert "not found" in row.error_message
