from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest

from fakes import FakeSource, FakeWarehouse

from connections.exceptions import TableNotFound
from sync.models import BatchWindow, SyncMode, SyncPlan
from sync.planner import DeltaPlanner, is_blank, plan_batches, watermark_text


@pytest.mark.parametrize(
    ("rows", "batch_size", "expected_batches"),
    [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (250000, 20000, 13), (7, 1, 7)],
)
def test_plan_batches_covers_rows_exactly(rows, batch_size, expected_batches):
	windows = plan_batches(rows, batch_size)

	assert len(windows) == expected_batches
	assert sum(window.limit for window in windows) == rows
	assert all(window.limit <= batch_size for window in windows)


def test_plan_batches_offsets_start_after_loaded_rows():
	windows = plan_batches(25, 10, start_offset=100)

	assert [(w.offset, w.limit) for w in windows] == [(100, 10), (110, 10), (120, 5)]


def test_plan_batches_rejects_non_positive_batch_size():
	with pytest.raises(ValueError):
		plan_batches(10, 0)


def test_sync_plan_rejects_batches_not_covering_rows():
	with pytest.raises(ValueError):
		SyncPlan(mode=SyncMode.ROW_COUNT, rows_to_sync=5, batch_size=10, batches=(BatchWindow(offset=0, limit=3),))


def test_watermark_text_aligns_driver_types():
	assert watermark_text(None) == ""
	assert watermark_text(Decimal("1.50")) == watermark_text(1.5)
	assert watermark_text(100) == watermark_text(Decimal("100"))
	assert watermark_text(datetime(2024, 1, 5, 10, 30)) == watermark_text("2024-01-05 10:30:00")
	assert watermark_text(date(2024, 1, 5)) == "2024-01-05"


def test_watermark_text_only_rewrites_datetime_strings():
	assert watermark_text("a b") == "a b"
	assert watermark_text("a b") != watermark_text("aTb")
	assert watermark_text("2024-01-05 10:30:00") == "2024-01-05T10:30:00"


def test_watermark_text_aligns_mysql_time_with_bigquery_time():
	assert watermark_text(timedelta(hours=9, minutes=5, seconds=7)) == watermark_text(time(9, 5, 7))
	assert watermark_text(timedelta(seconds=1, microseconds=250)) == watermark_text(time(0, 0, 1, 250))


def test_is_blank():
	assert is_blank(None)
	assert is_blank("  ")
	assert not is_blank(0)
	assert not is_blank("2024-01-05")


def test_missing_table_without_auto_create_raises():
	planner = DeltaPlanner(FakeSource(total_rows=10), FakeWarehouse(), batch_size=5)

	with pytest.raises(TableNotFound):
		planner.plan("orders", "orders")


def test_row_count_mode_missing_table_with_auto_create():
	planner = DeltaPlanner(FakeSource(total_rows=250000), FakeWarehouse(), batch_size=20000)

	plan = planner.plan("orders", "orders", create_if_missing=True)

	assert plan.needs_create
	assert plan.mode == SyncMode.ROW_COUNT
	assert plan.rows_to_sync == 250000
	assert len(plan.batches) == 13
	assert plan.batches[-1] == BatchWindow(offset=240000, limit=10000)


def test_row_count_mode_resumes_after_loaded_rows():
	warehouse = FakeWarehouse(tables={"orders": [{"id": i} for i in range(1, 31)]})
	planner = DeltaPlanner(FakeSource(total_rows=55), warehouse, batch_size=10)

	plan = planner.plan("orders", "orders")

	assert not plan.needs_create
	assert plan.rows_to_sync == 25
	assert [w.offset for w in plan.batches] == [30, 40, 50]


@pytest.mark.parametrize("destination_rows", [40, 45])
def test_row_count_mode_equal_or_ahead_is_synced(destination_rows):
	warehouse = FakeWarehouse(tables={"orders": [{"id": i} for i in range(destination_rows)]})
	planner = DeltaPlanner(FakeSource(total_rows=40), warehouse, batch_size=10)

	plan = planner.plan("orders", "orders")

	assert plan.is_synced
	assert plan.batches == ()


def test_watermark_mode_equal_maxima_is_synced_without_cleanup():
	source = FakeSource(rows=[{"day": "2024-01-04"}, {"day": "2024-01-05"}])
	warehouse = FakeWarehouse(tables={"events": [{"day": "2024-01-05"}]})
	planner = DeltaPlanner(source, warehouse, batch_size=10)

	plan = planner.plan("events", "events", order_column="day")

	assert plan.is_synced
	assert not plan.needs_cleanup
	assert warehouse.deleted_where == []


def test_watermark_mode_flags_tail_cleanup():
	source = FakeSource(rows=[{"day": "2024-01-05"}, {"day": "2024-01-06"}])
	warehouse = FakeWarehouse(tables={"events": [{"day": "2024-01-04"}, {"day": "2024-01-05"}]})
	planner = DeltaPlanner(source, warehouse, batch_size=10)

	plan = planner.plan("events", "events", order_column="day")

	assert plan.needs_cleanup
	assert plan.cleanup_value == "2024-01-05"
	assert not plan.is_synced
	assert plan.batches == ()


def test_plan_from_watermark_counts_strictly_after_watermark():
	source = FakeSource(rows=[{"day": f"2024-01-0{d}"} for d in range(1, 8)])
	planner = DeltaPlanner(source, FakeWarehouse(tables={"events": []}), batch_size=2)
	plan = SyncPlan(mode=SyncMode.WATERMARK, order_column="day", batch_size=2, needs_cleanup=True, cleanup_value="2024-01-05")

	completed = planner.plan_from_watermark(plan, "events", "2024-01-04")

	assert completed.watermark == "2024-01-04"
	assert completed.rows_to_sync == 3
	assert [(w.offset, w.limit) for w in completed.batches] == [(0, 2), (2, 1)]
	assert not completed.needs_cleanup
	assert completed.cleanup_value == "2024-01-05"


def test_watermark_mode_empty_destination_syncs_everything():
	source = FakeSource(rows=[{"day": "2024-01-01"}, {"day": "2024-01-02"}, {"day": "2024-01-03"}])
	planner = DeltaPlanner(source, FakeWarehouse(tables={"events": []}), batch_size=2)

	plan = planner.plan("events", "events", order_column="day")

	assert not plan.needs_cleanup
	assert plan.watermark is None
	assert plan.rows_to_sync == 3
	assert len(plan.batches) == 2
