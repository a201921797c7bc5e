"""Delta planning: how many rows are missing from the warehouse and which source windows carry them."""

import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from connections._logging import get_logger
from connections.exceptions import TableNotFound
from connections.source.base import BaseSource
from connections.warehouse.base import BaseWarehouse
from staging.type_mapper import format_timedelta

from .models import BatchWindow, SyncMode, SyncPlan

LOGGER = get_logger("sync.planner")

_SPACED_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}")


def watermark_text(value: Any) -> str:
    """Canonical text form used to compare source and warehouse maxima.

    MySQL and BigQuery hand back the same watermark through different Python
    types (Decimal vs float, datetime vs ISO string), so both sides are
    rendered the same way before comparing.
    """
    if value is None:
        return ""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return format_timedelta(value)
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, (int, float, Decimal)):
        try:
            return format(Decimal(str(value)).normalize(), "f")
        except InvalidOperation:
            return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    text = str(value).strip()
    if _SPACED_DATETIME.match(text):
        return text.replace(" ", "T", 1)
    return text


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def plan_batches(rows: int, batch_size: int, start_offset: int = 0) -> list[BatchWindow]:
    if batch_size <= 0:
        raise ValueError("batch_size must be greater than zero")

    windows: list[BatchWindow] = []
    for index in range(-(-rows // batch_size) if rows > 0 else 0):
        limit = min(batch_size, rows - index * batch_size)
        windows.append(BatchWindow(offset=start_offset + index * batch_size, limit=limit))
    return windows


class DeltaPlanner:
    def __init__(self, source: BaseSource, warehouse: BaseWarehouse, batch_size: int):
        if batch_size <= 0:
            raise ValueError("batch_size must be greater than zero")
        self.source = source
        self.warehouse = warehouse
        self.batch_size = batch_size

    def plan(
        self,
        source_table: str,
        destination_table: str,
        *,
        create_if_missing: bool = False,
        order_column: str | None = None,
    ) -> SyncPlan:
        needs_create = not self.warehouse.table_exists(destination_table)
        if needs_create and not create_if_missing:
            raise TableNotFound(destination_table)

        if order_column:
            return self._plan_watermark(source_table, destination_table, order_column, needs_create)
        return self._plan_row_count(source_table, destination_table, needs_create)

    def _plan_row_count(self, source_table: str, destination_table: str, needs_create: bool) -> SyncPlan:
        source_count = self.source.count_rows(source_table)
        destination_count = 0 if needs_create else self.warehouse.count_rows(destination_table)

        # A warehouse holding more rows than the source counts as synced
        rows = max(source_count - destination_count, 0)
        LOGGER.info(
            "Row-count delta source=%s destination=%s rows_to_sync=%s",
            source_count,
            destination_count,
            rows,
        )
        return SyncPlan(
            mode=SyncMode.ROW_COUNT,
            needs_create=needs_create,
            rows_to_sync=rows,
            batch_size=self.batch_size,
            batches=tuple(plan_batches(rows, self.batch_size, start_offset=destination_count)),
        )

    def _plan_watermark(
        self,
        source_table: str,
        destination_table: str,
        order_column: str,
        needs_create: bool,
    ) -> SyncPlan:
        source_max = self.source.max_value(source_table, order_column)
        destination_max = None if needs_create else self.warehouse.max_value(destination_table, order_column)
        LOGGER.info(
            "Watermark delta column=%s source_max=%s destination_max=%s",
            order_column,
            source_max,
            destination_max,
        )

        plan = SyncPlan(
            mode=SyncMode.WATERMARK,
            needs_create=needs_create,
            order_column=order_column,
            batch_size=self.batch_size,
        )

        if watermark_text(source_max) == watermark_text(destination_max):
            return plan

        # No primary keys in the warehouse: rows at the last watermark may be partial or duplicated
        if not is_blank(destination_max):
            return plan.model_copy(update={"needs_cleanup": True, "cleanup_value": destination_max})

        return self.plan_from_watermark(plan, source_table, None)

    def plan_from_watermark(self, plan: SyncPlan, source_table: str, watermark: Any) -> SyncPlan:
        """Complete a watermark plan once the confirmed lower bound is known."""
        if plan.order_column is None:
            raise ValueError("plan_from_watermark needs a watermark plan with an order column")

        if is_blank(watermark):
            watermark = None
            rows = self.source.count_rows(source_table)
        else:
            rows = self.source.count_rows(source_table, plan.order_column, watermark, inclusive=False)

        LOGGER.info("Resuming after watermark=%s rows_to_sync=%s", watermark, rows)
        return SyncPlan(
            mode=plan.mode,
            needs_create=plan.needs_create,
            needs_cleanup=False,
            cleanup_value=plan.cleanup_value,
            watermark=watermark,
            order_column=plan.order_column,
            rows_to_sync=rows,
            batch_size=plan.batch_size,
            batches=tuple(plan_batches(rows, plan.batch_size)),
        )
