from typing import Any

from connections._logging import get_logger
from connections.warehouse.base import BaseWarehouse

from .progress import SyncProgress

LOGGER = get_logger("sync.compensation")


class TailCompensation:
    """Removes the warehouse rows at the last watermark so they can be loaded again.

    The warehouse has no primary key, so a previous run whose final batch was
    partially ingested (or ingested twice) leaves an unreliable tail. Those rows
    are deleted and the next highest value becomes the resume point.
    """

    def __init__(self, warehouse: BaseWarehouse, progress: SyncProgress | None = None):
        self.warehouse = warehouse
        self.progress = progress or SyncProgress()

    def apply(self, table: str, column: str, value: Any) -> Any:
        self.progress.on_message(f'Cleaning "{table}" for "{column}" = "{value}"')
        self.warehouse.delete_where(table, column, value)

        watermark = self.warehouse.max_value(table, column)
        LOGGER.info("Tail removed table=%s column=%s value=%s new_watermark=%s", table, column, value, watermark)
        self.progress.on_message(f'Syncing from "{watermark}"')
        return watermark
