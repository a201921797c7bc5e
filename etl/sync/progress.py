"""Progress callbacks so a run can report to logs, a terminal or a scheduler UI."""

import logging

from connections._logging import get_logger

from .models import LoadJob


class SyncProgress:
    """Receives run events. The base class ignores them all."""

    def on_message(self, message: str) -> None:
        pass

    def on_progress(self, batch_index: int, total_batches: int) -> None:
        pass

    def on_poll_tick(self, job: LoadJob) -> None:
        pass


class LoggingProgress(SyncProgress):
    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or get_logger("sync.progress")

    def on_message(self, message: str) -> None:
        self.logger.info(message)

    def on_progress(self, batch_index: int, total_batches: int) -> None:
        self.logger.info("Batch %s of %s sent", batch_index, total_batches)

    def on_poll_tick(self, job: LoadJob) -> None:
        self.logger.debug("Waiting for load job %s state=%s", job.id, job.state.value)
