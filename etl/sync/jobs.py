"""Load job submission and polling with a single in-flight slot."""

import threading
import time
from typing import BinaryIO

from connections._logging import get_logger
from connections.data_contract import LoadJobState
from connections.exceptions import LoadJobError, LoadJobTimeout, SyncCancelled
from connections.warehouse.base import BaseWarehouse

from .models import LoadJob
from .progress import SyncProgress

LOGGER = get_logger("sync.jobs")


class LoadJobMonitor:
    def __init__(
        self,
        warehouse: BaseWarehouse,
        *,
        poll_interval_seconds: float = 1.0,
        max_wait_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
        progress: SyncProgress | None = None,
    ):
        self.warehouse = warehouse
        self.poll_interval_seconds = poll_interval_seconds
        self.max_wait_seconds = max_wait_seconds
        self.cancel_event = cancel_event or threading.Event()
        self.progress = progress or SyncProgress()
        self._in_flight: LoadJob | None = None

    @property
    def in_flight(self) -> LoadJob | None:
        return self._in_flight

    def submit(self, table: str, payload: BinaryIO) -> LoadJob:
        if self._in_flight is not None:
            raise RuntimeError(f"load job {self._in_flight.id} is still in flight")

        job_id = self.warehouse.submit_load(table, payload)
        job = LoadJob(id=job_id, table=table)
        self._in_flight = job
        LOGGER.info("Load job %s submitted for table=%s", job.id, table)
        return job

    def await_completion(self, job: LoadJob) -> LoadJob:
        """Poll until the job is terminal; raise on failure, timeout or cancellation."""
        started = time.monotonic()

        while True:
            status = self.warehouse.poll_job(job.id)
            job.state = status.state
            job.errors = list(status.errors)

            if job.state.is_terminal:
                self._release(job)
                if job.state == LoadJobState.FAILED:
                    LOGGER.error("Load job %s failed: %s", job.id, "; ".join(job.errors))
                    raise LoadJobError(job.id, job.errors)
                LOGGER.info("Load job %s succeeded", job.id)
                return job

            self.progress.on_poll_tick(job)

            waited = time.monotonic() - started
            if self.max_wait_seconds is not None and waited >= self.max_wait_seconds:
                raise LoadJobTimeout(job.id, waited)

            if self.cancel_event.wait(self.poll_interval_seconds):
                raise SyncCancelled(f"cancelled while waiting for load job {job.id}")

    def drain(self) -> LoadJob | None:
        if self._in_flight is None:
            return None
        return self.await_completion(self._in_flight)

    def _release(self, job: LoadJob) -> None:
        if self._in_flight is not None and self._in_flight.id == job.id:
            self._in_flight = None
