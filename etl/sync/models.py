from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from connections._config import split_list
from connections.data_contract import LoadJobState


class SyncMode(str, Enum):
    ROW_COUNT = "row_count"
    WATERMARK = "watermark"


class SyncState(str, Enum):
    START = "START"
    PLANNING = "PLANNING"
    CREATING_TABLE = "CREATING_TABLE"
    CLEANING_UP = "CLEANING_UP"
    BATCHING = "BATCHING"
    VERIFYING = "VERIFYING"
    DONE = "DONE"
    FAILED = "FAILED"


class BatchWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    offset: int = Field(ge=0)
    limit: int = Field(ge=1)


class SyncPlan(BaseModel):
    """What one run has to do; computed by the delta planner, never persisted."""

    model_config = ConfigDict(frozen=True)

    mode: SyncMode
    needs_create: bool = False
    needs_cleanup: bool = False
    cleanup_value: Any = None
    watermark: Any = None
    order_column: str | None = None
    rows_to_sync: int = Field(default=0, ge=0)
    batch_size: int = Field(ge=1)
    batches: tuple[BatchWindow, ...] = ()

    @model_validator(mode="after")
    def _batches_cover_rows(self) -> "SyncPlan":
        covered = sum(window.limit for window in self.batches)
        if covered != self.rows_to_sync:
            raise ValueError(f"batches cover {covered} rows but plan needs {self.rows_to_sync}")
        return self

    @property
    def is_synced(self) -> bool:
        return not self.needs_cleanup and self.rows_to_sync == 0


class LoadJob(BaseModel):
    id: str = Field(min_length=1)
    table: str
    state: LoadJobState = LoadJobState.PENDING
    errors: list[str] = Field(default_factory=list)


class SyncRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    source_table: str = Field(min_length=1)
    destination_table: str | None = None
    create_if_missing: bool = False
    force_recreate: bool = False
    order_column: str | None = None
    ignore_columns: list[str] = Field(default_factory=list)
    batch_size: int | None = Field(default=None, ge=1)

    @field_validator("ignore_columns", mode="before")
    @classmethod
    def _split_ignore_columns(cls, value: Any) -> list[str]:
        return split_list(value)

    @field_validator("order_column", "destination_table", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def target_table(self) -> str:
        return self.destination_table or self.source_table


class SyncResult(BaseModel):
    run_id: str
    status: str = "success"
    state: SyncState
    mode: SyncMode
    source_table: str
    destination_table: str
    rows_to_sync: int = 0
    rows_synced: int = 0
    batches_total: int = 0
    batches_submitted: int = 0
    job_ids: list[str] = Field(default_factory=list)
    cleanup_value: str | None = None
    watermark: str | None = None
    already_synced: bool = False
    duration_seconds: float = 0.0
