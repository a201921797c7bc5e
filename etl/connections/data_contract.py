from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SourceType(str, Enum):
    INTEGER = "INTEGER"
    SMALLINT = "SMALLINT"
    BIGINT = "BIGINT"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    DATETIME = "DATETIME"
    TIMESTAMP = "TIMESTAMP"
    DECIMAL = "DECIMAL"
    FLOAT = "FLOAT"
    TIME = "TIME"
    STRING = "STRING"
    TEXT = "TEXT"
    JSON = "JSON"
    ENUM = "ENUM"
    OTHER = "OTHER"


class DestType(str, Enum):
    STRING = "STRING"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    DATETIME = "DATETIME"
    TIME = "TIME"


class ColumnDescriptor(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = Field(min_length=1)
    source_type: SourceType = SourceType.OTHER

    @property
    def key(self) -> str:
        return self.name.lower()


class DestColumnSpec(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = Field(min_length=1)
    dest_type: DestType
    mode: str = Field(default="NULLABLE", min_length=1)


class LoadJobState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (LoadJobState.SUCCEEDED, LoadJobState.FAILED)


class JobStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    state: LoadJobState
    errors: list[str] = Field(default_factory=list)


BatchRecord = dict[str, str | int | float | bool | None]
