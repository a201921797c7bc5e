"""BigQuery destination: client builder, health check and the warehouse connector."""

from typing import Any, BinaryIO

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import bigquery
from google.oauth2 import service_account

from .._client_cache import get_or_create_client
from .._config import load_connection_config
from .._logging import get_logger, redact_config
from ..data_contract import DestColumnSpec, JobStatus, LoadJobState
from ..exceptions import SchemaCreationError, TableNotFound
from .base import BaseWarehouse
from .config import BigQueryConfig

LOGGER = get_logger("warehouse.bigquery")

_SCOPES = ("https://www.googleapis.com/auth/bigquery",)

# Query parameters only accept standard SQL type names
_PARAMETER_TYPES = {
    "INTEGER": "INT64",
    "FLOAT": "FLOAT64",
    "BOOLEAN": "BOOL",
}


def _quote_identifier(value: str) -> str:
    escaped = value.replace("`", "\\`")
    return f"`{escaped}`"


def resolve_bigquery_config(
    project_id: str | None = None,
    dataset: str | None = None,
    key_file: str | None = None,
    location: str | None = None,
    *,
    config: dict | None = None,
    file_path: str | None = None,
    env_prefix: str = "BQ",
) -> BigQueryConfig:
    merged_config = load_connection_config(
        config,
        file_path=file_path,
        section="bigquery",
        env_prefix=env_prefix,
        required=("project_id", "dataset"),
        overrides={
            "project_id": project_id,
            "dataset": dataset,
            "key_file": key_file,
            "location": location,
        },
    )
    return BigQueryConfig.model_validate(merged_config)


def get_bigquery_client(
    project_id: str | None = None,
    dataset: str | None = None,
    key_file: str | None = None,
    location: str | None = None,
    *,
    config: dict | None = None,
    file_path: str | None = None,
    env_prefix: str = "BQ",
    reuse: bool = True,
) -> bigquery.Client:
    """Create or reuse a BigQuery client, with service-account credentials when a key file is set."""
    validated_config = resolve_bigquery_config(
        project_id,
        dataset,
        key_file,
        location,
        config=config,
        file_path=file_path,
        env_prefix=env_prefix,
    )
    LOGGER.info("Creating BigQuery client with config=%s", redact_config(validated_config.model_dump()))

    def factory() -> bigquery.Client:
        if validated_config.key_file:
            credentials = service_account.Credentials.from_service_account_file(
                validated_config.key_file,
                scopes=list(_SCOPES),
            )
            return bigquery.Client(
                project=validated_config.project_id,
                credentials=credentials,
                location=validated_config.location,
            )
        return bigquery.Client(project=validated_config.project_id, location=validated_config.location)

    return get_or_create_client("dw_bigquery", validated_config.model_dump(), factory, reuse=reuse)


def get_bigquery_warehouse(*args, reuse: bool = True, **kwargs) -> "BigQueryWarehouse":
    validated_config = resolve_bigquery_config(*args, **kwargs)
    client = get_bigquery_client(config=validated_config.model_dump(), env_prefix="", reuse=reuse)
    return BigQueryWarehouse(
        client,
        validated_config.dataset,
        project=validated_config.project_id,
        location=validated_config.location,
    )


def test_bigquery_connection(*args, raise_on_error: bool = False, **kwargs) -> bool:
    """Run a lightweight SELECT 1 through the BigQuery client."""
    try:
        client = get_bigquery_client(*args, **kwargs)
        list(client.query("SELECT 1").result())
        return True
    except Exception:
        LOGGER.exception("BigQuery connection test failed")
        if raise_on_error:
            raise
        return False


class BigQueryWarehouse(BaseWarehouse):
    def __init__(
        self,
        client: bigquery.Client,
        dataset: str,
        *,
        project: str | None = None,
        location: str | None = None,
    ):
        self.client = client
        self.dataset = dataset
        self.project = project or client.project
        self.location = location
        self._job_locations: dict[str, str | None] = {}

    def _table_id(self, table: str) -> str:
        return f"{self.project}.{self.dataset}.{table}"

    def _run_query(self, sql: str, parameters: list | None = None) -> list:
        job_config = bigquery.QueryJobConfig(query_parameters=parameters or [])
        query_job = self.client.query(sql, job_config=job_config, location=self.location)
        return list(query_job.result())

    def table_exists(self, table: str) -> bool:
        try:
            self.client.get_table(self._table_id(table))
        except NotFound:
            return False
        return True

    def create_table(self, table: str, columns: list[DestColumnSpec]) -> None:
        schema = [
            bigquery.SchemaField(column.name, column.dest_type.value, mode=column.mode)
            for column in columns
        ]
        try:
            self.client.create_table(bigquery.Table(self._table_id(table), schema=schema))
        except GoogleAPIError as exc:
            LOGGER.error("BigQuery rejected table %s: %s", table, exc)
            raise SchemaCreationError(f"BigQuery rejected table {table}: {exc}") from exc

        LOGGER.info("Created BigQuery table %s with %s columns", self._table_id(table), len(schema))

    def delete_table(self, table: str) -> None:
        self.client.delete_table(self._table_id(table), not_found_ok=True)
        LOGGER.info("Deleted BigQuery table %s", self._table_id(table))

    def count_rows(self, table: str) -> int:
        try:
            metadata = self.client.get_table(self._table_id(table))
        except NotFound as exc:
            raise TableNotFound(table) from exc
        return int(metadata.num_rows or 0)

    def max_value(self, table: str, column: str) -> Any:
        sql = (
            f"SELECT MAX({_quote_identifier(column)}) AS max_value "
            f"FROM {_quote_identifier(self._table_id(table))}"
        )
        rows = self._run_query(sql)
        if not rows:
            return None
        return rows[0][0]

    def _field_type(self, table: str, column: str) -> str:
        metadata = self.client.get_table(self._table_id(table))
        for field in metadata.schema:
            if field.name.lower() == column.lower():
                return _PARAMETER_TYPES.get(field.field_type, field.field_type)
        raise ValueError(f"column '{column}' not found in BigQuery table '{table}'")

    def delete_where(self, table: str, column: str, value: Any) -> None:
        parameter = bigquery.ScalarQueryParameter("value", self._field_type(table, column), value)
        sql = (
            f"DELETE FROM {_quote_identifier(self._table_id(table))} "
            f"WHERE {_quote_identifier(column)} = @value"
        )
        self._run_query(sql, [parameter])
        LOGGER.info("Deleted rows from %s where %s = %s", self._table_id(table), column, value)

    def submit_load(self, table: str, payload: BinaryIO) -> str:
        job_config = bigquery.LoadJobConfig(
            source_format=bigquery.SourceFormat.NEWLINE_DELIMITED_JSON,
            write_disposition=bigquery.WriteDisposition.WRITE_APPEND,
        )
        job = self.client.load_table_from_file(
            payload,
            self._table_id(table),
            rewind=True,
            job_config=job_config,
            location=self.location,
        )
        # Regional datasets need the job location to look the job up again
        self._job_locations[job.job_id] = getattr(job, "location", None) or self.location
        LOGGER.info("Submitted load job %s into %s", job.job_id, self._table_id(table))
        return job.job_id

    def poll_job(self, job_id: str) -> JobStatus:
        location = self._job_locations.get(job_id, self.location)
        job = self.client.get_job(job_id, location=location)

        if job.state == "RUNNING":
            return JobStatus(state=LoadJobState.RUNNING)
        if job.state != "DONE":
            return JobStatus(state=LoadJobState.PENDING)

        if job.error_result:
            errors = [error.get("message", "") for error in job.errors or []]
            if not errors:
                errors = [job.error_result.get("message", "unknown error")]
            self._job_locations.pop(job_id, None)
            return JobStatus(state=LoadJobState.FAILED, errors=errors)

        self._job_locations.pop(job_id, None)
        return JobStatus(state=LoadJobState.SUCCEEDED)
