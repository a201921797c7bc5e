from datetime import datetime

from sqlalchemy import text
from sqlalchemy.engine import Engine

from connections._logging import get_logger

logger = get_logger("sync.audit")


def ensure_audit_table(engine: Engine) -> None:
    """Ensure the sync_audit_log table exists in the audit database."""
    dialect = engine.dialect.name
    if dialect == "sqlite":
        id_type = "INTEGER PRIMARY KEY AUTOINCREMENT"
    elif dialect == "mysql":
        id_type = "BIGINT AUTO_INCREMENT PRIMARY KEY"
    else:
        id_type = "BIGSERIAL PRIMARY KEY"

    ddl = f"""
    CREATE TABLE IF NOT EXISTS sync_audit_log (
        id                {id_type},
        run_id            VARCHAR(64) NOT NULL,
        source_table      VARCHAR(255) NOT NULL,
        destination_table VARCHAR(255) NOT NULL,
        mode              VARCHAR(32) NOT NULL,
        status            VARCHAR(16) NOT NULL,
        rows_synced       BIGINT,
        batches           INTEGER,
        error_message     TEXT,
        started_at        TIMESTAMP NOT NULL,
        finished_at       TIMESTAMP NULL
    )
    """
    with engine.connect() as connection:
        logger.info("Ensuring audit table exists")
        connection.execute(text(ddl))
        connection.commit()


def write_audit_record(
    engine: Engine,
    run_id: str,
    source_table: str,
    destination_table: str,
    mode: str,
    status: str,
    rows_synced: int | None,
    batches: int | None,
    started_at: datetime,
    finished_at: datetime | None,
    error_message: str | None = None,
) -> None:
    sql = """
    INSERT INTO sync_audit_log (
        run_id, source_table, destination_table, mode, status,
        rows_synced, batches, error_message, started_at, finished_at
    ) VALUES (
        :run_id, :source_table, :destination_table, :mode, :status,
        :rows_synced, :batches, :error_message, :started_at, :finished_at
    )
    """
    params = {
        "run_id": run_id,
        "source_table": source_table,
        "destination_table": destination_table,
        "mode": mode,
        "status": status,
        "rows_synced": rows_synced,
        "batches": batches,
        "error_message": error_message,
        "started_at": started_at,
        "finished_at": finished_at,
    }

    with engine.connect() as connection:
        logger.info("Writing audit record", extra={"run_id": run_id, "status": status})
        connection.execute(text(sql), params)
        connection.commit()
