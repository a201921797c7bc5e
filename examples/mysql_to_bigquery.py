import json
import signal
import sys
import threading
from pathlib import Path

# Add the etl package to the path
ROOT = Path(__file__).resolve().parents[1]
ETL_PATH = ROOT / "etl"
if str(ETL_PATH) not in sys.path:
    sys.path.insert(0, str(ETL_PATH))

from sqlalchemy import create_engine

from connections import close_all_connections
from connections.exceptions import SyncError
from connections.source import SQLSourceConnector, get_mysql_engine
from connections.warehouse import get_bigquery_warehouse
from sync import SyncRequest, load_sync_settings, run_sync


def main():
    """
    Example: incremental sync of the MySQL "orders" table into BigQuery.

    Connection settings come from DB_* and BQ_* environment variables.
    Rows are resumed from the highest "updated_at" already in BigQuery, and
    Ctrl-C stops the run between batches or while a load job is polled.
    """
    cancel = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: cancel.set())

    settings = load_sync_settings(overrides={"batch_size": 5000})
    source = SQLSourceConnector(get_mysql_engine())
    warehouse = get_bigquery_warehouse()
    audit_engine = create_engine("sqlite:///sync_audit.db")

    request = SyncRequest(
        source_table="orders",
        create_if_missing=True,
        order_column="updated_at",
        ignore_columns=["card_number"],
    )

    try:
        source.connect()
        summary = run_sync(source, warehouse, request, settings, cancel_event=cancel, audit_engine=audit_engine)
        print(json.dumps(summary, indent=2))
    except SyncError as e:
        print(f"Sync failed: {e}")
    finally:
        source.close()
        close_all_connections()


if __name__ == "__main__":
    main()
