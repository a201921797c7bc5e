import argparse
import json
import os
import sys

from sqlalchemy import create_engine

from connections import close_all_connections, test_connection
from connections._config import split_list
from connections._logging import set_log_level
from connections.exceptions import SyncError
from connections.source import SQLSourceConnector, get_mysql_engine
from connections.warehouse import get_bigquery_warehouse
from sync.config import load_sync_settings
from sync.models import SyncRequest
from sync.runner import run_sync


def _build_request(args) -> SyncRequest:
    """Merge CLI options with the IGNORE_COLUMNS / ORDER_COLUMN environment fallbacks."""
    ignore_columns = args.ignore_column or split_list(os.getenv("IGNORE_COLUMNS"))
    order_column = args.order_column or os.getenv("ORDER_COLUMN")

    return SyncRequest(
        source_table=args.table_name,
        destination_table=args.bigquery_table_name,
        create_if_missing=args.create_table,
        force_recreate=args.delete_table,
        order_column=order_column,
        ignore_columns=ignore_columns,
        batch_size=args.batch_size,
    )


def cmd_test_connection(args):
    """Handle test-connection subcommand."""
    label = {"mysql": "Source (MySQL)", "bigquery": "Warehouse (BigQuery)"}[args.target]
    success = test_connection(args.target, file_path=args.config)

    print(json.dumps({"success": success, "label": label}))

    if success:
        print(f"Connection to {label} successful.", file=sys.stderr)
        sys.exit(0)

    print(f"Connection to {label} failed.", file=sys.stderr)
    sys.exit(1)


def cmd_sync(args):
    """Handle sync subcommand."""
    try:
        settings = load_sync_settings(file_path=args.config)
        request = _build_request(args)
        engine = get_mysql_engine(database=args.database_name, file_path=args.config)
        warehouse = get_bigquery_warehouse(file_path=args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    audit_engine = create_engine(settings.audit_url) if settings.audit_url else None
    source = SQLSourceConnector(engine)

    try:
        source.connect()
        result = run_sync(source, warehouse, request, settings, audit_engine=audit_engine)
    except SyncError as e:
        print(f"Sync failed: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        source.close()
        close_all_connections()
        if audit_engine is not None:
            audit_engine.dispose()

    print(json.dumps(result))

    if result["already_synced"]:
        print("Already synced!", file=sys.stderr)
    else:
        print(f"Synced! Rows synced: {result['rows_synced']}", file=sys.stderr)
    sys.exit(0)


def main():
    parser = argparse.ArgumentParser(description="Sync a MySQL table to BigQuery")
    parser.add_argument("--log-level", help="Log level for bqsync loggers (default: BQSYNC_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command", help="Subcommand to run")

    sync_parser = subparsers.add_parser("sync", help="Sync a MySQL table to BigQuery")
    sync_parser.add_argument("table_name", metavar="table-name", help="The name of the table you want to sync")
    sync_parser.add_argument(
        "-c", "--create-table", action="store_true", help="If the BigQuery table doesn't exist, create it"
    )
    sync_parser.add_argument(
        "-d", "--delete-table", action="store_true", help="Delete the BigQuery table before syncing"
    )
    sync_parser.add_argument(
        "-o",
        "--order-column",
        help="Column to order the results by, also used to find which rows still have to be synced",
    )
    sync_parser.add_argument(
        "-i",
        "--ignore-column",
        action="append",
        default=[],
        help="Ignore a column from syncing. You can use this option multiple times",
    )
    sync_parser.add_argument("--database-name", help="MySQL database name (default: DB_DATABASE_NAME)")
    sync_parser.add_argument("--bigquery-table-name", help="BigQuery table name (default: table-name)")
    sync_parser.add_argument("--batch-size", type=int, help="Rows per load job (default: 20000)")
    sync_parser.add_argument("--config", help="Path to a JSON settings file with mysql/bigquery/sync sections")

    test_parser = subparsers.add_parser("test-connection", help="Test a connection")
    test_parser.add_argument("--target", choices=["mysql", "bigquery"], required=True, help="Connection to test")
    test_parser.add_argument("--config", help="Path to a JSON settings file")

    args = parser.parse_args()

    if args.log_level:
        set_log_level(args.log_level)

    if args.command == "sync":
        cmd_sync(args)
    elif args.command == "test-connection":
        cmd_test_connection(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
