"""Console entry point for the Spanner database admin CLI."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from admin_client import DatabaseAdminClient
from clients import SpannerAdminRestClient
from config import AdminConfig
from errors import AdminError
from log_utils import setup_logging
from operations import Operation
from timeutil import parse_timestamp

logger = logging.getLogger(__name__)


def _timestamp_arg(value: str) -> datetime:
    try:
        return parse_timestamp(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid RFC 3339 timestamp: {value!r}") from None


def _add_expire_args(parser: argparse.ArgumentParser, required: bool = False) -> None:
    group = parser.add_mutually_exclusive_group(required=required)
    group.add_argument(
        "--expire-time",
        type=_timestamp_arg,
        metavar="RFC3339",
        help="Absolute backup expire time",
    )
    group.add_argument(
        "--expire-days",
        type=float,
        default=None if required else 7.0,
        metavar="DAYS",
        help="Expire the backup this many days from now"
        + ("" if required else " (default: 7)"),
    )


def _add_list_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--filter", dest="filter_", help="Server-side filter expression, passed verbatim"
    )
    parser.add_argument("--page-size", type=int, default=None)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Cloud Spanner database & backup administration CLI"
    )
    parser.add_argument("--project", required=True, help="GCP project ID")
    parser.add_argument("--instance", required=True, help="Spanner instance ID")
    parser.add_argument("--endpoint", default="https://spanner.googleapis.com/v1")
    parser.add_argument(
        "--timeout",
        type=int,
        default=7200,
        help="Maximum seconds to wait for an operation (default: 7200)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=5.0,
        help="Initial delay between operation polls (default: 5)",
    )
    parser.add_argument("--max-poll-interval", type=float, default=45.0)
    parser.add_argument("--request-timeout", type=int, default=60)
    parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Print the operation name instead of waiting for it",
    )
    parser.add_argument("--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-database", help="Create a database")
    p.add_argument("database")
    p.add_argument("--statement", action="append", default=[], dest="statements")
    p.set_defaults(func=_create_database)

    p = sub.add_parser("get-database", help="Show a database")
    p.add_argument("database")
    p.set_defaults(func=_get_database)

    p = sub.add_parser("update-ddl", help="Apply DDL statements to a database")
    p.add_argument("database")
    p.add_argument(
        "--statement", action="append", required=True, dest="statements"
    )
    p.add_argument("--operation-id", default=None)
    p.set_defaults(func=_update_ddl)

    p = sub.add_parser("create-backup", help="Back up a database")
    p.add_argument("backup")
    p.add_argument("--database", required=True)
    _add_expire_args(p)
    p.set_defaults(func=_create_backup)

    p = sub.add_parser("get-backup", help="Show a backup")
    p.add_argument("backup")
    p.set_defaults(func=_get_backup)

    p = sub.add_parser("update-backup", help="Change a backup's expire time")
    p.add_argument("backup")
    _add_expire_args(p, required=True)
    p.set_defaults(func=_update_backup)

    p = sub.add_parser("delete-backup", help="Delete a backup")
    p.add_argument("backup")
    p.set_defaults(func=_delete_backup)

    p = sub.add_parser("restore-database", help="Restore a backup into a new database")
    p.add_argument("backup")
    p.add_argument("target_database")
    p.add_argument("--target-instance", default=None)
    p.set_defaults(func=_restore_database)

    p = sub.add_parser("list-backups", help="List backups")
    _add_list_args(p)
    p.set_defaults(func=_list_backups)

    p = sub.add_parser("list-database-operations", help="List database operations")
    _add_list_args(p)
    p.set_defaults(func=_list_database_operations)

    p = sub.add_parser("list-backup-operations", help="List backup operations")
    _add_list_args(p)
    p.set_defaults(func=_list_backup_operations)

    p = sub.add_parser("cancel-operation", help="Request cancellation of an operation")
    p.add_argument("name")
    p.set_defaults(func=_cancel_operation)

    return parser


def _expire_time(args) -> datetime:
    if args.expire_time:
        return args.expire_time
    return datetime.now(timezone.utc) + timedelta(days=args.expire_days)


def _finish(op: Operation, args) -> Dict:
    if args.no_wait:
        return {"operation": op.name, "state": op.state.value}
    result = op.result()
    if result is None:
        return {"operation": op.name, "state": op.state.value}
    return result.to_dict()


def _create_database(client: DatabaseAdminClient, args) -> Dict:
    op = client.create_database(args.instance, args.database, args.statements)
    return _finish(op, args)


def _get_database(client: DatabaseAdminClient, args) -> Dict:
    return client.get_database(args.instance, args.database).to_dict()


def _update_ddl(client: DatabaseAdminClient, args) -> Dict:
    op = client.update_database_ddl(
        args.instance, args.database, args.statements, args.operation_id
    )
    return _finish(op, args)


def _create_backup(client: DatabaseAdminClient, args) -> Dict:
    op = client.create_backup(
        args.instance, args.backup, args.database, _expire_time(args)
    )
    return _finish(op, args)


def _get_backup(client: DatabaseAdminClient, args) -> Dict:
    return client.get_backup(args.instance, args.backup).to_dict()


def _update_backup(client: DatabaseAdminClient, args) -> Dict:
    return client.update_backup(args.instance, args.backup, _expire_time(args)).to_dict()


def _delete_backup(client: DatabaseAdminClient, args) -> Dict:
    client.delete_backup(args.instance, args.backup)
    return {"deleted": args.backup}


def _restore_database(client: DatabaseAdminClient, args) -> Dict:
    op = client.restore_database(
        args.instance,
        args.backup,
        args.target_instance or args.instance,
        args.target_database,
    )
    return _finish(op, args)


def _list_backups(client: DatabaseAdminClient, args) -> List[Dict]:
    pager = client.list_backups(args.instance, args.filter_, args.page_size)
    return [b.to_dict() for b in pager]


def _list_database_operations(client: DatabaseAdminClient, args) -> List[Dict]:
    pager = client.list_database_operations(args.instance, args.filter_, args.page_size)
    return [op.to_dict() for op in pager]


def _list_backup_operations(client: DatabaseAdminClient, args) -> List[Dict]:
    pager = client.list_backup_operations(args.instance, args.filter_, args.page_size)
    return [op.to_dict() for op in pager]


def _cancel_operation(client: DatabaseAdminClient, args) -> Dict:
    client.cancel_operation(args.name)
    return {"cancel_requested": args.name}


def build_client(config: AdminConfig) -> DatabaseAdminClient:
    """Create an admin client over the REST transport."""
    transport = SpannerAdminRestClient(
        endpoint=config.endpoint, timeout_s=config.request_timeout
    )
    return DatabaseAdminClient(transport, config.project_id, polling=config.polling)


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    setup_logging(verbose=args.verbose)
    config = AdminConfig.from_args(args)
    client = build_client(config)

    try:
        output = args.func(client, args)
    except AdminError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    print(json.dumps(output, indent=2))
    return 0
