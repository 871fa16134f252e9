"""
Cloud Spanner Database Admin client with long-running operation tracking.
"""

from admin_client import DatabaseAdminClient
from clients import SpannerAdminRestClient
from config import AdminConfig, PollingSettings
from errors import AdminError, ErrorCode, ServiceError
from log_utils import setup_logging
from models import Backup, BackupState, Database, DatabaseState, Instance
from operations import Operation, OperationEntry, OperationState, RestoreDatabaseOperation
from resource_ids import BackupId, DatabaseId, InstanceId

__all__ = [
    "DatabaseAdminClient",
    "SpannerAdminRestClient",
    "AdminConfig",
    "PollingSettings",
    "AdminError",
    "ErrorCode",
    "ServiceError",
    "setup_logging",
    "Backup",
    "BackupState",
    "Database",
    "DatabaseState",
    "Instance",
    "Operation",
    "OperationEntry",
    "OperationState",
    "RestoreDatabaseOperation",
    "BackupId",
    "DatabaseId",
    "InstanceId",
]
