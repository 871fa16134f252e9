"""
Database admin client for Cloud Spanner.

Entry point for database and backup administration. Calls that start
server-side work return Operation handles; everything else is a single
synchronous request.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

import transport as rpc
from config import PollingSettings
from errors import ErrorCode, InvalidArgumentError, ServiceError
from listing import Pager
from metadata import (
    CreateBackupMetadata,
    CreateDatabaseMetadata,
    OptimizeRestoredDatabaseMetadata,
    RestoreDatabaseMetadata,
    UpdateDatabaseDdlMetadata,
)
from models import Backup, Database, Instance
from operations import Operation, OperationEntry, RestoreDatabaseOperation
from resource_ids import (
    BackupId,
    DatabaseId,
    InstanceId,
    validate_backup_id,
    validate_database_id,
)
from timeutil import format_timestamp

logger = logging.getLogger(__name__)


def _validate_statements(statements: List[str], allow_empty: bool = False) -> List[str]:
    if isinstance(statements, str) or statements is None:
        raise InvalidArgumentError("statements must be a list of strings")
    statements = list(statements)
    if not statements and not allow_empty:
        raise InvalidArgumentError("at least one DDL statement is required")
    for stmt in statements:
        if not isinstance(stmt, str) or not stmt.strip():
            raise InvalidArgumentError(f"invalid DDL statement: {stmt!r}")
    return statements


class DatabaseAdminClient:
    """Client for the Spanner database admin API."""

    def __init__(
        self,
        transport: rpc.Transport,
        project_id: str,
        polling: Optional[PollingSettings] = None,
    ):
        """
        Initialize the admin client.

        Args:
            transport: RPC transport (see transport.Transport)
            project_id: GCP project ID
            polling: Backoff policy for operation handles
        """
        self.transport = transport
        self.project_id = project_id
        self.polling = polling or PollingSettings()

    def _instance(self, instance_id: str) -> InstanceId:
        return InstanceId(self.project_id, instance_id)

    def _database_id(self, instance_id: str, database_id: str) -> DatabaseId:
        return DatabaseId(self.project_id, instance_id, database_id)

    def _backup_id(self, instance_id: str, backup_id: str) -> BackupId:
        return BackupId(self.project_id, instance_id, backup_id)

    def _database_result(self, response: Dict) -> Database:
        return Database.from_resource(self, response)

    def _backup_result(self, response: Dict) -> Backup:
        return Backup.from_resource(self, response)

    def _operation(self, raw: Dict, decoder, metadata_type, cls=Operation) -> Operation:
        op = cls(
            self.transport,
            OperationEntry.from_dict(raw),
            decoder,
            metadata_type,
            self.polling,
        )
        logger.info(f"Started operation {op.name}")
        return op

    # Entity builders

    def instance(self, instance_id: str) -> Instance:
        """Build an Instance bound to this client without calling the server."""
        return Instance(id=self._instance(instance_id), client=self)

    def database(self, instance_id: str, database_id: str) -> Database:
        """Build a Database bound to this client without calling the server."""
        return Database(id=self._database_id(instance_id, database_id), client=self)

    def new_backup(
        self,
        instance_id: str,
        backup_id: str,
        database_id: Optional[str],
        expire_time: datetime,
    ) -> Backup:
        """Build a not-yet-created Backup bound to this client."""
        return Backup(
            id=self._backup_id(instance_id, backup_id),
            expire_time=expire_time,
            database=(
                self._database_id(instance_id, database_id) if database_id else None
            ),
            client=self,
        )

    # Databases

    def create_database(
        self, instance_id: str, database_id: str, statements: Optional[List[str]] = None
    ) -> Operation[Database, CreateDatabaseMetadata]:
        """
        Start creating a database.

        Args:
            instance_id: Instance to create the database in
            database_id: New database ID
            statements: Optional DDL statements run after creation

        Returns:
            Operation yielding the created Database

        Raises:
            InvalidArgumentError: If database_id or statements are malformed
        """
        validate_database_id(database_id)
        extra = _validate_statements(statements or [], allow_empty=True)
        request = {
            "parent": self._instance(instance_id).name,
            "createStatement": f"CREATE DATABASE `{database_id}`",
            "extraStatements": extra,
        }
        logger.info(f"Creating database {database_id} in {instance_id}")
        raw = self.transport.unary_call(rpc.CREATE_DATABASE, request)
        return self._operation(raw, self._database_result, CreateDatabaseMetadata)

    def get_database(self, instance_id: str, database_id: str) -> Database:
        """Fetch a database; raises ServiceError(NOT_FOUND) if absent."""
        name = self._database_id(instance_id, database_id).name
        return self._database_result(
            self.transport.unary_call(rpc.GET_DATABASE, {"name": name})
        )

    def database_exists(self, instance_id: str, database_id: str) -> bool:
        try:
            self.get_database(instance_id, database_id)
        except ServiceError as e:
            if e.code is ErrorCode.NOT_FOUND:
                return False
            raise
        return True

    def list_databases(
        self, instance_id: str, page_size: Optional[int] = None
    ) -> Pager[Database]:
        request = {"parent": self._instance(instance_id).name}
        if page_size:
            request["pageSize"] = page_size
        return self._pager(rpc.LIST_DATABASES, request, self._database_result)

    def drop_database(self, instance_id: str, database_id: str) -> None:
        name = self._database_id(instance_id, database_id).name
        logger.info(f"Dropping database {name}")
        self.transport.unary_call(rpc.DROP_DATABASE, {"database": name})

    def get_database_ddl(self, instance_id: str, database_id: str) -> List[str]:
        name = self._database_id(instance_id, database_id).name
        data = self.transport.unary_call(rpc.GET_DATABASE_DDL, {"database": name})
        return list(data.get("statements", []))

    def update_database_ddl(
        self,
        instance_id: str,
        database_id: str,
        statements: List[str],
        operation_id: Optional[str] = None,
    ) -> Operation[None, UpdateDatabaseDdlMetadata]:
        """
        Start applying DDL statements to a database.

        Args:
            instance_id: Instance of the database
            database_id: Database ID
            statements: DDL statements, applied in order
            operation_id: Optional caller-chosen operation ID

        Returns:
            Operation with no result

        Raises:
            InvalidArgumentError: If the statement list is malformed
        """
        statements = _validate_statements(statements)
        request = {
            "database": self._database_id(instance_id, database_id).name,
            "statements": statements,
        }
        if operation_id:
            request["operationId"] = operation_id
        logger.info(
            f"Updating DDL of {database_id} in {instance_id} ({len(statements)} statement(s))"
        )
        raw = self.transport.unary_call(rpc.UPDATE_DATABASE_DDL, request)
        return self._operation(raw, None, UpdateDatabaseDdlMetadata)

    # Backups

    def create_backup(
        self,
        instance_id: str,
        backup_id: str,
        database_id: str,
        expire_time: datetime,
    ) -> Operation[Backup, CreateBackupMetadata]:
        """
        Start creating a backup of a database.

        Args:
            instance_id: Instance holding both the database and the backup
            backup_id: New backup ID
            database_id: Source database ID
            expire_time: When the backup expires

        Returns:
            Operation yielding the created Backup

        Raises:
            InvalidArgumentError: If an id is malformed or expire_time is missing
        """
        validate_backup_id(backup_id)
        if not database_id:
            raise InvalidArgumentError("a source database is required")
        backup = self.new_backup(instance_id, backup_id, database_id, expire_time)
        request = {
            "parent": self._instance(instance_id).name,
            "backupId": backup_id,
            "backup": backup.to_resource(),
        }
        logger.info(f"Creating backup {backup_id} of {database_id} in {instance_id}")
        raw = self.transport.unary_call(rpc.CREATE_BACKUP, request)
        return self._operation(raw, self._backup_result, CreateBackupMetadata)

    def get_backup(self, instance_id: str, backup_id: str) -> Backup:
        """Fetch a backup; raises ServiceError(NOT_FOUND) if absent."""
        name = self._backup_id(instance_id, backup_id).name
        return self._backup_result(
            self.transport.unary_call(rpc.GET_BACKUP, {"name": name})
        )

    def backup_exists(self, instance_id: str, backup_id: str) -> bool:
        try:
            self.get_backup(instance_id, backup_id)
        except ServiceError as e:
            if e.code is ErrorCode.NOT_FOUND:
                return False
            raise
        return True

    def update_backup(
        self, instance_id: str, backup_id: str, expire_time: datetime
    ) -> Backup:
        """Change a backup's expire time; returns the updated snapshot."""
        if expire_time is None:
            raise InvalidArgumentError("expire_time is required")
        request = {
            "backup": {
                "name": self._backup_id(instance_id, backup_id).name,
                "expireTime": format_timestamp(expire_time),
            },
            "updateMask": "expireTime",
        }
        logger.info(f"Updating expire time of backup {backup_id} to {expire_time}")
        return self._backup_result(
            self.transport.unary_call(rpc.UPDATE_BACKUP, request)
        )

    def delete_backup(self, instance_id: str, backup_id: str) -> None:
        """Delete a backup; deleting a missing backup raises ServiceError(NOT_FOUND)."""
        name = self._backup_id(instance_id, backup_id).name
        logger.info(f"Deleting backup {name}")
        self.transport.unary_call(rpc.DELETE_BACKUP, {"name": name})

    def list_backups(
        self,
        instance_id: str,
        filter_: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Pager[Backup]:
        return self._pager(
            rpc.LIST_BACKUPS,
            self._list_request(instance_id, filter_, page_size),
            self._backup_result,
        )

    def restore_database(
        self,
        backup_instance_id: str,
        backup_id: str,
        target_instance_id: str,
        target_database_id: str,
    ) -> RestoreDatabaseOperation:
        """
        Start restoring a backup into a new database.

        The server chains an optimize operation after the restore; it is
        listed alongside the restore and reachable via optimize_operation().

        Returns:
            RestoreDatabaseOperation yielding the restored Database
        """
        validate_database_id(target_database_id)
        request = {
            "parent": self._instance(target_instance_id).name,
            "databaseId": target_database_id,
            "backup": self._backup_id(backup_instance_id, backup_id).name,
        }
        logger.info(
            f"Restoring backup {backup_id} into {target_instance_id}/{target_database_id}"
        )
        raw = self.transport.unary_call(rpc.RESTORE_DATABASE, request)
        return self._operation(
            raw,
            self._database_result,
            RestoreDatabaseMetadata,
            cls=RestoreDatabaseOperation,
        )

    # Operations

    def list_database_operations(
        self,
        instance_id: str,
        filter_: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Pager[OperationEntry]:
        return self._pager(
            rpc.LIST_DATABASE_OPERATIONS,
            self._list_request(instance_id, filter_, page_size),
            OperationEntry.from_dict,
        )

    def list_backup_operations(
        self,
        instance_id: str,
        filter_: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Pager[OperationEntry]:
        return self._pager(
            rpc.LIST_BACKUP_OPERATIONS,
            self._list_request(instance_id, filter_, page_size),
            OperationEntry.from_dict,
        )

    def get_operation(self, name: str) -> OperationEntry:
        """Fetch the current record of an operation by name."""
        return OperationEntry.from_dict(
            self.transport.unary_call(rpc.GET_OPERATION, {"name": name})
        )

    def resume_operation(self, name: str) -> Operation:
        """
        Attach a new handle to an existing operation.

        The result and metadata types are chosen from the operation's
        metadata type, so a wait that timed out locally can be picked up
        again later.
        """
        entry = self.get_operation(name)
        url = entry.metadata_type_url
        known = {
            CreateDatabaseMetadata.TYPE_URL: (self._database_result, CreateDatabaseMetadata, Operation),
            UpdateDatabaseDdlMetadata.TYPE_URL: (None, UpdateDatabaseDdlMetadata, Operation),
            CreateBackupMetadata.TYPE_URL: (self._backup_result, CreateBackupMetadata, Operation),
            RestoreDatabaseMetadata.TYPE_URL: (
                self._database_result,
                RestoreDatabaseMetadata,
                RestoreDatabaseOperation,
            ),
            OptimizeRestoredDatabaseMetadata.TYPE_URL: (
                None,
                OptimizeRestoredDatabaseMetadata,
                Operation,
            ),
        }
        if url not in known:
            raise InvalidArgumentError(f"unsupported operation metadata type: {url}")
        decoder, metadata_type, cls = known[url]
        return cls(self.transport, entry, decoder, metadata_type, self.polling)

    def cancel_operation(self, name: str) -> None:
        """
        Ask the server to cancel an operation.

        Returns immediately. The operation may still complete successfully.
        """
        logger.info(f"Requesting cancellation of {name}")
        self.transport.unary_call(rpc.CANCEL_OPERATION, {"name": name})

    # Listing helpers

    def _list_request(
        self, instance_id: str, filter_: Optional[str], page_size: Optional[int]
    ) -> Dict:
        request = {"parent": self._instance(instance_id).name}
        if filter_ is not None:
            request["filter"] = filter_
        if page_size:
            request["pageSize"] = page_size
        return request

    def _pager(self, method: str, request: Dict, convert) -> Pager:
        def fetch(req: Dict, page_token: Optional[str]):
            return self.transport.paged_call(method, req, page_token)

        return Pager(fetch, request, convert)
