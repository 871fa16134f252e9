"""
Data models for Spanner databases and backups.

Database and Backup are snapshots of server state bound to the admin client
that produced them. Their methods forward to that client with their own
identity filled in; none of them mutate the snapshot, so anything that
changes server state returns a new snapshot or an operation handle.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from errors import InvalidArgumentError
from resource_ids import BackupId, DatabaseId, InstanceId
from timeutil import format_timestamp, parse_timestamp


class DatabaseState(Enum):
    UNSPECIFIED = "UNSPECIFIED"
    CREATING = "CREATING"
    READY = "READY"

    @classmethod
    def from_api(cls, value: Optional[str]) -> "DatabaseState":
        value = str(value or "").upper()
        if value in ("READY", "READY_OPTIMIZING"):
            return cls.READY
        if value == "CREATING":
            return cls.CREATING
        return cls.UNSPECIFIED


class BackupState(Enum):
    UNSPECIFIED = "UNSPECIFIED"
    CREATING = "CREATING"
    READY = "READY"

    @classmethod
    def from_api(cls, value: Optional[str]) -> "BackupState":
        value = str(value or "").upper()
        if value in ("READY", "CREATING"):
            return cls(value)
        return cls.UNSPECIFIED


def scoped_filter(scope: str, filter_: Optional[str]) -> str:
    """AND a resource scope onto an optional caller filter."""
    if not filter_:
        return scope
    return f"({scope}) AND ({filter_})"


@dataclass(frozen=True)
class Instance:
    """Handle to a Spanner instance for database and backup administration."""

    id: InstanceId
    client: Any = field(default=None, compare=False, repr=False)

    def database(self, database_id: str) -> "Database":
        return self.client.database(self.id.instance, database_id)

    def create_database(self, database_id: str, statements: Optional[List[str]] = None):
        """Create a database in this instance; returns the create operation."""
        return self.client.create_database(self.id.instance, database_id, statements)

    def list_databases(self, page_size: Optional[int] = None):
        return self.client.list_databases(self.id.instance, page_size)

    def list_backups(
        self, filter_: Optional[str] = None, page_size: Optional[int] = None
    ):
        return self.client.list_backups(self.id.instance, filter_, page_size)

    def list_database_operations(
        self, filter_: Optional[str] = None, page_size: Optional[int] = None
    ):
        """List database operations in this instance; the filter is sent verbatim."""
        return self.client.list_database_operations(self.id.instance, filter_, page_size)

    def list_backup_operations(
        self, filter_: Optional[str] = None, page_size: Optional[int] = None
    ):
        return self.client.list_backup_operations(self.id.instance, filter_, page_size)


@dataclass(frozen=True)
class Database:
    """Snapshot of a Spanner database."""

    id: DatabaseId
    state: DatabaseState = DatabaseState.UNSPECIFIED
    create_time: Optional[datetime] = None
    restored_from: Optional[str] = None  # backup name, set for restored databases
    client: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def from_resource(cls, client: Any, data: Dict) -> "Database":
        restore_info = data.get("restoreInfo") or {}
        backup_info = restore_info.get("backupInfo") or {}
        return cls(
            id=DatabaseId.of(data["name"]),
            state=DatabaseState.from_api(data.get("state")),
            create_time=parse_timestamp(data.get("createTime")),
            restored_from=backup_info.get("backup") or None,
            client=client,
        )

    def reload(self) -> "Database":
        """Fetch a fresh snapshot of this database."""
        return self.client.get_database(self.id.instance, self.id.database)

    def exists(self) -> bool:
        return self.client.database_exists(self.id.instance, self.id.database)

    def drop(self) -> None:
        self.client.drop_database(self.id.instance, self.id.database)

    def get_ddl(self) -> List[str]:
        return self.client.get_database_ddl(self.id.instance, self.id.database)

    def update_ddl(self, statements: List[str], operation_id: Optional[str] = None):
        """Apply DDL statements; returns the update operation."""
        return self.client.update_database_ddl(
            self.id.instance, self.id.database, statements, operation_id
        )

    def backup(self, backup_id: str, expire_time: datetime):
        """Start a backup of this database; returns the create-backup operation."""
        return self.client.create_backup(
            self.id.instance, backup_id, self.id.database, expire_time
        )

    def list_database_operations(
        self, filter_: Optional[str] = None, page_size: Optional[int] = None
    ):
        """List operations on this database within its instance."""
        return self.client.list_database_operations(
            self.id.instance,
            scoped_filter(f"name:databases/{self.id.database}", filter_),
            page_size,
        )

    def to_dict(self) -> Dict:
        return {
            "name": self.id.name,
            "state": self.state.value,
            "create_time": format_timestamp(self.create_time),
            "restored_from": self.restored_from,
        }


@dataclass(frozen=True)
class Backup:
    """
    Snapshot of a Spanner backup.

    expire_time is required; the server rejects backups without one.
    create_time and size_bytes are only meaningful once state is READY.
    """

    id: BackupId
    expire_time: datetime
    database: Optional[DatabaseId] = None
    state: BackupState = BackupState.UNSPECIFIED
    create_time: Optional[datetime] = None
    size_bytes: int = 0
    client: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.expire_time is None:
            raise InvalidArgumentError(f"backup {self.id.name} has no expire time")

    @classmethod
    def from_resource(cls, client: Any, data: Dict) -> "Backup":
        database = data.get("database")
        return cls(
            id=BackupId.of(data["name"]),
            expire_time=parse_timestamp(data.get("expireTime")),
            database=DatabaseId.of(database) if database else None,
            state=BackupState.from_api(data.get("state")),
            create_time=parse_timestamp(data.get("createTime")),
            size_bytes=int(data.get("sizeBytes", 0) or 0),
            client=client,
        )

    def to_resource(self) -> Dict:
        """Request body used when creating this backup."""
        body = {"expireTime": format_timestamp(self.expire_time)}
        if self.database is not None:
            body["database"] = self.database.name
        return body

    def is_ready(self) -> bool:
        return self.state is BackupState.READY

    def with_expire_time(self, expire_time: datetime) -> "Backup":
        """Return a copy of this snapshot with a different expire time."""
        return dataclasses.replace(self, expire_time=expire_time)

    def create(self):
        """Create this backup on the server; returns the create-backup operation."""
        if self.database is None:
            raise InvalidArgumentError(f"backup {self.id.name} has no source database")
        return self.client.create_backup(
            self.id.instance, self.id.backup, self.database.database, self.expire_time
        )

    def exists(self) -> bool:
        return self.client.backup_exists(self.id.instance, self.id.backup)

    def reload(self) -> "Backup":
        """Fetch a fresh snapshot of this backup."""
        return self.client.get_backup(self.id.instance, self.id.backup)

    def delete(self) -> None:
        self.client.delete_backup(self.id.instance, self.id.backup)

    def update_expire_time(self) -> "Backup":
        """Push this snapshot's expire time to the server; returns the updated snapshot."""
        return self.client.update_backup(
            self.id.instance, self.id.backup, self.expire_time
        )

    def restore(self, target: DatabaseId):
        """Restore this backup into target; returns the restore operation."""
        return self.client.restore_database(
            self.id.instance, self.id.backup, target.instance, target.database
        )

    def list_backup_operations(
        self, filter_: Optional[str] = None, page_size: Optional[int] = None
    ):
        """List operations on this backup within its instance."""
        return self.client.list_backup_operations(
            self.id.instance,
            scoped_filter(f"name:backups/{self.id.backup}", filter_),
            page_size,
        )

    def to_dict(self) -> Dict:
        return {
            "name": self.id.name,
            "database": self.database.name if self.database else None,
            "state": self.state.value,
            "expire_time": format_timestamp(self.expire_time),
            "create_time": format_timestamp(self.create_time),
            "size_bytes": self.size_bytes,
        }
