"""
Resource identifiers for Spanner instances, databases and backups.
"""

import re
from dataclasses import dataclass

from errors import InvalidArgumentError, MalformedIdentifierError

_INSTANCE_RE = re.compile(r"^projects/([^/]+)/instances/([^/]+)$")
_DATABASE_RE = re.compile(r"^projects/([^/]+)/instances/([^/]+)/databases/([^/]+)$")
_BACKUP_RE = re.compile(r"^projects/([^/]+)/instances/([^/]+)/backups/([^/]+)$")

_ID_RE = re.compile(r"^[a-z][a-z0-9_\-]*[a-z0-9]$")
DATABASE_ID_MAX_LENGTH = 30
BACKUP_ID_MAX_LENGTH = 60


def _require_segments(kind: str, **segments: str) -> None:
    for key, value in segments.items():
        if not isinstance(value, str) or not value or "/" in value:
            raise MalformedIdentifierError(f"{kind}: invalid {key} {value!r}")


def _match(pattern: "re.Pattern", kind: str, name: str) -> tuple:
    m = pattern.match(name) if isinstance(name, str) else None
    if not m:
        raise MalformedIdentifierError(f"not a valid {kind} name: {name!r}")
    return m.groups()


def validate_database_id(database_id: str) -> None:
    """Raise InvalidArgumentError if database_id breaks the naming rules."""
    if (
        not isinstance(database_id, str)
        or not 2 <= len(database_id) <= DATABASE_ID_MAX_LENGTH
        or not _ID_RE.match(database_id)
    ):
        raise InvalidArgumentError(f"invalid database id: {database_id!r}")


def validate_backup_id(backup_id: str) -> None:
    """Raise InvalidArgumentError if backup_id breaks the naming rules."""
    if (
        not isinstance(backup_id, str)
        or not 2 <= len(backup_id) <= BACKUP_ID_MAX_LENGTH
        or not _ID_RE.match(backup_id)
    ):
        raise InvalidArgumentError(f"invalid backup id: {backup_id!r}")


@dataclass(frozen=True)
class InstanceId:
    """Identifies a Spanner instance."""

    project: str
    instance: str

    def __post_init__(self):
        _require_segments("InstanceId", project=self.project, instance=self.instance)

    @property
    def name(self) -> str:
        return f"projects/{self.project}/instances/{self.instance}"

    @classmethod
    def of(cls, name: str) -> "InstanceId":
        return cls(*_match(_INSTANCE_RE, "instance", name))

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class DatabaseId:
    """Identifies a database: projects/{project}/instances/{instance}/databases/{database}."""

    project: str
    instance: str
    database: str

    def __post_init__(self):
        _require_segments(
            "DatabaseId",
            project=self.project,
            instance=self.instance,
            database=self.database,
        )

    @property
    def instance_id(self) -> InstanceId:
        return InstanceId(self.project, self.instance)

    @property
    def name(self) -> str:
        return f"{self.instance_id.name}/databases/{self.database}"

    @classmethod
    def of(cls, name: str) -> "DatabaseId":
        """
        Parse a canonical database name.

        Raises:
            MalformedIdentifierError: If name does not match the pattern exactly
        """
        return cls(*_match(_DATABASE_RE, "database", name))

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class BackupId:
    """Identifies a backup: projects/{project}/instances/{instance}/backups/{backup}."""

    project: str
    instance: str
    backup: str

    def __post_init__(self):
        _require_segments(
            "BackupId",
            project=self.project,
            instance=self.instance,
            backup=self.backup,
        )

    @property
    def instance_id(self) -> InstanceId:
        return InstanceId(self.project, self.instance)

    @property
    def name(self) -> str:
        return f"{self.instance_id.name}/backups/{self.backup}"

    @classmethod
    def of(cls, name: str) -> "BackupId":
        """
        Parse a canonical backup name.

        Raises:
            MalformedIdentifierError: If name does not match the pattern exactly
        """
        return cls(*_match(_BACKUP_RE, "backup", name))

    def __str__(self) -> str:
        return self.name
