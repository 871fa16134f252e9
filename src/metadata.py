"""
Typed metadata for database admin long-running operations.

Operation metadata arrives as a JSON envelope tagged with an ``@type`` URL.
Each schema class below declares the URL it accepts; unpacking an envelope
against a different schema raises InvalidMetadataTypeError.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Type, TypeVar

from errors import InvalidMetadataTypeError
from timeutil import parse_timestamp

TYPE_PREFIX = "type.googleapis.com/google.spanner.admin.database.v1."

M = TypeVar("M", bound="OperationMetadata")


@dataclass
class OperationProgress:
    """Progress of a backup, restore or optimize operation."""

    progress_percent: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "OperationProgress":
        data = data or {}
        return cls(
            progress_percent=int(data.get("progressPercent", 0)),
            start_time=parse_timestamp(data.get("startTime")),
            end_time=parse_timestamp(data.get("endTime")),
        )


class OperationMetadata:
    """Base class for metadata schemas."""

    TYPE_URL = ""

    @classmethod
    def from_dict(cls: Type[M], data: Dict) -> M:
        raise NotImplementedError


@dataclass
class CreateDatabaseMetadata(OperationMetadata):
    TYPE_URL = TYPE_PREFIX + "CreateDatabaseMetadata"

    database: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "CreateDatabaseMetadata":
        return cls(database=data.get("database", ""))


@dataclass
class UpdateDatabaseDdlMetadata(OperationMetadata):
    TYPE_URL = TYPE_PREFIX + "UpdateDatabaseDdlMetadata"

    database: str = ""
    statements: List[str] = field(default_factory=list)
    commit_timestamps: List[datetime] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict) -> "UpdateDatabaseDdlMetadata":
        return cls(
            database=data.get("database", ""),
            statements=list(data.get("statements", [])),
            commit_timestamps=[
                parse_timestamp(ts) for ts in data.get("commitTimestamps", [])
            ],
        )


@dataclass
class CreateBackupMetadata(OperationMetadata):
    TYPE_URL = TYPE_PREFIX + "CreateBackupMetadata"

    name: str = ""
    database: str = ""
    progress: OperationProgress = field(default_factory=OperationProgress)
    cancel_time: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "CreateBackupMetadata":
        return cls(
            name=data.get("name", ""),
            database=data.get("database", ""),
            progress=OperationProgress.from_dict(data.get("progress")),
            cancel_time=parse_timestamp(data.get("cancelTime")),
        )


@dataclass
class RestoreDatabaseMetadata(OperationMetadata):
    TYPE_URL = TYPE_PREFIX + "RestoreDatabaseMetadata"

    name: str = ""
    source_type: str = "BACKUP"
    backup: str = ""
    progress: OperationProgress = field(default_factory=OperationProgress)
    cancel_time: Optional[datetime] = None
    # Set once the restore finishes and the server has chained an optimize step
    optimize_database_operation_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "RestoreDatabaseMetadata":
        backup_info = data.get("backupInfo") or {}
        return cls(
            name=data.get("name", ""),
            source_type=data.get("sourceType", "BACKUP"),
            backup=backup_info.get("backup", ""),
            progress=OperationProgress.from_dict(data.get("progress")),
            cancel_time=parse_timestamp(data.get("cancelTime")),
            optimize_database_operation_name=data.get(
                "optimizeDatabaseOperationName", ""
            ),
        )


@dataclass
class OptimizeRestoredDatabaseMetadata(OperationMetadata):
    TYPE_URL = TYPE_PREFIX + "OptimizeRestoredDatabaseMetadata"

    name: str = ""
    progress: OperationProgress = field(default_factory=OperationProgress)

    @classmethod
    def from_dict(cls, data: Dict) -> "OptimizeRestoredDatabaseMetadata":
        return cls(
            name=data.get("name", ""),
            progress=OperationProgress.from_dict(data.get("progress")),
        )


def type_url_of(envelope: Optional[Dict]) -> Optional[str]:
    """Return the ``@type`` tag of an envelope, if any."""
    if not envelope:
        return None
    return envelope.get("@type")


def unpack(envelope: Optional[Dict], metadata_type: Type[M]) -> M:
    """
    Decode a metadata envelope as the given schema.

    Args:
        envelope: JSON envelope with an ``@type`` key
        metadata_type: Expected OperationMetadata subclass

    Returns:
        Decoded metadata instance

    Raises:
        InvalidMetadataTypeError: If the envelope carries a different type
    """
    actual = type_url_of(envelope)
    if actual != metadata_type.TYPE_URL:
        raise InvalidMetadataTypeError(metadata_type.TYPE_URL, actual)
    return metadata_type.from_dict(envelope)
