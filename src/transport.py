"""
The RPC contract the admin client is written against.

SpannerAdminRestClient (clients.py) implements it over HTTPS; tests use an
in-memory fake. Requests and responses are plain dicts shaped like the
JSON bodies of the admin REST API.
"""

from typing import Dict, List, Optional, Protocol, Tuple

CREATE_DATABASE = "CreateDatabase"
GET_DATABASE = "GetDatabase"
LIST_DATABASES = "ListDatabases"
DROP_DATABASE = "DropDatabase"
UPDATE_DATABASE_DDL = "UpdateDatabaseDdl"
GET_DATABASE_DDL = "GetDatabaseDdl"
RESTORE_DATABASE = "RestoreDatabase"
CREATE_BACKUP = "CreateBackup"
GET_BACKUP = "GetBackup"
UPDATE_BACKUP = "UpdateBackup"
DELETE_BACKUP = "DeleteBackup"
LIST_BACKUPS = "ListBackups"
LIST_DATABASE_OPERATIONS = "ListDatabaseOperations"
LIST_BACKUP_OPERATIONS = "ListBackupOperations"
GET_OPERATION = "GetOperation"
CANCEL_OPERATION = "CancelOperation"


class Transport(Protocol):
    def unary_call(
        self, method: str, request: Dict, timeout: Optional[float] = None
    ) -> Dict:
        """Send one request; raise ServiceError on failure."""
        ...

    def paged_call(
        self, method: str, request: Dict, page_token: Optional[str] = None
    ) -> Tuple[List[Dict], Optional[str]]:
        """Fetch one page; return (items, next_page_token)."""
        ...
