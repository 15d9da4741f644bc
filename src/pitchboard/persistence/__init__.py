from .codec import document_from_schema, roster_from_payload, schema_from_state, unwrap_response
from .gateway import BackupStore, PersistenceGateway
from .http_transport import HttpFormationTransport
from .local_transport import LocalFormationTransport
from .migrations import MigrationRunner
from .sqlite_store import FormationBackupStore, FormationRepository, server_default_schema

__all__ = [
    "BackupStore",
    "FormationBackupStore",
    "FormationRepository",
    "HttpFormationTransport",
    "LocalFormationTransport",
    "MigrationRunner",
    "PersistenceGateway",
    "document_from_schema",
    "roster_from_payload",
    "schema_from_state",
    "server_default_schema",
    "unwrap_response",
]
