"""State persistence for provisioned workflows."""

from .backends import DatabaseBackend, SQLiteBackend, create_backend
from .database import get_database, reset_database
from .workflow_records import RecordStatus, WorkflowRecord, WorkflowRecordStore

__all__ = [
    "DatabaseBackend",
    "SQLiteBackend",
    "create_backend",
    "get_database",
    "reset_database",
    "RecordStatus",
    "WorkflowRecord",
    "WorkflowRecordStore",
]
