"""Persistent user -> workflow mapping.

One row per (user, template). The composite primary key gives atomic
insert-if-absent, which the provisioning service uses to reserve a
template before creating it on the engine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from .backends import DatabaseBackend
from .database import get_database

logger = logging.getLogger(__name__)


class RecordStatus(str, Enum):
    """Lifecycle of a (user, template) row."""

    PENDING = "pending"  # reserved, create call in flight
    UNKNOWN = "unknown"  # create outcome undetermined, reconcile before retrying
    CREATED = "created"


@dataclass
class WorkflowRecord:
    """A persisted (user, template) row."""

    user_id: str
    template_name: str
    status: RecordStatus
    remote_id: str | None = None
    workflow_name: str | None = None
    active: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict) -> WorkflowRecord:
        return cls(
            user_id=row["user_id"],
            template_name=row["template_name"],
            status=RecordStatus(row["status"]),
            remote_id=row.get("remote_id"),
            workflow_name=row.get("workflow_name"),
            active=bool(row.get("active")),
            created_at=_parse_ts(row.get("created_at")),
            updated_at=_parse_ts(row.get("updated_at")),
        )


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class WorkflowRecordStore:
    """Stores the user -> {template: remote workflow id} mapping."""

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS user_workflows (
            user_id TEXT NOT NULL,
            template_name TEXT NOT NULL,
            remote_id TEXT,
            workflow_name TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            active INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP,
            updated_at TIMESTAMP,
            PRIMARY KEY (user_id, template_name)
        );

        CREATE INDEX IF NOT EXISTS idx_user_workflows_status
        ON user_workflows(status);
    """

    def __init__(self, backend: DatabaseBackend | None = None):
        """Initialize the store.

        Args:
            backend: Database backend (defaults to global)
        """
        self.backend = backend or get_database()
        self._init_schema()

    def _init_schema(self) -> None:
        self.backend.executescript(self.SCHEMA)

    def get_records(self, user_id: str) -> list[WorkflowRecord]:
        """Return every row for *user_id*, whatever its status."""
        rows = self.backend.fetchall(
            "SELECT * FROM user_workflows WHERE user_id = ? ORDER BY created_at, template_name",
            (user_id,),
        )
        return [WorkflowRecord.from_row(row) for row in rows]

    def get_record(self, user_id: str, template_name: str) -> WorkflowRecord | None:
        row = self.backend.fetchone(
            "SELECT * FROM user_workflows WHERE user_id = ? AND template_name = ?",
            (user_id, template_name),
        )
        return WorkflowRecord.from_row(row) if row else None

    def get_mapping(self, user_id: str) -> dict[str, str]:
        """Return ``{template_name: remote_id}`` for created rows."""
        return {
            record.template_name: record.remote_id
            for record in self.get_records(user_id)
            if record.status == RecordStatus.CREATED
        }

    def reserve(self, user_id: str, template_name: str, workflow_name: str) -> bool:
        """Atomically claim (user, template).

        Returns:
            True if this call inserted the row, False if any row already existed
        """
        now = _now()
        inserted = (
            self.backend.write(
                """
                INSERT INTO user_workflows
                    (user_id, template_name, workflow_name, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (user_id, template_name) DO NOTHING
                """,
                (user_id, template_name, workflow_name, RecordStatus.PENDING.value, now, now),
            )
            == 1
        )
        if inserted:
            logger.debug("Reserved %s for user %s", template_name, user_id)
        return inserted

    def claim(self, user_id: str, template_name: str, expected_updated_at: datetime) -> bool:
        """Take over an unresolved row, compare-and-set on its ``updated_at``.

        Used when reconciling rows left ``unknown`` or stale ``pending``; only
        one caller can win the takeover.
        """
        updated = self.backend.write(
            """
            UPDATE user_workflows
            SET status = ?, updated_at = ?
            WHERE user_id = ? AND template_name = ? AND status != ? AND updated_at = ?
            """,
            (
                RecordStatus.PENDING.value,
                _now(),
                user_id,
                template_name,
                RecordStatus.CREATED.value,
                expected_updated_at.isoformat(),
            ),
        )
        return updated == 1

    def mark_created(
        self,
        user_id: str,
        template_name: str,
        remote_id: str,
        workflow_name: str | None = None,
        active: bool = False,
    ) -> WorkflowRecord:
        """Record a successfully created (or adopted) remote workflow."""
        self.backend.write(
            """
            UPDATE user_workflows
            SET remote_id = ?, workflow_name = COALESCE(?, workflow_name),
                status = ?, active = ?, updated_at = ?
            WHERE user_id = ? AND template_name = ?
            """,
            (
                remote_id,
                workflow_name,
                RecordStatus.CREATED.value,
                int(active),
                _now(),
                user_id,
                template_name,
            ),
        )
        return self.get_record(user_id, template_name)

    def mark_unknown(self, user_id: str, template_name: str) -> None:
        """Flag a row whose create call may or may not have succeeded remotely."""
        self.backend.write(
            """
            UPDATE user_workflows SET status = ?, updated_at = ?
            WHERE user_id = ? AND template_name = ? AND status != ?
            """,
            (
                RecordStatus.UNKNOWN.value,
                _now(),
                user_id,
                template_name,
                RecordStatus.CREATED.value,
            ),
        )

    def release(self, user_id: str, template_name: str) -> None:
        """Drop an unfinished reservation so the template can be retried."""
        self.backend.write(
            """
            DELETE FROM user_workflows
            WHERE user_id = ? AND template_name = ? AND status != ?
            """,
            (user_id, template_name, RecordStatus.CREATED.value),
        )

    def set_active(self, user_id: str, template_name: str, active: bool) -> None:
        self.backend.write(
            """
            UPDATE user_workflows SET active = ?, updated_at = ?
            WHERE user_id = ? AND template_name = ?
            """,
            (int(active), _now(), user_id, template_name),
        )
