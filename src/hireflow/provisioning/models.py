"""Provisioning results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from hireflow.errors import HireflowError
from hireflow.state import WorkflowRecord
from hireflow.workflow import TemplateName


@dataclass
class WorkflowInstance:
    """A template instantiated on the engine for one user."""

    remote_id: str
    user_id: str
    template: TemplateName
    active: bool = False
    created_at: datetime | None = None
    workflow_name: str | None = None

    @classmethod
    def from_record(cls, record: WorkflowRecord) -> WorkflowInstance:
        return cls(
            remote_id=record.remote_id,
            user_id=record.user_id,
            template=TemplateName(record.template_name),
            active=record.active,
            created_at=record.created_at,
            workflow_name=record.workflow_name,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.remote_id,
            "userId": self.user_id,
            "template": self.template.value,
            "name": self.workflow_name,
            "active": self.active,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class OutcomeStatus(str, Enum):
    """What happened to one template during a provisioning call."""

    CREATED = "created"
    EXISTING = "existing"  # already recorded, nothing sent
    ADOPTED = "adopted"  # found on the engine after an undetermined create
    IN_PROGRESS = "in_progress"  # another worker holds the reservation
    FAILED = "failed"


@dataclass
class TemplateOutcome:
    template: TemplateName
    status: OutcomeStatus
    instance: WorkflowInstance | None = None
    error: str | None = None
    message: str | None = None

    @classmethod
    def failed(cls, template: TemplateName, exc: HireflowError) -> TemplateOutcome:
        return cls(
            template=template, status=OutcomeStatus.FAILED, error=exc.code, message=exc.message
        )

    @property
    def ok(self) -> bool:
        return self.instance is not None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"template": self.template.value, "status": self.status.value}
        if self.instance is not None:
            result["workflowId"] = self.instance.remote_id
        if self.error:
            result["error"] = self.error
            result["message"] = self.message
        return result


@dataclass
class ProvisioningReport:
    """Per-template outcomes of a provisioning call, in creation order."""

    user_id: str
    outcomes: list[TemplateOutcome] = field(default_factory=list)

    @property
    def instances(self) -> list[WorkflowInstance]:
        return [o.instance for o in self.outcomes if o.instance is not None]

    @property
    def failed(self) -> list[TemplateOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.FAILED]

    @property
    def pending(self) -> list[TemplateOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.IN_PROGRESS]

    @property
    def is_complete(self) -> bool:
        """True when every template has a workflow."""
        return all(o.ok for o in self.outcomes)

    def status_of(self, template: TemplateName | str) -> OutcomeStatus | None:
        key = TemplateName(template)
        for outcome in self.outcomes:
            if outcome.template == key:
                return outcome.status
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "success": self.is_complete,
            "workflows": [o.to_dict() for o in self.outcomes],
        }


class DriftStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    MALFORMED = "malformed"
    UNREACHABLE = "unreachable"


@dataclass
class DriftEntry:
    """Comparison of one recorded workflow against the engine."""

    template: TemplateName
    remote_id: str
    status: DriftStatus
    detail: str | None = None
