"""Per-user workflow provisioning."""

from .models import (
    DriftEntry,
    DriftStatus,
    OutcomeStatus,
    ProvisioningReport,
    TemplateOutcome,
    WorkflowInstance,
)
from .service import ProvisioningService

__all__ = [
    "DriftEntry",
    "DriftStatus",
    "OutcomeStatus",
    "ProvisioningReport",
    "ProvisioningService",
    "TemplateOutcome",
    "WorkflowInstance",
]
