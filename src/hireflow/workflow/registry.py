"""Workflow template registry.

Holds the canonical, user-independent workflow templates instantiated for
every user. Templates are loaded once per process and never mutated.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import yaml

from hireflow.errors import MalformedGraph, TemplateError, UnknownTemplate

from .graph_models import WorkflowGraph, parse_workflow, validate_workflow
from .parameters import GMAIL_NODE, GOOGLE_CALENDAR_NODE, WEBHOOK_NODE

if TYPE_CHECKING:
    from hireflow.engine import EngineClient

logger = logging.getLogger(__name__)

PACKAGED_TEMPLATES_DIR = Path(__file__).parent / "templates"

# Namespace for deterministic per-user webhook ids
_WEBHOOK_NAMESPACE = uuid.UUID("5b8e3c36-8a3f-4d0c-9a57-1f0c1de2b7a4")


class TemplateName(str, Enum):
    """Logical names of the workflow families provisioned per user."""

    MEETING_BOT = "meeting-bot"
    BUSY_SLOTS = "busy-slots"
    EXTEND_MEETING = "extend-meeting"
    CV_PROCESSING = "cv-processing"


# Creation order; partial-failure reports follow it
TEMPLATE_ORDER: tuple[TemplateName, ...] = (
    TemplateName.MEETING_BOT,
    TemplateName.BUSY_SLOTS,
    TemplateName.EXTEND_MEETING,
    TemplateName.CV_PROCESSING,
)


def _credentials_for(node_type: str, user_id: str, user_email: str) -> dict | None:
    """Per-user credential reference for a node type."""
    if node_type == GMAIL_NODE:
        return {"gmailOAuth2": {"id": f"gmail-{user_id}", "name": f"Gmail - {user_email}"}}
    if node_type == GOOGLE_CALENDAR_NODE:
        return {
            "googleCalendarOAuth2Api": {
                "id": f"calendar-{user_id}",
                "name": f"Google Calendar - {user_email}",
            }
        }
    return None


def workflow_name_for(display_name: str, user_id: str) -> str:
    """Engine-side name of a user's workflow; also the reconciliation lookup key."""
    return f"Workflow for User {user_id} - {display_name}"


@dataclass(frozen=True)
class WorkflowTemplate:
    """A canonical workflow definition for one workflow family."""

    name: TemplateName
    graph: WorkflowGraph

    @property
    def display_name(self) -> str:
        return self.graph.name

    def workflow_name_for(self, user_id: str) -> str:
        return workflow_name_for(self.display_name, user_id)

    def instantiate(self, user_id: str, user_email: str) -> WorkflowGraph:
        """Deep-copy the template and bind it to one user.

        Node ids get the user id as suffix, credential references point at the
        user's credentials, and webhook triggers get a per-user webhook id.
        """
        graph = self.graph.copy()
        graph.name = self.workflow_name_for(user_id)
        # Remote bookkeeping of the canonical workflow must not leak into copies
        for key in ("id", "active", "createdAt", "updatedAt", "versionId", "tags"):
            graph.extra.pop(key, None)

        for node in graph.nodes:
            node.id = f"{node.id}-{user_id}"
            credentials = _credentials_for(node.type, user_id, user_email)
            if credentials is not None:
                node.credentials = credentials
            if node.type == WEBHOOK_NODE:
                node.extra["webhookId"] = str(
                    uuid.uuid5(_WEBHOOK_NAMESPACE, f"{user_id}:{self.name.value}")
                )

        validate_workflow(graph)
        return graph


class TemplateRegistry:
    """Immutable lookup of workflow templates by logical name."""

    def __init__(self, templates: Iterable[WorkflowTemplate]):
        by_name: dict[TemplateName, WorkflowTemplate] = {}
        for template in templates:
            if template.name in by_name:
                raise TemplateError(
                    f"Template {template.name.value!r} registered twice",
                    {"name": template.name.value},
                )
            validate_workflow(template.graph)
            by_name[template.name] = template
        self._templates: Mapping[TemplateName, WorkflowTemplate] = MappingProxyType(by_name)

    def get(self, name: TemplateName | str) -> WorkflowTemplate:
        """Get a template by logical name.

        Raises:
            UnknownTemplate: If no template is registered under *name*
        """
        try:
            key = TemplateName(name)
        except ValueError:
            raise UnknownTemplate(f"Unknown workflow template: {name!r}", name=str(name))
        template = self._templates.get(key)
        if template is None:
            raise UnknownTemplate(f"Template {key.value!r} is not registered", name=key.value)
        return template

    def all(self) -> list[tuple[TemplateName, WorkflowTemplate]]:
        """All templates in creation order."""
        return [(name, self._templates[name]) for name in TEMPLATE_ORDER if name in self._templates]

    def names(self) -> list[TemplateName]:
        return [name for name, _ in self.all()]

    def __contains__(self, name: object) -> bool:
        try:
            return TemplateName(name) in self._templates
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._templates)

    @classmethod
    def from_directory(cls, directory: Path, require_all: bool = True) -> TemplateRegistry:
        """Load every ``*.yaml`` template in *directory*.

        Each file holds ``template: <logical name>`` and ``workflow: <graph>``.

        Raises:
            TemplateError: Unreadable file, unknown logical name, or (with
                ``require_all``) a missing workflow family
            MalformedGraph: A template graph is invalid
        """
        templates = []
        for path in sorted(Path(directory).glob("*.yaml")):
            templates.append(_load_template_file(path))

        registry = cls(templates)
        if require_all:
            missing = [name.value for name in TEMPLATE_ORDER if name not in registry]
            if missing:
                raise TemplateError(
                    f"Template directory {directory} is missing: {', '.join(missing)}",
                    {"missing": missing},
                )
        logger.info("Loaded %d workflow templates from %s", len(registry), directory)
        return registry

    @classmethod
    async def from_engine(
        cls, client: EngineClient, template_ids: Mapping[TemplateName | str, str]
    ) -> TemplateRegistry:
        """Build a registry from canonical workflows hosted on the engine.

        Fetches are spaced by the client's call sequencer.
        """
        names = [TemplateName(name) for name in template_ids]
        graphs = await client.fetch_workflows([template_ids[name] for name in template_ids])
        logger.info("Fetched %d canonical templates from the engine", len(graphs))
        return cls(WorkflowTemplate(name=name, graph=graph) for name, graph in zip(names, graphs))


def _load_template_file(path: Path) -> WorkflowTemplate:
    try:
        with open(path, encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise TemplateError(f"Cannot read template file {path}: {e}", {"path": str(path)})

    if not isinstance(data, dict) or "template" not in data or "workflow" not in data:
        raise TemplateError(
            f"Template file {path} must define 'template' and 'workflow'",
            {"path": str(path)},
        )
    try:
        name = TemplateName(data["template"])
    except ValueError:
        raise UnknownTemplate(
            f"Template file {path} names unknown template {data['template']!r}",
            name=str(data["template"]),
        )
    try:
        graph = parse_workflow(data["workflow"])
    except MalformedGraph as e:
        e.details.setdefault("path", str(path))
        raise
    return WorkflowTemplate(name=name, graph=graph)


@lru_cache
def get_registry() -> TemplateRegistry:
    """Get the process-wide template registry.

    Loaded on first use from ``TEMPLATES_DIR`` or the packaged templates.
    """
    from hireflow.config import get_settings

    directory = get_settings().templates_dir or PACKAGED_TEMPLATES_DIR
    return TemplateRegistry.from_directory(directory)


def reset_registry() -> None:
    """Drop the cached registry. Useful for testing."""
    get_registry.cache_clear()
