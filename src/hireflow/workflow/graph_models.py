"""Data models for engine workflow graphs.

The engine describes a workflow as a list of nodes plus a connection map
keyed by source node name::

    {
        "name": "Busy Slots Working",
        "nodes": [{"id": "...", "name": "Webhook", "type": "...", "parameters": {...}}],
        "connections": {
            "Webhook": {"main": [[{"node": "Google Calendar", "type": "main", "index": 0}]]}
        },
        "settings": {"executionOrder": "v1"},
        "staticData": null,
    }

Keys the models do not interpret are kept in ``extra`` so that
``serialize_workflow(parse_workflow(raw))`` is structurally equal to ``raw``.
"""

from __future__ import annotations

import copy
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from hireflow.errors import DanglingConnection, DuplicateNodeId, EmptyGraph, MalformedGraph

from .parameters import NodeParameters, parameters_for

# Keys the engine accepts on workflow creation
CREATE_KEYS = ("name", "nodes", "connections", "settings", "staticData")


@dataclass
class Node:
    """A unit of work in a workflow graph."""

    id: str
    name: str
    type: str
    parameters: NodeParameters | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def type_version(self) -> int | float | None:
        return self.extra.get("typeVersion")

    @property
    def position(self) -> list[float] | None:
        return self.extra.get("position")

    @property
    def credentials(self) -> dict[str, Any] | None:
        return self.extra.get("credentials")

    @credentials.setter
    def credentials(self, value: dict[str, Any] | None) -> None:
        if value is None:
            self.extra.pop("credentials", None)
        else:
            self.extra["credentials"] = value

    @classmethod
    def from_dict(cls, data: dict) -> Node:
        """Create a Node from the engine's JSON representation."""
        if not isinstance(data, dict):
            raise MalformedGraph(f"Node must be an object, got {type(data).__name__}")
        missing = [key for key in ("id", "name", "type") if not data.get(key)]
        if missing:
            raise MalformedGraph(
                f"Node is missing required fields: {', '.join(missing)}",
                {"node": data.get("name") or data.get("id"), "missing": missing},
            )
        parameters = data.get("parameters")
        if parameters is not None and not isinstance(parameters, dict):
            raise MalformedGraph(f"Parameters of node {data['name']!r} must be an object")

        # An explicit null stays in extra and is written back as null
        modeled = ("id", "name", "type")
        if parameters is not None:
            modeled += ("parameters",)
        extra = {
            key: copy.deepcopy(value) for key, value in data.items() if key not in modeled
        }
        return cls(
            id=data["id"],
            name=data["name"],
            type=data["type"],
            parameters=(
                parameters_for(data["type"], copy.deepcopy(parameters))
                if parameters is not None
                else None
            ),
            extra=extra,
        )

    def to_dict(self) -> dict:
        """Convert to the engine's JSON representation."""
        result: dict[str, Any] = {"id": self.id, "name": self.name, "type": self.type}
        if self.parameters is not None:
            result["parameters"] = self.parameters.to_dict()
        result.update(copy.deepcopy(self.extra))
        return result


@dataclass
class ConnectionTarget:
    """Destination of a connection: a node's input port."""

    node: str
    type: str | None = "main"
    index: int | None = 0
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> ConnectionTarget:
        if not isinstance(data, dict) or not data.get("node"):
            raise MalformedGraph(f"Connection target must name a node, got {data!r}")
        return cls(
            node=data["node"],
            type=data.get("type"),
            index=data.get("index"),
            extra={k: v for k, v in data.items() if k not in ("node", "type", "index")},
        )

    def to_dict(self) -> dict:
        # type and index are omitted when the engine left them implicit
        result: dict[str, Any] = {"node": self.node}
        if self.type is not None:
            result["type"] = self.type
        if self.index is not None:
            result["index"] = self.index
        result.update(self.extra)
        return result


@dataclass
class Connection:
    """Edges leaving one output port of a source node.

    The engine groups edges by source node, output type and output port
    index; (source, output_type, output_index) is the edge key here.
    """

    source: str
    targets: list[ConnectionTarget] = field(default_factory=list)
    output_type: str = "main"
    output_index: int = 0


def _parse_connections(raw: Any) -> tuple[list[Connection], dict[str, list[str]]]:
    """Flatten the connection map into edges plus the map's key layout.

    The layout (source -> output types) keeps sources and output types
    whose port lists are empty, which produce no edges.
    """
    if raw is None:
        return [], {}
    if not isinstance(raw, dict):
        raise MalformedGraph("Connections must be an object keyed by source node")

    connections = []
    layout: dict[str, list[str]] = {}
    for source, outputs in raw.items():
        if not isinstance(outputs, dict):
            raise MalformedGraph(f"Connections of node {source!r} must be an object")
        layout[source] = list(outputs)
        for output_type, ports in outputs.items():
            if not isinstance(ports, list):
                raise MalformedGraph(
                    f"Output {output_type!r} of node {source!r} must be a list of ports"
                )
            for index, port in enumerate(ports):
                if port is None:
                    port = []
                if not isinstance(port, list):
                    raise MalformedGraph(
                        f"Port {index} of {source!r}/{output_type} must be a list of targets"
                    )
                connections.append(
                    Connection(
                        source=source,
                        output_type=output_type,
                        output_index=index,
                        targets=[ConnectionTarget.from_dict(t) for t in port],
                    )
                )
    return connections, layout


def _serialize_connections(
    connections: list[Connection], layout: dict[str, list[str]] | None = None
) -> dict:
    result: dict[str, dict[str, list]] = {}
    for source, output_types in (layout or {}).items():
        outputs = result.setdefault(source, {})
        for output_type in output_types:
            outputs.setdefault(output_type, [])
    for conn in connections:
        ports = result.setdefault(conn.source, {}).setdefault(conn.output_type, [])
        while len(ports) <= conn.output_index:
            ports.append([])
        ports[conn.output_index] = [t.to_dict() for t in conn.targets]
    return result


@dataclass
class WorkflowGraph:
    """A complete workflow definition as exchanged with the engine."""

    name: str
    nodes: list[Node] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)
    # source -> output types present in the engine's connection map
    connection_layout: dict[str, list[str]] = field(default_factory=dict)

    @property
    def id(self) -> str | None:
        """Remote id, present on workflows fetched from the engine."""
        return self.extra.get("id")

    @property
    def active(self) -> bool:
        return bool(self.extra.get("active", False))

    @property
    def settings(self) -> dict[str, Any] | None:
        return self.extra.get("settings")

    @property
    def static_data(self) -> Any:
        return self.extra.get("staticData")

    def get_node(self, node_id: str) -> Node | None:
        """Get a node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_node_by_name(self, name: str) -> Node | None:
        """Get a node by name (the key connections use)."""
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def get_targets(self, source: str) -> list[str]:
        """Names of nodes directly downstream of *source*, in port order."""
        return [
            target.node
            for conn in self.connections
            if conn.source == source
            for target in conn.targets
        ]

    def get_start_nodes(self) -> list[Node]:
        """Nodes with no incoming connections (triggers)."""
        with_incoming = {t.node for conn in self.connections for t in conn.targets}
        return [n for n in self.nodes if n.name not in with_incoming]

    def copy(self) -> WorkflowGraph:
        return copy.deepcopy(self)

    @classmethod
    def from_dict(cls, data: dict) -> WorkflowGraph:
        """Create a WorkflowGraph from the engine's JSON (no validation)."""
        if not isinstance(data, dict):
            raise MalformedGraph(f"Workflow must be an object, got {type(data).__name__}")
        if not data.get("name"):
            raise MalformedGraph("Workflow has no name")
        nodes = data.get("nodes")
        if not isinstance(nodes, list):
            raise MalformedGraph(f"Workflow {data['name']!r} must have a list of nodes")

        connections, layout = _parse_connections(data.get("connections"))
        return cls(
            name=data["name"],
            nodes=[Node.from_dict(n) for n in nodes],
            connections=connections,
            connection_layout=layout,
            extra={
                key: copy.deepcopy(value)
                for key, value in data.items()
                if key not in ("name", "nodes", "connections")
            },
        )

    def to_dict(self) -> dict:
        """Convert to the engine's JSON representation."""
        return {
            "name": self.name,
            "nodes": [n.to_dict() for n in self.nodes],
            "connections": _serialize_connections(self.connections, self.connection_layout),
            **copy.deepcopy(self.extra),
        }

    def to_create_payload(self) -> dict:
        """Body for ``POST /workflows``: only the keys the engine accepts."""
        body = {key: value for key, value in self.to_dict().items() if key in CREATE_KEYS}
        # The engine rejects creates without a settings object
        if body.get("settings") is None:
            body["settings"] = {}
        if body.get("staticData") is None:
            body.pop("staticData", None)
        return body


def validate_workflow(graph: WorkflowGraph) -> None:
    """Check graph invariants.

    Raises:
        EmptyGraph: The graph has no nodes
        DuplicateNodeId: Two nodes share an id or a name
        DanglingConnection: A connection names a node that does not exist
    """
    if not graph.nodes:
        raise EmptyGraph(f"Workflow {graph.name!r} has no nodes")

    for label, values in (
        ("id", [n.id for n in graph.nodes]),
        ("name", [n.name for n in graph.nodes]),
    ):
        duplicates = [value for value, count in Counter(values).items() if count > 1]
        if duplicates:
            raise DuplicateNodeId(
                f"Workflow {graph.name!r} has duplicate node {label} {duplicates[0]!r}",
                node=duplicates[0],
            )

    names = {n.name for n in graph.nodes}
    for conn in graph.connections:
        if conn.source not in names:
            raise DanglingConnection(
                f"Workflow {graph.name!r} has a connection from unknown node {conn.source!r}",
                source=conn.source,
            )
        for target in conn.targets:
            if target.node not in names:
                raise DanglingConnection(
                    f"Workflow {graph.name!r} connects {conn.source!r} "
                    f"to unknown node {target.node!r}",
                    source=conn.source,
                    target=target.node,
                )


def parse_workflow(raw: Any) -> WorkflowGraph:
    """Parse and validate the engine's workflow JSON.

    Raises:
        MalformedGraph: (or a subclass) if the input is not a valid graph
    """
    graph = WorkflowGraph.from_dict(raw)
    validate_workflow(graph)
    return graph


def serialize_workflow(graph: WorkflowGraph) -> dict:
    """Inverse of :func:`parse_workflow`."""
    return graph.to_dict()
