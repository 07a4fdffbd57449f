"""Tests for workflow graph parsing, validation and serialization."""

import copy

import pytest

from hireflow.errors import DanglingConnection, DuplicateNodeId, EmptyGraph, MalformedGraph
from hireflow.workflow import (
    GoogleCalendarParameters,
    NodeParameters,
    WebhookParameters,
    WorkflowGraph,
    parse_workflow,
    serialize_workflow,
    validate_workflow,
)


def _raw_workflow():
    return {
        "id": "wf-42",
        "name": "Busy Slots Working",
        "active": True,
        "nodes": [
            {
                "id": "webhook-trigger",
                "name": "Webhook",
                "type": "n8n-nodes-base.webhook",
                "typeVersion": 2,
                "position": [0, 0],
                "webhookId": "abc-123",
                "parameters": {"httpMethod": "POST", "path": "busyslot", "options": {}},
            },
            {
                "id": "calendar-node",
                "name": "Google Calendar",
                "type": "n8n-nodes-base.googleCalendar",
                "typeVersion": 1,
                "position": [200, 0],
                "credentials": {"googleCalendarOAuth2Api": {"id": "c1", "name": "Calendar"}},
                "parameters": {"operation": "create", "calendar": "primary"},
            },
            {
                "id": "noop",
                "name": "Done",
                "type": "n8n-nodes-base.noOp",
                "position": [400, 0],
            },
        ],
        "connections": {
            "Webhook": {"main": [[{"node": "Google Calendar", "type": "main", "index": 0}]]},
            "Google Calendar": {"main": [[{"node": "Done", "type": "main", "index": 0}]]},
        },
        "settings": {"executionOrder": "v1"},
        "staticData": None,
        "pinData": {},
        "meta": {"templateCredsSetupCompleted": True},
        "tags": [{"id": "t1", "name": "hiring"}],
    }


class TestParseWorkflow:
    """Tests for parse_workflow."""

    def test_round_trip_is_structurally_equal(self):
        """Serializing a parsed workflow reproduces the input."""
        raw = _raw_workflow()
        assert serialize_workflow(parse_workflow(raw)) == raw

    def test_round_trip_keeps_empty_output_lists(self):
        raw = _raw_workflow()
        raw["connections"]["Done"] = {"main": []}
        raw["connections"]["Google Calendar"]["error"] = []
        graph = parse_workflow(raw)
        assert graph.get_targets("Done") == []
        assert serialize_workflow(graph) == raw

    def test_round_trip_keeps_null_parameters(self):
        raw = _raw_workflow()
        raw["nodes"][2]["parameters"] = None
        graph = parse_workflow(raw)
        assert graph.get_node("noop").parameters is None
        assert serialize_workflow(graph) == raw

    def test_round_trip_keeps_empty_parameters(self):
        raw = _raw_workflow()
        raw["nodes"][2]["parameters"] = {}
        assert serialize_workflow(parse_workflow(raw)) == raw

    def test_round_trip_keeps_implicit_target_type_and_index(self):
        raw = _raw_workflow()
        raw["connections"]["Webhook"]["main"] = [[{"node": "Google Calendar"}]]
        graph = parse_workflow(raw)
        assert graph.get_targets("Webhook") == ["Google Calendar"]
        assert serialize_workflow(graph) == raw

    def test_parse_does_not_alias_input(self):
        raw = _raw_workflow()
        graph = parse_workflow(raw)
        graph.nodes[0].parameters.values["path"] = "changed"
        graph.extra["meta"]["templateCredsSetupCompleted"] = False
        assert raw["nodes"][0]["parameters"]["path"] == "busyslot"
        assert raw["meta"]["templateCredsSetupCompleted"] is True

    def test_exposes_nodes_and_connections(self):
        graph = parse_workflow(_raw_workflow())
        assert graph.id == "wf-42"
        assert graph.active is True
        assert graph.settings == {"executionOrder": "v1"}
        assert [n.name for n in graph.get_start_nodes()] == ["Webhook"]
        assert graph.get_targets("Webhook") == ["Google Calendar"]
        assert graph.get_node("noop").name == "Done"
        assert graph.get_node_by_name("Google Calendar").type_version == 1
        assert graph.get_node("missing") is None

    def test_typed_parameters(self):
        graph = parse_workflow(_raw_workflow())
        webhook = graph.get_node_by_name("Webhook").parameters
        calendar = graph.get_node_by_name("Google Calendar").parameters
        assert isinstance(webhook, WebhookParameters)
        assert webhook.http_method == "POST"
        assert webhook.path == "busyslot"
        assert isinstance(calendar, GoogleCalendarParameters)
        assert calendar.calendar == "primary"
        assert graph.get_node_by_name("Done").parameters is None

    def test_unknown_node_type_keeps_parameters_opaque(self):
        raw = _raw_workflow()
        raw["nodes"][2]["parameters"] = {"anything": [1, 2, 3]}
        node = parse_workflow(raw).get_node("noop")
        assert type(node.parameters) is NodeParameters
        assert node.parameters.get("anything") == [1, 2, 3]

    def test_missing_name_is_malformed(self):
        raw = _raw_workflow()
        del raw["name"]
        with pytest.raises(MalformedGraph):
            parse_workflow(raw)

    def test_nodes_must_be_a_list(self):
        raw = _raw_workflow()
        raw["nodes"] = {"Webhook": {}}
        with pytest.raises(MalformedGraph):
            parse_workflow(raw)

    def test_node_missing_type_is_malformed(self):
        raw = _raw_workflow()
        del raw["nodes"][1]["type"]
        with pytest.raises(MalformedGraph) as exc_info:
            parse_workflow(raw)
        assert exc_info.value.details["missing"] == ["type"]

    def test_non_object_is_malformed(self):
        with pytest.raises(MalformedGraph):
            parse_workflow(["not", "a", "workflow"])


class TestValidateWorkflow:
    """Tests for graph invariants."""

    def test_empty_graph(self):
        raw = _raw_workflow()
        raw["nodes"] = []
        raw["connections"] = {}
        with pytest.raises(EmptyGraph):
            parse_workflow(raw)

    def test_duplicate_node_id(self):
        raw = _raw_workflow()
        raw["nodes"][2]["id"] = "calendar-node"
        with pytest.raises(DuplicateNodeId) as exc_info:
            parse_workflow(raw)
        assert exc_info.value.node == "calendar-node"
        assert exc_info.value.code == "DUPLICATE_NODE_ID"

    def test_duplicate_node_name(self):
        raw = _raw_workflow()
        raw["nodes"][2]["name"] = "Webhook"
        with pytest.raises(DuplicateNodeId):
            parse_workflow(raw)

    def test_dangling_target(self):
        raw = _raw_workflow()
        raw["connections"]["Webhook"]["main"][0].append(
            {"node": "Slack", "type": "main", "index": 0}
        )
        with pytest.raises(DanglingConnection) as exc_info:
            parse_workflow(raw)
        assert exc_info.value.source == "Webhook"
        assert exc_info.value.target == "Slack"

    def test_dangling_source(self):
        raw = _raw_workflow()
        raw["connections"]["Ghost"] = {"main": [[{"node": "Done", "type": "main", "index": 0}]]}
        with pytest.raises(DanglingConnection) as exc_info:
            parse_workflow(raw)
        assert exc_info.value.source == "Ghost"

    def test_validation_errors_are_malformed_graph(self):
        """Every graph validation failure is catchable as MalformedGraph."""
        assert issubclass(DanglingConnection, MalformedGraph)
        assert issubclass(DuplicateNodeId, MalformedGraph)
        assert issubclass(EmptyGraph, MalformedGraph)

    def test_validate_mutated_graph(self):
        graph = parse_workflow(_raw_workflow())
        graph.nodes.pop()
        with pytest.raises(DanglingConnection):
            validate_workflow(graph)


class TestCreatePayload:
    """Tests for WorkflowGraph.to_create_payload."""

    def test_keeps_only_accepted_keys(self):
        payload = parse_workflow(_raw_workflow()).to_create_payload()
        assert set(payload) == {"name", "nodes", "connections", "settings"}
        assert payload["nodes"][0]["webhookId"] == "abc-123"

    def test_defaults_settings(self):
        raw = _raw_workflow()
        del raw["settings"]
        payload = parse_workflow(raw).to_create_payload()
        assert payload["settings"] == {}

    def test_keeps_static_data_when_set(self):
        raw = _raw_workflow()
        raw["staticData"] = {"lastId": 7}
        assert parse_workflow(raw).to_create_payload()["staticData"] == {"lastId": 7}

    def test_copy_is_deep(self):
        graph = WorkflowGraph.from_dict(copy.deepcopy(_raw_workflow()))
        clone = graph.copy()
        clone.nodes[0].id = "other"
        clone.nodes[1].credentials = None
        assert graph.nodes[0].id == "webhook-trigger"
        assert graph.nodes[1].credentials is not None
