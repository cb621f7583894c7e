import json
from datetime import datetime, timezone

import pytest

from fsmgraph.config import get_settings
from fsmgraph.core.GraphStore import AppFile, GraphStore
from fsmgraph.core.Node import NodeInstance
from fsmgraph.core.Types import GraphKind, Scope
from fsmgraph.serializers.project_serializer import (
    decode_project,
    default_filename,
    dumps_project,
    encode_project,
    load_project,
    save_project,
)


def _shape(graphs):
    """Comparable view of a graph map without runtime identities."""
    return {
        key: (
            graph.kind,
            [(n.type_id, n.fields) for n in graph.nodes],
            graph.parameters,
            graph.argument_names,
            graph.scope,
        )
        for key, graph in graphs.items()
    }


def _document(graphs, files=None):
    return {
        "projectMetadata": {"savedAt": "2024-05-01T12:00:00.000Z", "appName": "0xFSM", "appVersion": "1.0.0"},
        "files": files if files is not None else [{"name": "main", "type": "client"}],
        "graphs": graphs,
    }


@pytest.fixture
def populated(store):
    registry = store.registry
    store.addFile(AppFile("main", "client"))
    store.addFunctionGraph("add", "shared", ["a", "b"])
    store.addEventGraph("playerJoined", "server", ["source"])

    store.addNodeToGraph("client/main", registry.create_instance(
        "declareVariable", variableName="score", dataType="number", value="10"))
    store.addNodeToGraph("client/main", registry.create_instance(
        "callFunction", functionName="add",
        argumentSources=[{"type": "variable", "value": "score"}, {"type": "number", "value": 5}],
        useVariableForResult=True, resultVariable="total"))
    store.addNodeToGraph("client/main", registry.create_instance(
        "print", label="Show total", useVariableForMessage=True, messageVariable="total"))
    store.addNodeToGraph("func:add", registry.create_instance(
        "mathOperation", value1Type="variable", value1="a", value2Type="variable", value2="b",
        resultVariable="sum"))
    store.addNodeToGraph("func:add", registry.create_instance("returnValue", returnVariable="sum"))
    store.addNodeToGraph("event:playerJoined", registry.create_instance(
        "triggerEvent", eventName="welcome", useVariableForTarget=True, targetPlayer="source"))
    return store


class TestEncode:

    def test_document_sections(self, populated):
        document = encode_project(populated).document
        assert set(document) == {"projectMetadata", "files", "graphs"}
        assert document["projectMetadata"]["appName"] == get_settings().app_name
        assert document["projectMetadata"]["savedAt"].endswith("Z")
        assert document["files"] == [{"name": "main", "type": "client"}]
        assert document["graphs"]["func:add"]["parameters"] == ["a", "b"]
        assert document["graphs"]["func:add"]["scope"] == "shared"
        assert document["graphs"]["event:playerJoined"]["argumentNames"] == ["source"]

    def test_node_records_carry_type_id_and_data_only(self, populated):
        record = encode_project(populated).document["graphs"]["client/main"]["nodes"][2]
        assert record["id"] == "print"
        assert record["label"] == "Show total"
        assert record["messageVariable"] == "total"
        assert "runtimeId" not in record
        assert "category" not in record

    def test_extra_fields_are_not_persisted(self, store, main_file):
        node = store.addNodeToGraph("client/main", NodeInstance(
            "print", {"message": "hi", "execute": "fn", "leftSection": "<icon>", "category": "X"}))
        record = encode_project(store).document["graphs"]["client/main"]["nodes"][0]
        assert record["message"] == "hi"
        for name in ("execute", "leftSection", "category"):
            assert name not in record
        assert "execute" in node.fields

    def test_none_values_are_persisted(self, store, main_file):
        store.addNodeToGraph("client/main", store.registry.create_instance("print", color=None))
        record = encode_project(store).document["graphs"]["client/main"]["nodes"][0]
        assert "color" in record and record["color"] is None

    def test_document_is_independent_of_live_state(self, populated):
        document = encode_project(populated).document
        node = populated.getGraph("client/main").nodes[1]
        node.fields["argumentSources"][0]["value"] = "changed"
        saved = document["graphs"]["client/main"]["nodes"][1]["argumentSources"]
        assert saved[0]["value"] == "score"

    def test_unserializable_field_dropped_with_warning(self, store, main_file):
        node = store.addNodeToGraph("client/main", store.registry.create_instance("print", message="hi"))
        cyclic = []
        cyclic.append(cyclic)
        node.fields["color"] = cyclic
        node.fields["description"] = object()

        result = encode_project(store)
        record = result.document["graphs"]["client/main"]["nodes"][0]
        assert "color" not in record
        assert "description" not in record
        assert record["message"] == "hi"
        assert sorted(w.field for w in result.warnings) == ["color", "description"]

    def test_dumps_is_utf8_json(self, populated):
        data = dumps_project(populated)
        assert isinstance(data, bytes)
        assert json.loads(data.decode("utf-8"))["files"][0]["name"] == "main"


class TestDecode:

    def test_round_trip(self, populated):
        document = encode_project(populated).document
        result = decode_project(document, populated.registry)
        assert result.success
        assert result.warnings == []
        assert result.files == populated.files
        assert _shape(result.graphs) == _shape(populated.graphs)

    def test_store_only_holds_values_that_survive_a_round_trip(self, store, main_file, registry):
        assert store.addNodeToGraph("client/main", NodeInstance("print", {"message": 5})) is None
        assert store.addNodeToGraph("client/main", NodeInstance("print", {"message": "5"})) is not None
        result = decode_project(encode_project(store).document, registry)
        assert result.warnings == []
        assert _shape(result.graphs) == _shape(store.graphs)

    def test_round_trip_through_bytes(self, populated):
        result = decode_project(json.loads(dumps_project(populated)), populated.registry)
        assert _shape(result.graphs) == _shape(populated.graphs)

    def test_runtime_ids_are_fresh(self, populated):
        document = encode_project(populated).document
        document["graphs"]["client/main"]["nodes"][0]["runtimeId"] = "stale"
        result = decode_project(document, populated.registry)
        old_ids = {n.runtime_id for n in populated.getGraph("client/main").nodes}
        new_ids = {n.runtime_id for n in result.graphs["client/main"].nodes}
        assert not old_ids & new_ids
        assert "stale" not in new_ids

    def test_unknown_type_dropped_with_one_warning(self, registry):
        document = _document({"client/main": {"scope": "client", "nodes": [
            {"id": "print", "message": "first"},
            {"id": "teleportPlayer", "label": "TP"},
            {"id": "wait", "duration": 250},
        ]}})
        result = decode_project(document, registry)
        assert result.success
        nodes = result.graphs["client/main"].nodes
        assert [n.type_id for n in nodes] == ["print", "wait"]
        assert nodes[0].fields["message"] == "first"
        assert nodes[1].fields["duration"] == 250
        assert len(result.warnings) == 1
        assert "teleportPlayer" in result.warnings[0].message
        assert "TP" in result.warnings[0].message
        assert result.warnings[0].type_id == "teleportPlayer"

    def test_defaults_fill_missing_fields(self, registry):
        document = _document({"client/main": {"nodes": [{"id": "print", "message": "hi"}]}})
        node = decode_project(document, registry).graphs["client/main"].nodes[0]
        assert node.fields["message"] == "hi"
        assert node.fields["printToConsole"] is True
        assert node.fields["label"] == "Print Message"

    def test_non_allow_listed_keys_ignored(self, registry):
        document = _document({"client/main": {"nodes": [
            {"id": "print", "message": "hi", "execute": "evil()", "category": "Other"}]}})
        node = decode_project(document, registry).graphs["client/main"].nodes[0]
        assert "execute" not in node.fields
        assert "category" not in node.fields

    def test_wrongly_typed_field_dropped(self, registry):
        document = _document({"client/main": {"nodes": [{"id": "print", "printToConsole": "yes"}]}})
        result = decode_project(document, registry)
        assert result.graphs["client/main"].nodes[0].fields["printToConsole"] is True
        assert [w.field for w in result.warnings] == ["printToConsole"]

    @pytest.mark.parametrize("missing", ["projectMetadata", "files", "graphs"])
    def test_missing_section_is_structural_failure(self, registry, missing):
        document = _document({})
        del document[missing]
        result = decode_project(document, registry)
        assert not result.success
        assert missing in result.message

    @pytest.mark.parametrize("section, value", [("files", "main"), ("graphs", ["client/main"])])
    def test_malformed_section_is_structural_failure(self, registry, section, value):
        document = _document({})
        document[section] = value
        result = decode_project(document, registry)
        assert not result.success
        assert result.message.startswith("Invalid project file structure")

    def test_malformed_nodes_and_file_entries_dropped(self, registry):
        document = _document(
            {"client/main": {"scope": "client", "nodes": [None, "print", {"id": "print", "message": "ok"}]}},
            files=[{"name": "main", "type": "client"}, {"name": "x", "type": "shared"}, None])
        result = decode_project(document, registry)
        assert result.success
        assert [f.key for f in result.files] == ["client/main"]
        nodes = result.graphs["client/main"].nodes
        assert [(n.type_id, n.fields["message"]) for n in nodes] == [("print", "ok")]
        assert len(result.warnings) == 4
        assert [w.graph_key for w in result.warnings].count("client/main") == 2

    def test_malformed_graph_record_dropped(self, registry):
        document = _document({"client/main": {"nodes": []}, "func:f": "oops", "func:g": {"nodes": "x"}})
        result = decode_project(document, registry)
        assert result.success
        assert set(result.graphs) == {"client/main"}
        assert sorted(w.graph_key for w in result.warnings) == ["func:f", "func:g"]

    def test_for_loop_bounds_from_saved_project(self, registry):
        document = _document({"client/main": {"nodes": [
            {"id": "forLoop", "controlVariable": "n", "startValue": 5, "endValue": 9,
             "stepValueType": "variable", "stepValue": "stride"}]}})
        result = decode_project(document, registry)
        fields = result.graphs["client/main"].nodes[0].fields
        assert (fields["startValue"], fields["endValue"], fields["stepValue"]) == (5, 9, "stride")
        assert fields["stepValueType"] == "variable"
        assert result.warnings == []

    def test_null_graph_record_skipped(self, registry):
        document = _document({"client/main": {"nodes": []}, "func:gone": None})
        result = decode_project(document, registry)
        assert result.success
        assert "func:gone" not in result.graphs

    def test_file_pairing_repaired(self, registry):
        document = _document({"server/extra": {"nodes": []}}, files=[{"name": "main", "type": "client"}])
        result = decode_project(document, registry)
        assert result.success
        assert {f.key for f in result.files} == {"client/main", "server/extra"}
        assert set(result.graphs) == {"client/main", "server/extra"}
        assert result.graphs["client/main"].scope == Scope.CLIENT
        assert result.graphs["server/extra"].scope == Scope.SERVER
        assert len(result.warnings) == 2

    def test_unpairable_file_graph_dropped(self, registry):
        document = _document({"client/main": {"nodes": []}, "orphan": {"nodes": []}})
        result = decode_project(document, registry)
        assert "orphan" not in result.graphs
        assert len(result.warnings) == 1

    def test_graph_kinds_from_keys(self, registry):
        document = _document({
            "client/main": {"nodes": []},
            "func:f": {"nodes": [], "scope": "shared"},
            "event:e": {"nodes": [], "argumentNames": ["x"], "scope": "client"},
        })
        graphs = decode_project(document, registry).graphs
        assert graphs["func:f"].kind == GraphKind.FUNCTION
        assert graphs["func:f"].parameters == []
        assert graphs["event:e"].argument_names == ["x"]
        assert graphs["event:e"].parameters is None


class TestSaveAndLoad:

    def test_save_clears_dirty_flag(self, populated):
        assert populated.is_dirty
        result = save_project(populated)
        assert not populated.is_dirty
        assert result.filename.startswith("0xfsm-project-")
        assert result.filename.endswith(".fsm.json")
        assert json.loads(result.data)["graphs"].keys() == populated.graphs.keys()

    def test_default_filename(self):
        moment = datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)
        assert default_filename(moment) == "0xfsm-project-2024-05-01T12-30-45-123Z.fsm.json"

    def test_load_replaces_state_and_clears_flag(self, populated):
        data = save_project(populated).data
        target = GraphStore()
        target.addFunctionGraph("leftover", "client", [])
        assert target.is_dirty

        result = load_project(target, data)
        assert result.success
        assert not target.is_dirty
        assert "leftover" not in target.getFunctionNames()
        assert _shape(target.graphs) == _shape(populated.graphs)
        assert target.files == populated.files

    def test_load_accepts_str_and_dict(self, populated):
        data = save_project(populated).data
        assert load_project(GraphStore(), data.decode("utf-8")).success
        assert load_project(GraphStore(), json.loads(data)).success

    def test_failed_load_leaves_store_untouched(self, store, main_file, notifications):
        store.addNodeToGraph("client/main", store.registry.create_instance("print"))
        before = _shape(store.graphs)

        result = load_project(store, b'{"files": [], "graphs": {}}')
        assert not result.success
        assert store.is_dirty
        assert _shape(store.graphs) == before
        assert notifications.history[-1]["title"] == "Load Error"

    def test_invalid_json(self, store):
        result = store.loadProject("{not json")
        assert not result.success
        assert "JSON" in result.message

    def test_load_warnings_become_notices(self, store, notifications):
        document = _document({"client/main": {"nodes": [{"id": "teleportPlayer"}]}})
        assert store.loadProject(document).success
        titles = [n["title"] for n in notifications.history]
        assert "Load Warning" in titles
        assert titles[-1] == "Project Loaded"
