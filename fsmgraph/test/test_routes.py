import json

import pytest
from fastapi.testclient import TestClient

from fsmgraph.server.main import app
from fsmgraph.server.state import project_state


@pytest.fixture
def client():
    project_state.reset()
    return TestClient(app)


def _add_main(client):
    response = client.post("/api/files", json={"name": "main", "type": "client"})
    assert response.status_code == 201
    return response.json()["key"]


class TestProjectRoutes:

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_function_scenario(self, client):
        body = {"name": "onTick", "scope": "server", "parameters": []}
        assert client.post("/api/functions", json=body).status_code == 201
        assert client.post("/api/functions", json=body).status_code == 409
        project = client.get("/api/project").json()
        assert project["functions"] == ["onTick"]
        assert project["isDirty"] is True

    def test_event_rejects_shared_scope(self, client):
        response = client.post("/api/events", json={"name": "joined", "scope": "shared"})
        assert response.status_code == 400

    def test_file_lifecycle(self, client):
        key = _add_main(client)
        assert key == "client/main"
        assert client.post("/api/files", json={"name": "MAIN", "type": "client"}).status_code == 409
        assert client.get("/api/graph", params={"key": key}).json()["scope"] == "client"

        assert client.delete("/api/files", params={"name": "main", "type": "client"}).status_code == 204
        assert client.get("/api/graph", params={"key": key}).status_code == 404
        assert client.get("/api/project").json()["files"] == []

    def test_update_function_settings(self, client):
        client.post("/api/functions", json={"name": "add", "parameters": ["a"]})
        response = client.put("/api/functions/settings", params={"key": "func:add"},
                              json={"scope": "server", "parameters": ["a", "b"]})
        assert response.status_code == 200
        assert response.json()["parameters"] == ["a", "b"]
        missing = client.put("/api/functions/settings", params={"key": "func:nope"}, json={"scope": "server"})
        assert missing.status_code == 404

    def test_node_types_by_kind(self, client):
        function_types = {t["id"] for t in client.get("/api/node-types", params={"kind": "function"}).json()}
        file_types = {t["id"] for t in client.get("/api/node-types", params={"kind": "file"}).json()}
        assert "returnValue" in function_types - file_types
        assert "registerCommand" in file_types - function_types


class TestNodeRoutes:

    def test_add_and_reorder(self, client):
        key = _add_main(client)
        for label in "ABC":
            response = client.post("/api/graph/nodes", params={"key": key},
                                   json={"type": "print", "fields": {"label": label}})
            assert response.status_code == 201

        graph = client.post("/api/graph/reorder", params={"key": key},
                            json={"fromIndex": 0, "toIndex": 2}).json()
        assert [n["label"] for n in graph["nodes"]] == ["B", "C", "A"]
        assert client.post("/api/graph/reorder", params={"key": key},
                           json={"fromIndex": 0, "toIndex": 3}).status_code == 404
        assert client.post("/api/graph/reorder", params={"key": key},
                           json={"fromIndex": 7, "toIndex": 0}).status_code == 404

    def test_add_node_errors(self, client):
        key = _add_main(client)
        assert client.post("/api/graph/nodes", params={"key": key},
                           json={"type": "teleportPlayer"}).status_code == 404
        assert client.post("/api/graph/nodes", params={"key": key},
                           json={"type": "returnValue"}).status_code == 400
        assert client.post("/api/graph/nodes", params={"key": key},
                           json={"type": "print", "fields": {"printToConsole": "yes"}}).status_code == 400
        assert client.post("/api/graph/nodes", params={"key": "client/ghost"},
                           json={"type": "print"}).status_code == 404

    def test_update_and_delete_node(self, client):
        key = _add_main(client)
        client.post("/api/graph/nodes", params={"key": key}, json={"type": "print"})
        graph = client.put("/api/graph/nodes/0", params={"key": key},
                           json={"type": "wait", "fields": {"duration": 10}}).json()
        assert graph["nodes"][0]["id"] == "wait"

        deleted = client.delete("/api/graph/nodes/0", params={"key": key})
        assert deleted.json()["label"] == "Wait"
        assert client.delete("/api/graph/nodes/0", params={"key": key}).status_code == 404
        notices = client.get("/api/notifications").json()
        assert notices[-1]["message"] == 'Node "Wait" removed.'

    def test_simulate(self, client):
        key = _add_main(client)
        client.post("/api/graph/nodes", params={"key": key}, json={
            "type": "print", "fields": {"useVariableForMessage": True, "messageVariable": "who"}})
        report = client.post("/api/graph/simulate", params={"key": key},
                             json={"variables": {"who": "world"}}).json()
        assert report["ok"] is True
        assert report["output"] == ["world"]
        assert report["steps"][0]["result"]["status"] == "success"
        assert [e["type"] for e in report["trace"]][0] == "EXEC_START"


class TestSaveLoadRoutes:

    def test_save_then_load(self, client):
        key = _add_main(client)
        client.post("/api/graph/nodes", params={"key": key},
                    json={"type": "print", "fields": {"message": "saved"}})

        response = client.get("/api/project/save")
        assert response.status_code == 200
        assert "0xfsm-project-" in response.headers["content-disposition"]
        assert client.get("/api/project").json()["isDirty"] is False
        document = json.loads(response.content)

        project_state.reset()
        loaded = client.post("/api/project/load", json=document)
        assert loaded.status_code == 200
        assert loaded.json()["graphs"] == ["client/main"]
        graph = client.get("/api/graph", params={"key": key}).json()
        assert graph["nodes"][0]["message"] == "saved"

    def test_load_invalid_document(self, client):
        client.post("/api/functions", json={"name": "keep"})
        response = client.post("/api/project/load", json={"files": []})
        assert response.status_code == 400
        project = client.get("/api/project").json()
        assert project["functions"] == ["keep"]
        assert project["isDirty"] is True
