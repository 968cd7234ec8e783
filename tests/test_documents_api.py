"""
Tests for the documents API blueprint.

Tests:
    - Document CRUD and error envelopes
    - Ingest endpoint and guard behaviour over HTTP
    - Edit endpoints for each document kind
    - Suggestion delivery, accept and reject
    - Version navigation and text export
"""

import json

import pytest

BASE = "/api/v1/documents"


@pytest.fixture()
def kanban_doc(client, kanban):
    res = client.post(BASE, json={"kind": "kanban", "title": "Launch", "id": "kb-1", "content": kanban})
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def scorecard_doc(client, scorecard):
    res = client.post(BASE, json={"kind": "scorecard", "id": "sc-1", "content": scorecard})
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def idp_doc(client, idp):
    res = client.post(BASE, json={"kind": "idp", "id": "idp-1", "content": idp})
    assert res.status_code == 201
    return res.get_json()


# ══════════════════════════════════════════════════════════════════════════════
# DOCUMENTS
# ══════════════════════════════════════════════════════════════════════════════

class TestDocumentsCrud:
    def test_health(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_create_requires_kind(self, client):
        res = client.post(BASE, json={"title": "x"})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_create_unknown_kind(self, client):
        res = client.post(BASE, json={"kind": "wiki"})
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_create_duplicate(self, client, kanban_doc):
        res = client.post(BASE, json={"kind": "kanban", "id": "kb-1"})
        assert res.status_code == 409

    def test_get_document(self, client, kanban_doc, kanban):
        res = client.get(f"{BASE}/kb-1")
        assert res.status_code == 200
        data = res.get_json()
        assert data["title"] == "Launch"
        assert data["content"] == kanban
        assert data["metrics"]["total_tasks"] == 3
        assert data["versions"]["count"] == 1
        assert data["notifications"] == []

    def test_get_missing(self, client):
        res = client.get(f"{BASE}/nope")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_list_and_delete(self, client, kanban_doc, idp_doc):
        assert len(client.get(BASE).get_json()) == 2
        assert len(client.get(f"{BASE}?kind=idp").get_json()) == 1
        assert client.delete(f"{BASE}/kb-1").status_code == 200
        assert client.get(f"{BASE}/kb-1").status_code == 404

    def test_response_carries_request_id(self, client, kanban_doc):
        res = client.get(f"{BASE}/kb-1", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
        assert "X-Request-Duration-Ms" in res.headers


# ══════════════════════════════════════════════════════════════════════════════
# INGEST
# ══════════════════════════════════════════════════════════════════════════════

class TestIngest:
    def test_deliver_streaming_payloads(self, client):
        client.post(BASE, json={"kind": "scorecard", "id": "new"})
        raw = json.dumps({"employeeName": "A", "period": "Q1", "perspectives": [
            {"id": "p", "name": "P", "kpis": []},
        ]})

        res = client.post(f"{BASE}/new/deliver", json={"raw": raw[:20]})
        assert res.get_json()["outcome"] == "unparseable"
        assert res.get_json()["document"]["status"] == "streaming"
        assert res.get_json()["document"]["is_loading"] is True

        res = client.post(f"{BASE}/new/deliver", json={"raw": raw, "is_final": True})
        body = res.get_json()
        assert body["outcome"] == "applied"
        assert body["document"]["status"] == "idle"
        assert body["document"]["versions"]["count"] == 1

    def test_deliver_requires_raw(self, client, kanban_doc):
        res = client.post(f"{BASE}/kb-1/deliver", json={})
        assert res.status_code == 400

    def test_guard_after_edit(self, client, kanban_doc, kanban):
        client.post(f"{BASE}/kb-1/tasks/t1/move", json={"from_column": "todo", "to_column": "done"})
        res = client.post(f"{BASE}/kb-1/deliver", json={"raw": json.dumps(kanban)})
        assert res.get_json()["outcome"] == "guarded"
        assert res.get_json()["document"]["content"]["columns"][2]["tasks"][-1]["id"] == "t1"
        res = client.post(f"{BASE}/kb-1/deliver", json={"raw": json.dumps(kanban)})
        assert res.get_json()["outcome"] == "applied"


# ══════════════════════════════════════════════════════════════════════════════
# EDITS
# ══════════════════════════════════════════════════════════════════════════════

class TestEdits:
    def test_add_task(self, client, kanban_doc):
        res = client.post(f"{BASE}/kb-1/columns/doing/tasks")
        assert res.status_code == 200
        data = res.get_json()
        assert data["content"]["columns"][1]["tasks"][0]["title"] == "New Task"
        assert data["versions"]["count"] == 2

    def test_delete_task(self, client, kanban_doc):
        res = client.delete(f"{BASE}/kb-1/columns/todo/tasks/t1")
        assert [t["id"] for t in res.get_json()["content"]["columns"][0]["tasks"]] == ["t2"]

    def test_move_requires_columns(self, client, kanban_doc):
        res = client.post(f"{BASE}/kb-1/tasks/t1/move", json={"to_column": "done"})
        assert res.status_code == 400

    def test_field_edit_is_debounced_until_flush(self, client, scorecard_doc):
        res = client.patch(f"{BASE}/sc-1/fields", json={"path": "perspectives/fin/kpis/k1/current", "value": "75"})
        data = res.get_json()
        assert data["content"]["perspectives"][0]["kpis"][0]["current"] == 75.0
        assert data["versions"]["has_pending_save"] is True
        assert data["versions"]["count"] == 1

        res = client.post(f"{BASE}/sc-1/flush")
        assert res.get_json()["written"] is True
        assert res.get_json()["document"]["versions"]["count"] == 2

    def test_close_flushes_pending_edit(self, client, scorecard_doc):
        client.patch(f"{BASE}/sc-1/fields", json={"path": "period", "value": "2027"})
        res = client.post(f"{BASE}/sc-1/close")
        assert res.get_json() == {"closed": True}
        assert client.post(f"{BASE}/sc-1/close").get_json() == {"closed": False}

        data = client.get(f"{BASE}/sc-1").get_json()
        assert data["content"]["period"] == "2027"
        assert data["versions"]["count"] == 2

    def test_close_unknown_document(self, client):
        assert client.post(f"{BASE}/nope/close").status_code == 404

    def test_field_edit_rejects_bad_field(self, client, scorecard_doc):
        res = client.patch(f"{BASE}/sc-1/fields", json={"path": "perspectives/fin/id", "value": "x"})
        assert res.status_code == 422

    def test_kpi_endpoints(self, client, scorecard_doc):
        res = client.post(f"{BASE}/sc-1/perspectives/cust/kpis")
        assert len(res.get_json()["content"]["perspectives"][1]["kpis"]) == 2
        res = client.delete(f"{BASE}/sc-1/perspectives/fin/kpis/k2")
        assert len(res.get_json()["content"]["perspectives"][0]["kpis"]) == 1

    def test_idp_endpoints(self, client, idp_doc):
        res = client.post(f"{BASE}/idp-1/actions/a1/toggle")
        assert res.get_json()["content"]["goals"][0]["actions"][0]["status"] == "in-progress"

        res = client.post(f"{BASE}/idp-1/goals", json={"goal": "Delegate more"})
        goal = res.get_json()["content"]["goals"][-1]
        assert goal["goal"] == "Delegate more"

        res = client.post(f"{BASE}/idp-1/goals/{goal['id']}/actions")
        action = res.get_json()["content"]["goals"][-1]["actions"][0]
        res = client.delete(f"{BASE}/idp-1/goals/{goal['id']}/actions/{action['id']}")
        assert res.get_json()["content"]["goals"][-1]["actions"] == []
        res = client.delete(f"{BASE}/idp-1/goals/{goal['id']}")
        assert len(res.get_json()["content"]["goals"]) == 2

    def test_wrong_kind_operation(self, client, kanban_doc):
        res = client.post(f"{BASE}/kb-1/actions/a1/toggle")
        assert res.status_code == 422

    def test_metrics_endpoint(self, client, scorecard_doc):
        res = client.get(f"{BASE}/sc-1/metrics")
        assert res.get_json()["overall_score"] == pytest.approx(85.0)


# ══════════════════════════════════════════════════════════════════════════════
# SUGGESTIONS
# ══════════════════════════════════════════════════════════════════════════════

class TestSuggestions:
    def _deliver(self, client, stype, change=None, sid="s1"):
        return client.post(f"{BASE}/sc-1/suggestions", json={
            "id": sid, "type": stype, "description": "d", "rationale": "r", "change": change or {},
        })

    def test_deliver_and_list(self, client, scorecard_doc):
        res = self._deliver(client, "general")
        assert res.status_code == 201
        assert res.get_json()["documentId"] == "sc-1"
        assert self._deliver(client, "general").get_json() == {"duplicate": True}
        assert len(client.get(f"{BASE}/sc-1/suggestions").get_json()) == 1

    def test_invalid_suggestion(self, client, scorecard_doc):
        res = self._deliver(client, "adjust-target", {"perspectiveId": "fin"})
        assert res.status_code == 422
        assert "change.kpiId" in res.get_json()["details"]

    def test_accept(self, client, scorecard_doc):
        self._deliver(client, "adjust-weight", {"perspectiveId": "fin", "kpiId": "k1", "value": 10})
        res = client.post(f"{BASE}/sc-1/suggestions/s1/accept")
        data = res.get_json()
        assert data["content"]["perspectives"][0]["kpis"][0]["weight"] == 10
        assert data["suggestions"] == []
        assert data["versions"]["count"] == 2

    def test_reject(self, client, scorecard_doc):
        self._deliver(client, "add-kpi", {"perspectiveId": "fin", "newKpi": {
            "name": "Cost", "target": 1, "current": 1, "unit": "$", "weight": 5,
        }})
        assert client.post(f"{BASE}/sc-1/suggestions/s1/reject").get_json()["rejected"] is True
        assert client.post(f"{BASE}/sc-1/suggestions/s1/reject").get_json()["rejected"] is False
        listed = client.get(f"{BASE}/sc-1/suggestions?include_resolved=false").get_json()
        assert listed == []

    def test_accept_unknown(self, client, scorecard_doc):
        assert client.post(f"{BASE}/sc-1/suggestions/nope/accept").status_code == 404


# ══════════════════════════════════════════════════════════════════════════════
# VERSIONS & EXPORT
# ══════════════════════════════════════════════════════════════════════════════

class TestVersions:
    def test_navigate(self, client, kanban_doc, kanban):
        client.post(f"{BASE}/kb-1/columns/doing/tasks")
        res = client.post(f"{BASE}/kb-1/versions/prev")
        assert res.get_json()["content"] == kanban
        assert res.get_json()["versions"]["is_current_version"] is False

        listed = client.get(f"{BASE}/kb-1/versions").get_json()
        assert listed["count"] == 2
        assert listed["current_index"] == 0
        assert [v["position"] for v in listed["versions"]] == [0, 1]
        assert "content" not in listed["versions"][0]

        res = client.post(f"{BASE}/kb-1/versions/next")
        assert res.get_json()["versions"]["is_current_version"] is True

    def test_bad_direction(self, client, kanban_doc):
        assert client.post(f"{BASE}/kb-1/versions/sideways").status_code == 422

    def test_export(self, client, kanban_doc, kanban):
        res = client.get(f"{BASE}/kb-1/export")
        assert res.mimetype == "text/plain"
        assert json.loads(res.get_data(as_text=True)) == kanban

    def test_unknown_route(self, client):
        res = client.get("/api/v1/nothing-here")
        assert res.status_code == 404
