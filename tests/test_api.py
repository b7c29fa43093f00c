"""
API tests: skills listing, single-skill execution with session reuse, batch
execution, prompt endpoint and error envelopes.

Each test builds its own app with a fresh SessionGateCache; skill externals are
patched where app.agent.skills imports them.
"""

import asyncio
import time
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from app.api.handlers import execute_skill
from app.core.skill_gate import GatePolicy, SessionGateCache, SkillExecutionGate, SkillState
from app.main import create_app
from app.services.ingestion_service import IndexResult

HITS = [{"id": 1, "text": "Bitcoin is digital cash.", "score": 0.9, "source": "bitcoin.pdf"}]


def _client(policy: GatePolicy = GatePolicy.STRICT_SINGLE_SKILL) -> TestClient:
    return TestClient(create_app(SessionGateCache(maxsize=8, policy=policy)))


@pytest.fixture
def client() -> TestClient:
    return _client()


@pytest.fixture
def pdf_file(tmp_path: Path) -> Path:
    p = tmp_path / "bitcoin.pdf"
    p.write_bytes(b"%PDF-1.4 fake")
    return p


def test_health(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "OK"
    assert data["timestamp"]


def test_list_skills(client: TestClient) -> None:
    r = client.get("/api/agent/skills")
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["data"]["agentName"] == "Book Assistant"
    names = [s["name"] for s in data["data"]["skills"]]
    assert "index_document" in names and "lookup_document" in names
    index_info = next(s for s in data["data"]["skills"] if s["name"] == "index_document")
    assert index_info["inputs"]["document_path"]["required"] is True


class TestSkillEndpoint:
    def test_runs_skill_and_returns_session(self, client: TestClient) -> None:
        with patch("app.agent.skills.search", return_value=HITS):
            r = client.post("/api/agent/skills/lookup_document", json={"user_query": "bitcoin"})
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["skill"] == "lookup_document"
        assert data["parameters"] == {"user_query": "bitcoin"}
        assert data["result"].startswith("✅ SEARCH COMPLETE")
        assert data["sessionId"].startswith("api-")

    def test_same_session_repost_is_blocked(self, client: TestClient, pdf_file: Path) -> None:
        headers = {"X-Session-Id": "s-repost"}
        with (
            patch("app.agent.skills.resolve_document_path", return_value=pdf_file),
            patch("app.agent.skills.check_connection"),
            patch(
                "app.agent.skills.index_document",
                return_value=IndexResult(source="bitcoin.pdf", chunks=4, inserted=4),
            ) as index_mock,
        ):
            first = client.post("/api/agent/skills/index_document", json={"document_path": "bitcoin.pdf"}, headers=headers)
            second = client.post("/api/agent/skills/index_document", json={"document_path": "bitcoin.pdf"}, headers=headers)
        assert first.status_code == 200 and second.status_code == 200
        assert "TASK COMPLETE" in first.json()["data"]["result"]
        blocked = second.json()["data"]["result"]
        assert blocked.startswith("✅ SUCCESS: Task was already completed successfully.")
        assert "bitcoin.pdf" in blocked
        assert second.json()["data"]["sessionId"] == "s-repost"
        assert index_mock.call_count == 1

    def test_without_session_header_each_post_runs(self, client: TestClient) -> None:
        with patch("app.agent.skills.search", return_value=HITS) as search_mock:
            client.post("/api/agent/skills/lookup_document", json={"user_query": "a"})
            client.post("/api/agent/skills/lookup_document", json={"user_query": "a"})
        assert search_mock.call_count == 2

    def test_unknown_skill_is_404(self, client: TestClient) -> None:
        r = client.post("/api/agent/skills/does_not_exist", json={})
        assert r.status_code == 404
        body = r.json()
        assert body["success"] is False
        assert body["skill"] == "does_not_exist"
        assert "not found" in body["error"]

    def test_missing_parameter_is_400_and_gate_untouched(self) -> None:
        gates = SessionGateCache(maxsize=8)
        client = TestClient(create_app(gates))
        r = client.post("/api/agent/skills/index_document", json={}, headers={"X-Session-Id": "s-bad"})
        assert r.status_code == 400
        assert r.json() == {
            "success": False,
            "error": "Missing required parameter(s) for index_document: document_path",
            "skill": "index_document",
        }
        assert "s-bad" not in gates

    def test_empty_body_for_skill_without_inputs(self, client: TestClient, tmp_path: Path) -> None:
        with patch("app.agent.skills.data_dir", return_value=tmp_path / "missing"):
            r = client.post("/api/agent/skills/list_documents")
        assert r.status_code == 200
        assert r.json()["data"]["result"].startswith("❌ Data directory does not exist")

    def test_unexpected_error_is_500(self, client: TestClient) -> None:
        with patch("app.api.handlers.execute_skill", side_effect=RuntimeError("kaboom")):
            r = client.post("/api/agent/skills/send_email", json={"to": "a@b.c"})
        assert r.status_code == 500
        assert r.json() == {"success": False, "error": "kaboom", "skill": "send_email"}


class TestExecuteAll:
    def test_route_is_not_taken_as_skill_name(self, client: TestClient) -> None:
        r = client.post("/api/agent/skills/execute-all", json={"skillsToExecute": []})
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["totalSkills"] == 0
        assert data["sessionId"].startswith("api-batch-")

    def test_strict_policy_runs_only_first_item(self, client: TestClient) -> None:
        body = {
            "skillsToExecute": [
                {"skillName": "lookup_document", "parameters": {"user_query": "bitcoin"}},
                {"skillName": "purge_documents", "parameters": {}},
            ]
        }
        with (
            patch("app.agent.skills.search", return_value=HITS) as search_mock,
            patch("app.agent.skills.purge_all_namespaces") as purge_mock,
        ):
            r = client.post("/api/agent/skills/execute-all", json=body)
        assert r.status_code == 200
        data = r.json()["data"]
        first, second = data["executedSkills"]
        assert first["success"] is True and "SEARCH COMPLETE" in first["result"]
        assert second["success"] is True
        assert second["result"] == (
            "✅ SUCCESS: The purge_documents operation was already completed successfully "
            "in this session. No further action needed."
        )
        assert search_mock.call_count == 1
        purge_mock.assert_not_called()
        assert data["totalSkills"] == 2 and data["successfulSkills"] == 2 and data["failedSkills"] == 0

    def test_per_skill_dedup_runs_distinct_skills(self) -> None:
        client = _client(GatePolicy.PER_SKILL_DEDUP)
        body = {
            "skillsToExecute": [
                {"skillName": "lookup_document", "parameters": {"user_query": "bitcoin"}},
                {"skillName": "purge_documents", "parameters": {}},
                {"skillName": "lookup_document", "parameters": {"user_query": "bitcoin"}},
            ]
        }
        with (
            patch("app.agent.skills.search", return_value=HITS) as search_mock,
            patch("app.agent.skills.purge_all_namespaces", return_value=["books"]) as purge_mock,
        ):
            data = client.post("/api/agent/skills/execute-all", json=body).json()["data"]
        results = [item["result"] for item in data["executedSkills"]]
        assert "DELETION COMPLETE" in results[1]
        assert results[2].startswith("✅ SUCCESS: Task was already completed successfully.")
        assert search_mock.call_count == 1
        assert purge_mock.call_count == 1

    def test_invalid_items_are_reported_as_failures(self, client: TestClient) -> None:
        body = {
            "skillsToExecute": [
                {"skillName": "nope", "parameters": {}},
                {"skillName": "index_document", "parameters": {}},
            ]
        }
        data = client.post("/api/agent/skills/execute-all", json=body).json()["data"]
        assert [i["success"] for i in data["executedSkills"]] == [False, False]
        assert "not found" in data["executedSkills"][0]["error"]
        assert "document_path" in data["executedSkills"][1]["error"]
        assert data["failedSkills"] == 2

    def test_session_id_in_body_is_reused(self, client: TestClient) -> None:
        body = {"skillsToExecute": [{"skillName": "send_email", "parameters": {"to": "a@b.c"}}], "sessionId": "batch-1"}
        first = client.post("/api/agent/skills/execute-all", json=body).json()["data"]
        second = client.post("/api/agent/skills/execute-all", json=body).json()["data"]
        assert first["sessionId"] == second["sessionId"] == "batch-1"
        assert isinstance(first["executedSkills"][0]["result"], dict)
        assert second["executedSkills"][0]["result"].startswith("✅ SUCCESS: Task was already completed")

    @pytest.mark.parametrize("body", [{}, {"skillsToExecute": "lookup_document"}, {"skillsToExecute": None}])
    def test_malformed_body_is_400_envelope(self, client: TestClient, body: dict) -> None:
        r = client.post("/api/agent/skills/execute-all", json=body)
        assert r.status_code == 400
        assert r.json() == {
            "success": False,
            "error": "skillsToExecute must be an array of skill execution objects",
        }

    def test_non_object_skill_parameters_are_400(self, client: TestClient) -> None:
        r = client.post("/api/agent/skills/send_email", json=["a@b.c"])
        assert r.status_code == 400
        body = r.json()
        assert body["success"] is False
        assert "detail" not in body


class TestPromptEndpoint:
    def test_empty_message_is_400(self, client: TestClient) -> None:
        r = client.post("/api/agent/prompt", json={"message": "   "})
        assert r.status_code == 400
        assert r.json() == {"success": False, "error": "message is required"}

    def test_missing_message_is_400(self, client: TestClient) -> None:
        assert client.post("/api/agent/prompt", json={}).status_code == 400

    def test_returns_agent_answer(self, client: TestClient) -> None:
        out = {"answer": "Bitcoin is digital cash.", "skills_used": ["lookup_document"]}
        with patch("app.api.handlers.run_agent", return_value=out) as agent_mock:
            r = client.post("/api/agent/prompt", json={"message": "what is bitcoin?", "sessionId": "p-1"})
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["prompt"] == "what is bitcoin?"
        assert data["response"] == "Bitcoin is digital cash."
        assert data["skillsUsed"] == ["lookup_document"]
        assert data["sessionId"] == "p-1"
        message, gate = agent_mock.call_args.args
        assert message == "what is bitcoin?"
        assert gate.session_id == "p-1"

    def test_agent_failure_is_500(self, client: TestClient) -> None:
        with patch("app.api.handlers.run_agent", side_effect=RuntimeError("llm down")):
            r = client.post("/api/agent/prompt", json={"message": "hi"})
        assert r.status_code == 500
        assert r.json()["error"] == "llm down"


class TestTimeout:
    def test_timeout_is_recorded_as_outcome(self) -> None:
        gate = SkillExecutionGate(GatePolicy.STRICT_SINGLE_SKILL)
        gate.start_session("slow")

        def slow_search(query):
            time.sleep(0.5)
            return HITS

        with patch("app.agent.skills.search", side_effect=slow_search):
            result = asyncio.run(execute_skill(gate, "lookup_document", {"user_query": "x"}, timeout=0.05))

        assert result == "❌ lookup_document timed out after 0.05s"
        assert gate.state("lookup_document") is SkillState.COMPLETED
        blocked = gate.describe_blocked("lookup_document")
        assert "timed out" in blocked
        assert "SEARCH COMPLETE" not in blocked
