"""
Tests for the skill registry and the gated handler contract (run_skill).

External services are patched where app.agent.skills imports them, so no
vector store, embeddings API or Open Library call is made.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from app.agent.skills import SKILLS, list_skills, result_text, run_skill, tool_schemas, validate_parameters
from app.core.errors import InvalidSkillParametersError, SkillNotFoundError
from app.core.skill_gate import GatePolicy, SkillExecutionGate, SkillState
from app.services.ingestion_service import DocumentInventory, IndexResult

HITS = [
    {"id": 1, "text": "Bitcoin is a peer-to-peer electronic cash system.", "score": 0.91, "source": "bitcoin.pdf"},
    {"id": 2, "text": "Second best.", "score": 0.5, "source": "bitcoin.pdf"},
]


@pytest.fixture
def gate() -> SkillExecutionGate:
    g = SkillExecutionGate(GatePolicy.PER_SKILL_DEDUP)
    g.start_session("test")
    return g


@pytest.fixture
def pdf_file(tmp_path: Path) -> Path:
    p = tmp_path / "bitcoin.pdf"
    p.write_bytes(b"%PDF-1.4 fake")
    return p


class TestRegistry:
    def test_all_skills_registered(self) -> None:
        assert set(SKILLS) == {
            "index_document",
            "lookup_document",
            "purge_documents",
            "get_document_info",
            "send_email",
            "list_documents",
        }

    def test_listing_has_name_description_inputs(self) -> None:
        for info in list_skills():
            assert set(info) == {"name", "description", "inputs"}
            assert info["description"]

    def test_tool_schema_required_inputs(self) -> None:
        schemas = {s["function"]["name"]: s["function"] for s in tool_schemas()}
        assert schemas["index_document"]["parameters"]["required"] == ["document_path"]
        assert schemas["send_email"]["parameters"]["required"] == ["to"]
        assert schemas["list_documents"]["parameters"]["properties"] == {}

    def test_validate_unknown_skill(self) -> None:
        with pytest.raises(SkillNotFoundError) as exc:
            validate_parameters("unknown_skill", {})
        assert exc.value.status_code == 404

    @pytest.mark.parametrize("params", [{}, {"document_path": ""}, {"document_path": "   "}, None])
    def test_validate_missing_required(self, params) -> None:
        with pytest.raises(InvalidSkillParametersError) as exc:
            validate_parameters("index_document", params)
        assert exc.value.missing == ["document_path"]
        assert exc.value.status_code == 400

    def test_validate_optional_inputs(self) -> None:
        assert validate_parameters("purge_documents", {}).name == "purge_documents"


class TestRunSkillContract:
    """Acquire, run once, record exactly one outcome, never raise for handler failures."""

    def test_second_call_is_blocked_without_side_effect(self, gate: SkillExecutionGate, pdf_file: Path) -> None:
        with (
            patch("app.agent.skills.resolve_document_path", return_value=pdf_file),
            patch("app.agent.skills.check_connection"),
            patch(
                "app.agent.skills.index_document",
                return_value=IndexResult(source="bitcoin.pdf", chunks=3, inserted=3),
            ) as index_mock,
        ):
            first = run_skill(gate, "index_document", {"document_path": "bitcoin.pdf"})
            second = run_skill(gate, "index_document", {"document_path": "bitcoin.pdf"})
        assert first.startswith("✅ TASK COMPLETE: Document bitcoin.pdf")
        assert second == gate.describe_blocked("index_document")
        assert "bitcoin.pdf" in second
        assert index_mock.call_count == 1

    def test_exception_becomes_prefixed_result(self, gate: SkillExecutionGate) -> None:
        with patch("app.agent.skills.search", side_effect=RuntimeError("milvus down")):
            result = run_skill(gate, "lookup_document", {"user_query": "bitcoin"})
        assert result == "❌ Error searching documents: milvus down"
        assert gate.state("lookup_document") is SkillState.COMPLETED
        assert "milvus down" in gate.describe_blocked("lookup_document")

    def test_strict_policy_blocks_other_skill(self) -> None:
        gate = SkillExecutionGate(GatePolicy.STRICT_SINGLE_SKILL)
        gate.start_session("s")
        with (
            patch("app.agent.skills.search", return_value=HITS),
            patch("app.agent.skills.purge_all_namespaces") as purge_mock,
        ):
            run_skill(gate, "lookup_document", {"user_query": "bitcoin"})
            blocked = run_skill(gate, "purge_documents", {})
        purge_mock.assert_not_called()
        assert blocked == (
            "✅ SUCCESS: The purge_documents operation was already completed successfully "
            "in this session. No further action needed."
        )

    def test_unknown_skill_raises_before_gate(self, gate: SkillExecutionGate) -> None:
        with pytest.raises(SkillNotFoundError):
            run_skill(gate, "nope", {})
        assert gate.executed_skills() == []

    def test_result_text(self) -> None:
        assert result_text("plain") == "plain"
        assert result_text({"message": "msg", "data": 1}) == "msg"
        assert result_text({"title": "Dune"}) == '{"title": "Dune"}'


class TestIndexDocument:
    def test_missing_file(self, gate: SkillExecutionGate, tmp_path: Path) -> None:
        missing = tmp_path / "nope.pdf"
        with patch("app.agent.skills.resolve_document_path", return_value=missing):
            result = run_skill(gate, "index_document", {"document_path": "nope.pdf"})
        assert result == f"File resolved path to {missing} does not exist"

    def test_connection_failure(self, gate: SkillExecutionGate, pdf_file: Path) -> None:
        with (
            patch("app.agent.skills.resolve_document_path", return_value=pdf_file),
            patch("app.agent.skills.check_connection", side_effect=RuntimeError("refused")),
            patch("app.agent.skills.index_document") as index_mock,
        ):
            result = run_skill(gate, "index_document", {"document_path": "bitcoin.pdf"})
        assert result == "Vector store connection failed: refused"
        index_mock.assert_not_called()

    def test_nothing_inserted(self, gate: SkillExecutionGate, pdf_file: Path) -> None:
        with (
            patch("app.agent.skills.resolve_document_path", return_value=pdf_file),
            patch("app.agent.skills.check_connection"),
            patch("app.agent.skills.index_document", return_value=IndexResult("bitcoin.pdf", 0, 0)),
        ):
            result = run_skill(gate, "index_document", {"document_path": "bitcoin.pdf"})
        assert result == "❌ Document bitcoin.pdf indexing failed - no result returned"


class TestLookupDocument:
    def test_returns_best_hit(self, gate: SkillExecutionGate) -> None:
        with patch("app.agent.skills.search", return_value=HITS) as search_mock:
            result = run_skill(gate, "lookup_document", {"user_query": "what is bitcoin"})
        search_mock.assert_called_once_with("what is bitcoin")
        assert result.startswith("✅ SEARCH COMPLETE: Found relevant content from bitcoin.pdf:")
        assert "peer-to-peer electronic cash" in result
        assert "Second best." not in result

    def test_no_hits(self, gate: SkillExecutionGate) -> None:
        with patch("app.agent.skills.search", return_value=[]):
            result = run_skill(gate, "lookup_document", {"user_query": "x"})
        assert result.startswith("❌ No relevant content found")


class TestPurgeDocuments:
    def test_purges_every_namespace(self, gate: SkillExecutionGate) -> None:
        with patch("app.agent.skills.purge_all_namespaces", return_value=["books", "notes"]) as purge_mock:
            result = run_skill(gate, "purge_documents", {"confirmation": "yes"})
        purge_mock.assert_called_once_with()
        assert result.startswith("✅ DELETION COMPLETE")
        assert "(Purged 2 namespaces: books, notes)" in result

    def test_failure_message(self, gate: SkillExecutionGate) -> None:
        with patch("app.agent.skills.purge_all_namespaces", side_effect=RuntimeError("boom")):
            assert run_skill(gate, "purge_documents", {}) == "Failed to delete documents: boom"

    def test_every_namespace_failing_is_reported_as_failure(self, gate: SkillExecutionGate) -> None:
        client = MagicMock()
        client.list_partitions.return_value = ["_default", "books"]
        client.delete.side_effect = RuntimeError("milvus down")
        with patch("app.services.vector_store.get_milvus_client", return_value=client):
            result = run_skill(gate, "purge_documents", {})
        assert result.startswith("Failed to delete documents: ")
        assert "milvus down" in result
        assert "DELETION COMPLETE" not in gate.describe_blocked("purge_documents")
        client.flush.assert_not_called()

    def test_partial_failure_still_purges_the_rest(self, gate: SkillExecutionGate) -> None:
        client = MagicMock()
        client.list_partitions.return_value = ["_default", "books"]
        client.delete.side_effect = [RuntimeError("busy"), None]
        with patch("app.services.vector_store.get_milvus_client", return_value=client):
            result = run_skill(gate, "purge_documents", {})
        assert "(Purged 1 namespaces: books)" in result


class TestDocumentInfo:
    def test_first_record(self, gate: SkillExecutionGate) -> None:
        records = [{"title": "Dune", "author_name": ["Frank Herbert"]}, {"title": "Dune Messiah"}]
        with patch("app.agent.skills.search_books", return_value=records):
            result = run_skill(gate, "get_document_info", {"document_name": "Dune"})
        assert result == records[0]
        assert "Dune" in gate.describe_blocked("get_document_info")

    def test_no_records(self, gate: SkillExecutionGate) -> None:
        with patch("app.agent.skills.search_books", return_value=[]):
            assert run_skill(gate, "get_document_info", {"document_name": "zzz"}) == "No information found for: zzz"


class TestSendEmail:
    def test_simulated_send_with_defaults(self, gate: SkillExecutionGate) -> None:
        result = run_skill(gate, "send_email", {"to": "a@example.com"})
        assert result["success"] is True
        assert result["data"]["subject"] == "No Subject"
        assert result["data"]["body"] == "No content"
        assert result["data"]["status"] == "simulated_sent"
        assert result["message"].startswith("✅ EMAIL SENT (SIMULATED)")
        assert "EMAIL SENT" not in gate.describe_blocked("send_email")


class TestListDocuments:
    def test_missing_data_dir(self, gate: SkillExecutionGate, tmp_path: Path) -> None:
        missing = tmp_path / "data"
        with patch("app.agent.skills.data_dir", return_value=missing):
            assert run_skill(gate, "list_documents", {}) == f"❌ Data directory does not exist: {missing}"

    def test_empty_data_dir(self, gate: SkillExecutionGate, tmp_path: Path) -> None:
        with (
            patch("app.agent.skills.data_dir", return_value=tmp_path),
            patch("app.agent.skills.build_inventory", return_value=DocumentInventory()),
        ):
            assert run_skill(gate, "list_documents", {}) == "📁 No PDF documents found in the data directory"

    def test_inventory(self, gate: SkillExecutionGate, tmp_path: Path) -> None:
        doc = {"name": "bitcoin.pdf", "size": 2048, "sizeFormatted": "2 KB"}
        inventory = DocumentInventory(data_directory=[doc], indexed=[doc], not_indexed=[])
        with (
            patch("app.agent.skills.data_dir", return_value=tmp_path),
            patch("app.agent.skills.build_inventory", return_value=inventory),
        ):
            result = run_skill(gate, "list_documents", {})
        assert result["indexed"] == [doc]
        assert result["notIndexed"] == []
        assert result["message"].startswith("✅ DOCUMENT LIST COMPLETE:")
        assert "• bitcoin.pdf (2 KB)" in result["summary"]
