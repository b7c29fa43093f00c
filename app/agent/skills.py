"""
Agent skills: registry, input schemas, and gated handlers.

Skills: index_document, lookup_document, purge_documents, get_document_info,
send_email (simulated), list_documents.

Every call goes through run_skill(), which enforces the handler contract
against a SkillExecutionGate: acquire first, return the blocked message when
denied, record exactly one outcome on every exit path, and turn exceptions into
descriptive strings. The gate is passed in by the caller (HTTP request, chat
turn, agent loop); nothing here holds session state.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from app.core.errors import InvalidSkillParametersError, SkillNotFoundError
from app.core.skill_gate import SkillExecutionGate
from app.services.ingestion_service import build_inventory, data_dir, index_document, resolve_document_path
from app.services.openlibrary import search_books
from app.services.vector_store import check_connection, purge_all_namespaces, search

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Skill:
    name: str
    description: str
    handler: Callable[[dict[str, Any]], Any]
    error_prefix: str
    inputs: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def required_inputs(self) -> list[str]:
        return [k for k, v in self.inputs.items() if v.get("required")]

    def info(self) -> dict[str, Any]:
        """Name/description/inputs triple for the skills listing endpoint."""
        return {"name": self.name, "description": self.description, "inputs": self.inputs}

    def tool_schema(self) -> dict[str, Any]:
        """OpenAI function-calling definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        k: {"type": "string", "description": v["description"]} for k, v in self.inputs.items()
                    },
                    "required": self.required_inputs,
                },
            },
        }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- Handlers: one unit of external work each. They may raise; run_skill() converts. ---

def _index_document(params: dict[str, Any]) -> str:
    document_path = str(params.get("document_path") or "").strip()
    path = resolve_document_path(document_path)
    logger.info("[skills:index_document] IN  document_path=%r resolved=%s", document_path, path)
    if not path.is_file():
        return f"File resolved path to {path} does not exist"
    try:
        check_connection()
    except Exception as e:
        logger.warning("[skills:index_document] vector store connection failed: %s", e)
        return f"Vector store connection failed: {e}"
    result = index_document(path)
    if not result.inserted:
        return f"❌ Document {result.source} indexing failed - no result returned"
    return (
        f"✅ TASK COMPLETE: Document {result.source} has been successfully indexed in the vector database. "
        "The indexing operation is finished. Do not perform any additional actions."
    )


def _lookup_document(params: dict[str, Any]) -> str:
    query = str(params.get("user_query") or "").strip()
    hits = search(query)
    if not hits:
        return (
            "❌ No relevant content found in the indexed documents. Please make sure documents are "
            "indexed first using the 'index_document' skill."
        )
    best = hits[0]
    text = best.get("text") or "No text found in result"
    source = best.get("source") or "PDF Document"
    return (
        f"✅ SEARCH COMPLETE: Found relevant content from {source}:\n\n{text}\n\n"
        "The search operation is finished. Do not perform any additional actions."
    )


def _purge_documents(params: dict[str, Any]) -> str:
    logger.info("[skills:purge_documents] IN  confirmation=%r", params.get("confirmation"))
    purged = purge_all_namespaces()
    return (
        "✅ DELETION COMPLETE: All PDF documents have been successfully removed from the vector database. "
        f"The database is now empty. (Purged {len(purged)} namespaces: {', '.join(purged)}) "
        "Do not perform any additional actions."
    )


def _get_document_info(params: dict[str, Any]) -> dict[str, Any] | str:
    name = str(params.get("document_name") or "").strip()
    records = search_books(name)
    if not records:
        return f"No information found for: {name}"
    return records[0]


def _send_email(params: dict[str, Any]) -> dict[str, Any]:
    to = str(params.get("to") or "").strip()
    subject = params.get("subject") or "No Subject"
    body = params.get("body") or "No content"
    logger.info("[skills:send_email] simulated to=%s subject=%r body_len=%d", to, subject, len(body))
    message = (
        f"✅ EMAIL SENT (SIMULATED): Email successfully sent to {to} with subject \"{subject}\". "
        "This is a demonstration - no actual email was sent."
    )
    return {
        "success": True,
        "data": {"to": to, "subject": subject, "body": body, "timestamp": _now(), "status": "simulated_sent"},
        "message": message,
    }


def _list_documents(params: dict[str, Any]) -> dict[str, Any] | str:
    root = data_dir()
    if not root.is_dir():
        return f"❌ Data directory does not exist: {root}"
    inventory = build_inventory()
    if not inventory.data_directory:
        return "📁 No PDF documents found in the data directory"
    summary = inventory.summary()
    message = (
        f"✅ DOCUMENT LIST COMPLETE:\n\n{summary}\n\n"
        "The document listing operation is finished. Use 'index_document' skill to index any missing documents."
    )
    return {
        "dataDirectory": inventory.data_directory,
        "indexed": inventory.indexed,
        "notIndexed": inventory.not_indexed,
        "summary": summary,
        "message": message,
    }


SKILLS: dict[str, Skill] = {
    s.name: s
    for s in (
        Skill(
            name="index_document",
            description=(
                "Use this skill to index a document in a vector database. The user can provide just the "
                'filename (e.g., "bitcoin.pdf"), keyword: store documents, read documents, save pdf etc.'
            ),
            handler=_index_document,
            error_prefix="❌ Error indexing document",
            inputs={
                "document_path": {
                    "description": (
                        'Name of the document file (e.g., "bitcoin.pdf"). The system will automatically look in '
                        'the data directory. You can also provide full paths like "data/bitcoin.pdf"'
                    ),
                    "required": True,
                },
            },
        ),
        Skill(
            name="lookup_document",
            description=(
                "Use this skill ONCE to lookup content. Use this skill for read document, find information "
                "from document, extract text from document."
            ),
            handler=_lookup_document,
            error_prefix="❌ Error searching documents",
            inputs={"user_query": {"description": "The search query to find in documents", "required": True}},
        ),
        Skill(
            name="purge_documents",
            description=(
                "Use this skill to remove all indexed documents from the vector database. WARNING: This will "
                "delete all data! Only call this once per user request."
            ),
            handler=_purge_documents,
            error_prefix="Failed to delete documents",
            inputs={
                "confirmation": {
                    "description": 'Set to "yes" to confirm deletion of all documents',
                    "required": False,
                },
            },
        ),
        Skill(
            name="get_document_info",
            description="Use this skill to get information about a document/book",
            handler=_get_document_info,
            error_prefix="Error fetching document info",
            inputs={
                "document_name": {
                    "description": "This need to be a name of a document/book, extract it from the user query",
                    "required": True,
                },
            },
        ),
        Skill(
            name="send_email",
            description="Send an email to specified recipients with subject and body content",
            handler=_send_email,
            error_prefix="❌ Error sending email",
            inputs={
                "to": {"description": "Email recipient address (required)", "required": True},
                "subject": {"description": 'Email subject line (optional, defaults to "No Subject")', "required": False},
                "body": {"description": 'Email body content (optional, defaults to "No content")', "required": False},
            },
        ),
        Skill(
            name="list_documents",
            description=(
                "Use this skill to get a list of all PDF documents in the data directory and their indexing "
                "status in the vector database."
            ),
            handler=_list_documents,
            error_prefix="❌ Error listing documents",
        ),
    )
}


def get_skill(name: str) -> Skill:
    skill = SKILLS.get(name)
    if skill is None:
        raise SkillNotFoundError(name)
    return skill


def list_skills() -> list[dict[str, Any]]:
    return [s.info() for s in SKILLS.values()]


def tool_schemas() -> list[dict[str, Any]]:
    return [s.tool_schema() for s in SKILLS.values()]


def validate_parameters(name: str, params: dict[str, Any] | None) -> Skill:
    """Raise SkillNotFoundError / InvalidSkillParametersError; no gate interaction."""
    skill = get_skill(name)
    args = params or {}
    missing = [k for k in skill.required_inputs if not str(args.get(k) or "").strip()]
    if missing:
        raise InvalidSkillParametersError(name, missing)
    return skill


def result_text(result: Any) -> str:
    """String form of a handler outcome, as stored in the gate."""
    if isinstance(result, str):
        return result
    if isinstance(result, dict) and isinstance(result.get("message"), str):
        return result["message"]
    return json.dumps(result, default=str)


def run_skill(gate: SkillExecutionGate, name: str, params: dict[str, Any] | None = None) -> Any:
    """
    Run one skill through the gate. Returns the handler's result (str or dict),
    or the gate's blocked message when the call is denied. Never raises for
    handler failures; raises SkillNotFoundError for unknown names.
    """
    skill = get_skill(name)
    args = params or {}
    if not gate.try_acquire(name):
        blocked = gate.describe_blocked(name)
        logger.info("[skills:run_skill] %s blocked session=%s", name, gate.session_id)
        return blocked
    try:
        result = skill.handler(args)
    except Exception as e:
        logger.exception("[skills:run_skill] %s failed", name)
        result = f"{skill.error_prefix}: {e}"
    gate.record_result(name, result_text(result))
    logger.info("[skills:run_skill] OUT %s session=%s", name, gate.session_id)
    return result
