"""
Deterministic intent checks used by the chat front-ends before involving the LLM.

Delete requests skip the model entirely and call purge_documents once, so a
model can never loop on a destructive tool.
"""

_DELETE_PHRASES = ("delete all", "clear database", "purge database")
_DELETE_TARGETS = ("pdf", "book", "document")


def is_delete_intent(text: str) -> bool:
    t = (text or "").lower()
    if t.strip() == "purge":
        return True
    if any(p in t for p in _DELETE_PHRASES):
        return True
    return "delete" in t and any(target in t for target in _DELETE_TARGETS)


def is_exit_command(text: str) -> bool:
    return (text or "").strip().lower() in ("exit", "quit")
