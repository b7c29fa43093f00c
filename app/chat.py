"""
Terminal chat: talk to the agent from a shell (python -m app.main chat).

Each line typed is one turn and gets its own gate session. Delete requests are
sent straight to purge_documents once instead of going through the model.
"""

import logging
from typing import Callable

from app.agent.graph import run_agent
from app.agent.intents import is_delete_intent, is_exit_command
from app.agent.skills import result_text, run_skill
from app.core.config import AGENT_NAME, SKILL_GATE_POLICY
from app.core.skill_gate import SkillExecutionGate

logger = logging.getLogger(__name__)


def handle_turn(text: str, gate: SkillExecutionGate, turn: int) -> str:
    """Answer one chat turn on a fresh gate session."""
    gate.start_session(f"chat-{turn}")
    if is_delete_intent(text):
        logger.info("[chat] delete intent, calling purge_documents directly")
        return result_text(run_skill(gate, "purge_documents", {"confirmation": text}))
    return run_agent(text, gate)["answer"]


def run_chat(
    gate: SkillExecutionGate | None = None,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    if gate is None:
        gate = SkillExecutionGate(SKILL_GATE_POLICY)
    write(f"\n{AGENT_NAME} is ready!")
    write('Type your question below to talk to the agent. Type "exit" or "quit" to end the conversation.\n')
    turn = 0
    while True:
        try:
            text = read("You: ")
        except (EOFError, KeyboardInterrupt):
            break
        if is_exit_command(text):
            write("Goodbye!")
            break
        if not text.strip():
            continue
        turn += 1
        try:
            write(f"Assistant: {handle_turn(text, gate, turn)}\n")
        except Exception as e:
            logger.exception("[chat] turn failed")
            write(f"Error: {e}")
    write("Chat session ended.")
