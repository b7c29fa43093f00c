"""
LangGraph agent: call_model → (run_skills → call_model)* → END.

The model decides which skills to call; every call goes through the session's
SkillExecutionGate, so a model that repeats a tool call (or fires several in
one turn) gets the cached "already completed" message instead of a second
side effect. Without OPENAI_API_KEY the agent answers with a plain completion
and no tools.
"""

import json
import logging
from typing import Literal, TypedDict

from langgraph.graph import END, StateGraph

from app.agent.llm import chat_with_tools, complete, tools_available
from app.agent.skills import result_text, run_skill, tool_schemas, validate_parameters
from app.core.config import AGENT_BEHAVIOR, AGENT_MAX_TOKENS, MAX_AGENTIC_ROUNDS
from app.core.errors import SkillError
from app.core.skill_gate import SkillExecutionGate, SkillState

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    f"{AGENT_BEHAVIOR} You can index PDF documents, look up content in indexed documents, purge the "
    "document store, fetch book metadata, list documents in the data directory and send (simulated) emails. "
    "Call at most one skill per user request. When a skill result says the task is complete or already "
    "completed, stop calling skills and answer the user with that result."
)


class AgentState(TypedDict):
    messages: list  # OpenAI chat messages
    pending: list  # tool calls requested by the last model turn
    skills_used: list
    rounds: int
    answer: str


def _call_model(state: AgentState) -> dict:
    rounds = (state.get("rounds") or 0) + 1
    messages = list(state.get("messages") or [])
    logger.info("[graph:call_model] IN  round=%d messages=%d", rounds, len(messages))
    content, tool_calls = chat_with_tools(messages, tool_schemas(), max_tokens=AGENT_MAX_TOKENS)
    if not tool_calls:
        logger.info("[graph:call_model] OUT final answer_len=%d", len(content or ""))
        return {"rounds": rounds, "pending": [], "answer": content or ""}
    messages.append({
        "role": "assistant",
        "content": content or "",
        "tool_calls": [
            {"id": tc["id"], "type": "function", "function": {"name": tc["name"], "arguments": json.dumps(tc["arguments"])}}
            for tc in tool_calls
        ],
    })
    return {"rounds": rounds, "pending": tool_calls, "messages": messages}


def _make_run_skills(gate: SkillExecutionGate):
    def _run_skills(state: AgentState) -> dict:
        messages = list(state.get("messages") or [])
        used = list(state.get("skills_used") or [])
        last = ""
        for tc in state.get("pending") or []:
            name = tc.get("name", "")
            try:
                validate_parameters(name, tc.get("arguments"))
            except SkillError as e:
                last = f"Error: {e.message}"
            else:
                acquirable = gate.state(name) is SkillState.NOT_RUN
                last = result_text(run_skill(gate, name, tc.get("arguments")))
                # only calls the gate let through count as used
                if acquirable and gate.state(name) is not SkillState.NOT_RUN:
                    used.append(name)
            logger.info("[graph:run_skills] %s -> result_len=%d", name, len(last))
            messages.append({"role": "tool", "tool_call_id": tc.get("id", ""), "content": last})
        return {"messages": messages, "skills_used": used, "pending": [], "answer": last}

    return _run_skills


def _route_after_model(state: AgentState) -> Literal["run_skills", "__end__"]:
    return "run_skills" if state.get("pending") else END


def _route_after_skills(state: AgentState) -> Literal["call_model", "__end__"]:
    # Out of rounds: the last skill result stands as the answer.
    if (state.get("rounds") or 0) >= MAX_AGENTIC_ROUNDS:
        logger.info("[graph:route_after_skills] max rounds reached (%d)", MAX_AGENTIC_ROUNDS)
        return END
    return "call_model"


def build_graph(gate: SkillExecutionGate):
    graph = StateGraph(AgentState)
    graph.add_node("call_model", _call_model)
    graph.add_node("run_skills", _make_run_skills(gate))
    graph.set_entry_point("call_model")
    graph.add_conditional_edges("call_model", _route_after_model)
    graph.add_conditional_edges("run_skills", _route_after_skills)
    return graph.compile()


def run_agent(message: str, gate: SkillExecutionGate) -> dict:
    """
    Answer one user message. The caller owns the gate and must have started the
    session for this turn. Returns {"answer": str, "skills_used": list[str]}.
    """
    if not message or not str(message).strip():
        raise ValueError("message is required")
    text = str(message).strip()
    messages = [{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": text}]
    logger.info("[run_agent] START session=%s message=%r", gate.session_id, text)

    if not tools_available():
        answer = complete(messages, max_tokens=AGENT_MAX_TOKENS) or "I couldn't complete the request (no LLM configured)."
        return {"answer": answer, "skills_used": []}

    initial: AgentState = {"messages": messages, "pending": [], "skills_used": [], "rounds": 0, "answer": ""}
    final = build_graph(gate).invoke(initial)
    answer = (final.get("answer") or "").strip() or "I couldn't complete the request."
    skills_used = list(final.get("skills_used") or [])
    logger.info("[run_agent] END skills_used=%s answer_len=%d", skills_used, len(answer))
    return {"answer": answer, "skills_used": skills_used}
