"""
Skill execution gate: at-most-once skill execution per conversational session.

A driving language model may call the same tool several times in one turn (or
dispatch several tool calls before it sees any result). The gate sits in front
of every skill handler and lets a skill run once per session; repeated calls get
a "task already completed" message built from the first run's cached result.

Two policies:
    STRICT_SINGLE_SKILL: once any skill has been acquired, every further acquire
        in the session is denied, whatever the skill name.
    PER_SKILL_DEDUP: each skill name may be acquired once per session.

SessionGateCache keeps one gate per session id in a bounded LRU so concurrent
HTTP requests with different session ids do not reset each other. State is
process-local; multiple server instances need sticky session routing.
"""

import logging
import re
import threading
from collections import OrderedDict
from enum import Enum

logger = logging.getLogger(__name__)

# "✅ TASK COMPLETE:", "✅ SEARCH COMPLETE:", "✅ EMAIL SENT (SIMULATED):", ...
_STATUS_PREFIX = re.compile(r"^\s*✅\s*[A-Z][A-Z ()]*:\s*")
_NO_MORE_ACTIONS = "Do not perform any additional actions."


class GatePolicy(str, Enum):
    STRICT_SINGLE_SKILL = "strict_single_skill"
    PER_SKILL_DEDUP = "per_skill_dedup"

    @classmethod
    def parse(cls, value: "str | GatePolicy") -> "GatePolicy":
        """Accept 'strict_single_skill', 'strictSingleSkill', 'per-skill-dedup', ..."""
        if isinstance(value, GatePolicy):
            return value
        raw = str(value or "").strip()
        normalized = re.sub(r"(?<=[a-z])(?=[A-Z])", "_", raw).replace("-", "_").lower()
        for policy in cls:
            if policy.value == normalized:
                return policy
        raise ValueError(
            f"Unknown skill gate policy {value!r}; expected one of {[p.value for p in cls]}"
        )


class SkillState(str, Enum):
    NOT_RUN = "not_run"
    RUNNING = "running"
    COMPLETED = "completed"


class SkillExecutionGate:
    """Tracks which skills ran in the current session and what they returned."""

    def __init__(self, policy: GatePolicy | str = GatePolicy.STRICT_SINGLE_SKILL, session_id: str = "") -> None:
        self.policy = GatePolicy.parse(policy)
        self._lock = threading.Lock()
        self._session_id = session_id
        self._executed: list[str] = []
        self._results: dict[tuple[str, str], str] = {}
        self._any_executed = False

    @property
    def session_id(self) -> str:
        return self._session_id

    def _key(self, skill_name: str) -> tuple[str, str]:
        return (self._session_id, skill_name)

    def start_session(self, session_id: str) -> None:
        """Discard all records and cached results; make session_id the active session."""
        with self._lock:
            self._session_id = session_id
            self._executed.clear()
            self._results.clear()
            self._any_executed = False
        logger.info("[gate] new session=%s policy=%s", session_id, self.policy.value)

    def try_acquire(self, skill_name: str) -> bool:
        """
        Claim the right to run skill_name in the current session.

        True at most once per (session, skill); under STRICT_SINGLE_SKILL at most
        once per session across all skill names. Never raises.
        """
        with self._lock:
            if self.policy is GatePolicy.STRICT_SINGLE_SKILL and self._any_executed:
                logger.info(
                    "[gate] block %s session=%s: %s already ran in this session",
                    skill_name, self._session_id, ", ".join(self._executed),
                )
                return False
            if skill_name in self._executed:
                logger.info("[gate] block %s session=%s: already executed", skill_name, self._session_id)
                return False
            self._executed.append(skill_name)
            self._any_executed = True
        logger.info("[gate] allow %s session=%s", skill_name, self._session_id)
        return True

    def record_result(self, skill_name: str, result: str) -> None:
        """Cache the outcome of skill_name for the current session. First write wins."""
        key = self._key(skill_name)
        with self._lock:
            if key in self._results:
                logger.info("[gate] ignore late result for %s session=%s", skill_name, self._session_id)
                return
            stored = "" if result is None else str(result)
            self._results[key] = stored
        logger.info("[gate] %s completed session=%s result_len=%d", skill_name, key[0], len(stored))

    def describe_blocked(self, skill_name: str) -> str:
        """Message returned to a caller whose call to skill_name was denied."""
        with self._lock:
            cached = self._results.get(self._key(skill_name))
        if cached is not None:
            body = _STATUS_PREFIX.sub("", cached).strip()
            if body.endswith(_NO_MORE_ACTIONS):
                body = body[: -len(_NO_MORE_ACTIONS)].rstrip()
            parts = ("✅ SUCCESS: Task was already completed successfully.", body, "No further action needed.")
            return " ".join(p for p in parts if p)
        return (
            f"✅ SUCCESS: The {skill_name} operation was already completed successfully "
            "in this session. No further action needed."
        )

    def state(self, skill_name: str) -> SkillState:
        with self._lock:
            if self._key(skill_name) in self._results:
                return SkillState.COMPLETED
            if skill_name in self._executed:
                return SkillState.RUNNING
        return SkillState.NOT_RUN

    def executed_skills(self) -> list[str]:
        with self._lock:
            return list(self._executed)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "session_id": self._session_id,
                "policy": self.policy.value,
                "executed": list(self._executed),
                "completed": [name for (_, name) in self._results],
            }


class SessionGateCache:
    """
    Bounded LRU of gates keyed by session id.

    open() returns the gate already bound to a session id, or creates a gate and
    starts that session on it. Beyond maxsize the least recently used session is
    dropped; a dropped session id that comes back starts from a clean state.
    """

    def __init__(self, maxsize: int = 256, policy: GatePolicy | str = GatePolicy.STRICT_SINGLE_SKILL) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self.maxsize = maxsize
        self.policy = GatePolicy.parse(policy)
        self._gates: OrderedDict[str, SkillExecutionGate] = OrderedDict()
        self._lock = threading.Lock()

    def open(self, session_id: str) -> SkillExecutionGate:
        with self._lock:
            gate = self._gates.get(session_id)
            if gate is not None:
                self._gates.move_to_end(session_id)
                return gate
            gate = SkillExecutionGate(self.policy)
            gate.start_session(session_id)
            self._gates[session_id] = gate
            while len(self._gates) > self.maxsize:
                evicted, _ = self._gates.popitem(last=False)
                logger.info("[gate] evicted session=%s (cache size %d)", evicted, self.maxsize)
            return gate

    def get(self, session_id: str) -> SkillExecutionGate | None:
        with self._lock:
            return self._gates.get(session_id)

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._gates.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._gates

    def __len__(self) -> int:
        with self._lock:
            return len(self._gates)
