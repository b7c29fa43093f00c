"""
API handlers: open gate sessions, run skills / the agent off the event loop, map errors to HTTP.

Responsibility: Bridge HTTP types and the agent. Every request works against a
SkillExecutionGate taken from the app's SessionGateCache: a caller-supplied
session id reuses that session's gate, otherwise a fresh session is started.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.agent.graph import run_agent
from app.agent.skills import list_skills, run_skill, validate_parameters
from app.core.config import AGENT_ID, AGENT_NAME, SKILL_TIMEOUT_SECONDS
from app.core.errors import SkillError
from app.core.skill_gate import SessionGateCache, SkillExecutionGate, SkillState
from app.schemas.agent import (
    BatchData,
    BatchItem,
    BatchRequest,
    BatchResponse,
    PromptData,
    PromptRequest,
    PromptResponse,
    SkillResponse,
    SkillResultData,
    SkillsData,
    SkillsResponse,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_session_id(prefix: str = "api") -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def get_gates(request: Request) -> SessionGateCache:
    return request.app.state.skill_gates


def error_response(status_code: int, error: str, skill: str | None = None) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": error}
    if skill is not None:
        content["skill"] = skill
    return JSONResponse(status_code=status_code, content=content)


async def skill_error_handler(request: Request, exc: SkillError) -> JSONResponse:
    """Unknown skill → 404, missing parameters → 400; raised before any gate interaction."""
    logger.info("[api] rejected %s: %s", exc.skill_name, exc.message)
    return error_response(exc.status_code, exc.message, exc.skill_name)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies → 400 in the same envelope as every other error."""
    errors = exc.errors()
    if any("skillsToExecute" in (str(part) for part in e.get("loc", ())) for e in errors):
        message = "skillsToExecute must be an array of skill execution objects"
    else:
        message = "; ".join(
            f"{'.'.join(str(part) for part in e.get('loc', ()))}: {e.get('msg', '')}" for e in errors
        ) or "Invalid request body"
    logger.info("[api] invalid request %s %s: %s", request.method, request.url.path, message)
    return error_response(400, message)


async def execute_skill(
    gate: SkillExecutionGate,
    name: str,
    params: dict[str, Any],
    timeout: float | None = None,
) -> Any:
    """
    Run a skill in a worker thread under a timeout. On timeout a skill still
    running gets the timeout recorded as its outcome, so a retry in the same
    session sees the failure rather than a generic "already completed".
    """
    limit = timeout if timeout is not None else SKILL_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(asyncio.to_thread(run_skill, gate, name, params), timeout=limit)
    except asyncio.TimeoutError:
        message = f"❌ {name} timed out after {limit:g}s"
        logger.warning("[api:execute_skill] %s session=%s", message, gate.session_id)
        if gate.state(name) is SkillState.RUNNING:
            gate.record_result(name, message)
        return message


def handle_list_skills() -> SkillsResponse:
    return SkillsResponse(data=SkillsData(agentId=AGENT_ID, agentName=AGENT_NAME, skills=list_skills()))


async def handle_skill(
    request: Request,
    skill_name: str,
    parameters: dict[str, Any],
    session_id: str | None = None,
) -> SkillResponse | JSONResponse:
    validate_parameters(skill_name, parameters)
    sid = (session_id or "").strip() or new_session_id("api")
    gate = get_gates(request).open(sid)
    logger.info("[api:handle_skill] IN  skill=%s session=%s parameters=%r", skill_name, sid, parameters)
    try:
        result = await execute_skill(gate, skill_name, parameters)
    except Exception as e:
        logger.exception("[api:handle_skill] error executing skill %s", skill_name)
        return error_response(500, str(e) or "Unknown error", skill_name)
    return SkillResponse(
        data=SkillResultData(skill=skill_name, parameters=parameters, result=result, timestamp=_now(), sessionId=sid)
    )


async def handle_batch(request: Request, body: BatchRequest) -> BatchResponse:
    sid = (body.sessionId or "").strip() or new_session_id("api-batch")
    gate = get_gates(request).open(sid)
    logger.info("[api:handle_batch] IN  session=%s skills=%s", sid, [s.skillName for s in body.skillsToExecute])
    items: list[BatchItem] = []
    for execution in body.skillsToExecute:
        name, params = execution.skillName, execution.parameters
        try:
            validate_parameters(name, params)
            result = await execute_skill(gate, name, params)
        except SkillError as e:
            items.append(BatchItem(skill=name, parameters=params, success=False, error=e.message, timestamp=_now()))
            continue
        except Exception as e:
            logger.exception("[api:handle_batch] error executing skill %s", name)
            items.append(BatchItem(skill=name, parameters=params, success=False, error=str(e), timestamp=_now()))
            continue
        items.append(BatchItem(skill=name, parameters=params, success=True, result=result, timestamp=_now()))
    succeeded = sum(1 for i in items if i.success)
    return BatchResponse(
        data=BatchData(
            executedSkills=items,
            totalSkills=len(items),
            successfulSkills=succeeded,
            failedSkills=len(items) - succeeded,
            timestamp=_now(),
            sessionId=sid,
        )
    )


async def handle_prompt(request: Request, body: PromptRequest) -> PromptResponse | JSONResponse:
    message = (body.message or "").strip()
    if not message:
        return error_response(400, "message is required")
    sid = (body.sessionId or "").strip() or new_session_id("api-prompt")
    gate = get_gates(request).open(sid)
    logger.info("[api:handle_prompt] IN  session=%s message=%r", sid, message)
    try:
        out = await asyncio.to_thread(run_agent, message, gate)
    except ValueError as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.exception("[api:handle_prompt] agent failed")
        return error_response(500, str(e) or "Unknown error")
    return PromptResponse(
        data=PromptData(
            prompt=message,
            response=out["answer"],
            skillsUsed=out["skills_used"],
            timestamp=_now(),
            sessionId=sid,
        )
    )
