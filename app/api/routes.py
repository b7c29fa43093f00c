"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Header, Request

from app.api.handlers import handle_batch, handle_list_skills, handle_prompt, handle_skill
from app.schemas.agent import (
    BatchRequest,
    BatchResponse,
    HealthResponse,
    PromptRequest,
    PromptResponse,
    SkillResponse,
    SkillsResponse,
)

router = APIRouter()


# --- System ---

@router.get("/health", response_model=HealthResponse, tags=["system"])
def health() -> HealthResponse:
    return HealthResponse(status="OK", timestamp=datetime.now(timezone.utc).isoformat())


# --- Skills ---

@router.get(
    "/api/agent/skills",
    response_model=SkillsResponse,
    tags=["skills"],
    summary="List available skills",
)
def get_skills() -> SkillsResponse:
    return handle_list_skills()


# Declared before /{skill_name} so "execute-all" is not taken for a skill name.
@router.post(
    "/api/agent/skills/execute-all",
    response_model=BatchResponse,
    tags=["skills"],
    summary="Execute several skills in one gate session",
    description="All items share one session; under the strict single-skill policy only the first item runs.",
)
async def post_execute_all(request: Request, body: BatchRequest) -> BatchResponse:
    return await handle_batch(request, body)


@router.post(
    "/api/agent/skills/{skill_name}",
    response_model=SkillResponse,
    tags=["skills"],
    summary="Execute one skill",
    description=(
        "Body is the skill's parameters. Pass X-Session-Id to reuse a gate session; "
        "a new session is started otherwise. 404 unknown skill, 400 missing parameter."
    ),
)
async def post_skill(
    request: Request,
    skill_name: str,
    parameters: dict[str, Any] | None = Body(default=None),
    x_session_id: str | None = Header(default=None),
):
    return await handle_skill(request, skill_name, parameters or {}, x_session_id)


# --- Prompt ---

@router.post(
    "/api/agent/prompt",
    response_model=PromptResponse,
    tags=["agent"],
    summary="Send a natural-language prompt to the agent",
)
async def post_prompt(request: Request, body: PromptRequest):
    return await handle_prompt(request, body)
