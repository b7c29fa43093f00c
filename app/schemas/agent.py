"""Schemas for the agent endpoints (health, skills, batch execution, prompt)."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str = Field("OK", description="Always OK when the process is serving.")
    timestamp: str


class SkillInfo(BaseModel):
    name: str
    description: str
    inputs: dict[str, dict[str, Any]] = Field(default_factory=dict)


class SkillsData(BaseModel):
    agentId: str
    agentName: str
    skills: list[SkillInfo]


class SkillsResponse(BaseModel):
    success: bool = True
    data: SkillsData


class SkillResultData(BaseModel):
    skill: str
    parameters: dict[str, Any]
    result: Any = Field(None, description="Handler result (string or structured), or the gate's blocked message.")
    timestamp: str
    sessionId: str


class SkillResponse(BaseModel):
    success: bool = True
    data: SkillResultData


class SkillExecution(BaseModel):
    skillName: str = Field(..., min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)


class BatchRequest(BaseModel):
    """Request body for POST /api/agent/skills/execute-all. All items share one gate session."""

    skillsToExecute: list[SkillExecution]
    sessionId: str | None = Field(None, description="Reuse a gate session; a new one is created when omitted.")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "skillsToExecute": [
                        {"skillName": "lookup_document", "parameters": {"user_query": "What is Bitcoin?"}},
                        {"skillName": "purge_documents", "parameters": {}},
                    ]
                }
            ]
        }
    )


class BatchItem(BaseModel):
    skill: str
    parameters: dict[str, Any]
    success: bool
    result: Any = None
    error: str | None = None
    timestamp: str


class BatchData(BaseModel):
    executedSkills: list[BatchItem]
    totalSkills: int
    successfulSkills: int
    failedSkills: int
    timestamp: str
    sessionId: str


class BatchResponse(BaseModel):
    success: bool = True
    data: BatchData


class PromptRequest(BaseModel):
    message: str | None = Field(None, description="Natural-language request for the agent.")
    sessionId: str | None = None


class PromptData(BaseModel):
    prompt: str
    response: str
    skillsUsed: list[str] = Field(default_factory=list)
    timestamp: str
    sessionId: str


class PromptResponse(BaseModel):
    success: bool = True
    data: PromptData
