"""
Agent LLM: OpenAI (primary, supports tool calling) or Hugging Face router (fallback, text only).
"""

import json
import logging
from typing import Any

import httpx
from openai import OpenAI

from app.core.config import (
    HF_API_KEY,
    HF_CHAT_URL,
    HF_LLM_MODEL,
    LLM_API_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_LLM_MODEL,
)

logger = logging.getLogger(__name__)


def tools_available() -> bool:
    """Tool calling needs OpenAI; the HF fallback only generates text."""
    return bool(OPENAI_API_KEY)


def _openai_client() -> OpenAI:
    return OpenAI(api_key=OPENAI_API_KEY, timeout=LLM_API_TIMEOUT)


def _call_openai(messages: list[dict[str, Any]], max_tokens: int) -> str:
    response = _openai_client().chat.completions.create(
        model=OPENAI_LLM_MODEL,
        messages=messages,
        max_tokens=max_tokens,
    )
    msg = response.choices[0].message if response.choices else None
    out = ((msg.content if msg else None) or "").strip()
    logger.info("[llm:openai] OUT response_len=%d", len(out))
    return out


def _call_hf(messages: list[dict[str, Any]], max_tokens: int) -> str:
    if not HF_API_KEY:
        logger.warning("[llm:hf] no HF_API_KEY")
        return ""
    headers = {"Authorization": f"Bearer {HF_API_KEY}", "Content-Type": "application/json"}
    payload = {"model": HF_LLM_MODEL, "messages": messages, "max_tokens": max_tokens}
    try:
        with httpx.Client(timeout=LLM_API_TIMEOUT) as client:
            response = client.post(HF_CHAT_URL, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.warning("[llm:hf] request failed: %s", e)
        return ""
    if response.status_code != 200:
        logger.warning("[llm:hf] HF LLM error %s: %s", response.status_code, response.text[:200])
        return ""
    choices = response.json().get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    out = ((choices[0].get("message") or {}).get("content") or "").strip()
    logger.info("[llm:hf] OUT response_len=%d", len(out))
    return out


def complete(messages: list[dict[str, Any]], max_tokens: int = 256) -> str:
    """
    Plain chat completion. Uses OpenAI when OPENAI_API_KEY is set; falls back to
    Hugging Face when OpenAI is not configured, fails, or returns nothing.
    """
    logger.info("[llm:complete] IN  messages=%d max_tokens=%d", len(messages), max_tokens)
    if OPENAI_API_KEY:
        try:
            out = _call_openai(messages, max_tokens)
        except Exception as e:
            logger.warning("[llm:complete] OpenAI failed, falling back to Hugging Face: %s", e)
            out = ""
        if out:
            return out
    return _call_hf(messages, max_tokens)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def chat_with_tools(
    messages: list[dict[str, Any]],
    tools: list[dict[str, Any]],
    max_tokens: int = 512,
) -> tuple[str | None, list[dict[str, Any]]]:
    """
    One OpenAI tool-calling round. Returns (content, tool_calls) where each tool
    call is {"id", "name", "arguments": dict}. An empty tool_calls list means
    content is the final answer.
    """
    response = _openai_client().chat.completions.create(
        model=OPENAI_LLM_MODEL,
        messages=messages,
        tools=tools,
        max_tokens=max_tokens,
    )
    msg = response.choices[0].message if response.choices else None
    if msg is None:
        return None, []
    content = (msg.content or "").strip() or None
    tool_calls = []
    for tc in msg.tool_calls or []:
        fn = getattr(tc, "function", None)
        if fn is None or not fn.name:
            continue
        tool_calls.append({"id": tc.id or "", "name": fn.name, "arguments": _parse_arguments(fn.arguments)})
    if tool_calls:
        logger.info("[llm:chat_with_tools] OUT tool_calls=%s", [t["name"] for t in tool_calls])
    else:
        logger.info("[llm:chat_with_tools] OUT content_len=%d", len(content or ""))
    return content, tool_calls
