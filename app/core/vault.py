"""
Secrets vault: a JSON file mapping provider names to API keys.

Shape: {"default": {"openai": "...", "huggingface": "...", "milvus": "..."}}.
Read once at startup by app.core.config; written by scripts/setup_vault.py.
"""

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "default"

# vault provider name -> environment variable that overrides / seeds it
PROVIDER_ENV_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "huggingface": "HF_API_KEY",
    "milvus": "MILVUS_TOKEN",
    "groq": "GROQ_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def default_vault_path() -> Path:
    return Path(os.getenv("VAULT_PATH", "").strip() or Path.home() / ".book-assistant" / "vault.json")


def load_vault(path: Path | str | None = None, scope: str = DEFAULT_SCOPE) -> dict[str, str]:
    """Return provider -> key for the given scope. Missing or unreadable file -> {}."""
    vault_path = Path(path) if path else default_vault_path()
    if not vault_path.is_file():
        return {}
    try:
        data = json.loads(vault_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("[vault] could not read %s: %s", vault_path, e)
        return {}
    entries = data.get(scope) if isinstance(data, dict) else None
    if not isinstance(entries, dict):
        return {}
    return {str(k): str(v) for k, v in entries.items() if v}


def write_vault(
    keys: dict[str, str],
    path: Path | str | None = None,
    scope: str = DEFAULT_SCOPE,
    merge: bool = True,
) -> Path:
    """
    Write keys under scope. With merge=True, existing entries are kept unless
    keys provides a non-empty replacement.
    """
    vault_path = Path(path) if path else default_vault_path()
    data: dict = {}
    if merge and vault_path.is_file():
        try:
            data = json.loads(vault_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("[vault] replacing unreadable vault %s: %s", vault_path, e)
            data = {}
    if not isinstance(data, dict):
        data = {}
    current = data.get(scope) if isinstance(data.get(scope), dict) else {}
    for name, value in keys.items():
        if value:
            current[name] = value
        else:
            current.setdefault(name, "")
    data[scope] = current
    vault_path.parent.mkdir(parents=True, exist_ok=True)
    vault_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    logger.info("[vault] wrote %s providers=%s", vault_path, sorted(k for k, v in current.items() if v))
    return vault_path


def keys_from_env() -> dict[str, str]:
    return {name: os.getenv(env, "").strip() for name, env in PROVIDER_ENV_VARS.items()}
