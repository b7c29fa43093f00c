"""
Application configuration (env, vault secrets, constants).

Responsibility: Centralize config loading so the rest of the app does not care
whether a key came from the environment, .env, or the secrets vault file.
Environment variables win over vault entries.
"""

import os

from dotenv import load_dotenv

from app.core.vault import load_vault

load_dotenv()

_VAULT = load_vault()


def _secret(env_name: str, provider: str) -> str:
    return os.getenv(env_name, "").strip() or _VAULT.get(provider, "").strip()


# Agent identity (the namespace keeps this agent's vectors apart from others)
AGENT_ID: str = "book-assistant"
AGENT_NAME: str = "Book Assistant"
AGENT_BEHAVIOR: str = "You are a helpful document assistant."

# Documents to index live here (bare file names are resolved against it)
DATA_DIR_NAME: str = os.getenv("DATA_DIR", "data").strip() or "data"

# Chunking defaults (tuning these affects retrieval quality)
CHUNK_SIZE: int = 500
CHUNK_OVERLAP: int = 50

# Milvus Cloud
MILVUS_URI: str = os.getenv("MILVUS_URI", "").strip()
MILVUS_TOKEN: str = _secret("MILVUS_TOKEN", "milvus")
COLLECTION_NAME: str = os.getenv("MILVUS_COLLECTION", "ilts").strip() or "ilts"
NAMESPACE: str = os.getenv("VECTOR_NAMESPACE", "books").strip() or "books"

# Embeddings (all-MiniLM-L6-v2 = 384 dims)
HF_API_KEY: str = _secret("HF_API_KEY", "huggingface")
HF_EMBED_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
VECTOR_DIM: int = 384
EMBED_BATCH_SIZE: int = 32

# Similarity search
LOOKUP_TOP_K: int = 3
LIST_SCAN_LIMIT: int = 16_384

# Open Library (no key required)
OPENLIBRARY_SEARCH_URL: str = "https://openlibrary.org/search.json"

# Timeouts (seconds)
EMBED_API_TIMEOUT: float = 30.0
LLM_API_TIMEOUT: float = 60.0
TOOLS_HTTP_TIMEOUT: float = 15.0
SKILL_TIMEOUT_SECONDS: float = float(os.getenv("SKILL_TIMEOUT_SECONDS", "120") or 120)

# Skill gate: "strict_single_skill" (one skill per session) or "per_skill_dedup"
# (each skill once per session).
SKILL_GATE_POLICY: str = os.getenv("SKILL_GATE_POLICY", "strict_single_skill").strip() or "strict_single_skill"
GATE_SESSION_CACHE_SIZE: int = int(os.getenv("GATE_SESSION_CACHE_SIZE", "256") or 256)

# OpenAI (agent LLM with tool calling)
OPENAI_API_KEY: str = _secret("OPENAI_API_KEY", "openai")
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)

# HF chat (fallback when OPENAI_API_KEY is not set; no tool calling)
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.2-3B-Instruct").strip()
    or "meta-llama/Llama-3.2-3B-Instruct"
)

# Agent loop
MAX_AGENTIC_ROUNDS: int = 6
AGENT_MAX_TOKENS: int = 512

# HTTP server
PORT: int = int(os.getenv("PORT", "5000") or 5000)
