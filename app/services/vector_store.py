"""
Vector store client: Milvus Cloud collection, HF Inference API embeddings, namespaces.

Responsibility: Embed texts with all-MiniLM-L6-v2, keep each agent's chunks in
its own namespace (a Milvus partition of the collection), and expose the
insert / search / purge / list operations the skills need.
"""

import logging
from typing import Any

import httpx

from app.core.config import (
    COLLECTION_NAME,
    EMBED_API_TIMEOUT,
    EMBED_BATCH_SIZE,
    HF_API_KEY,
    HF_EMBED_MODEL,
    LIST_SCAN_LIMIT,
    LOOKUP_TOP_K,
    MILVUS_TOKEN,
    MILVUS_URI,
    NAMESPACE,
    VECTOR_DIM,
)
from app.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

HF_EMBED_URLS = (
    f"https://router.huggingface.co/hf-inference/models/{HF_EMBED_MODEL}/pipeline/feature-extraction",
    f"https://api-inference.huggingface.co/models/{HF_EMBED_MODEL}",
)
OUTPUT_FIELDS = ["text", "source", "chunk_id", "indexed_at"]


def _unit(vec: list[float]) -> list[float]:
    norm = sum(x * x for x in vec) ** 0.5 or 1.0
    return [x / norm for x in vec]


def _post_batch(client: httpx.Client, batch: list[str], headers: dict[str, str]) -> list[list[float]]:
    """POST one batch, trying the router URL first and the standard endpoint on 403/transport errors."""
    payload = {"inputs": batch, "options": {"wait_for_model": True}}
    response: httpx.Response | None = None
    last_error = ""
    for url in HF_EMBED_URLS:
        try:
            response = client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            last_error = str(e)
            if url == HF_EMBED_URLS[-1]:
                raise
            continue
        if response.status_code == 403 and url != HF_EMBED_URLS[-1]:
            last_error = response.text
            continue
        break

    if response is None or response.status_code != 200:
        detail = response.text if response is not None else last_error
        status = response.status_code if response is not None else None
        if status == 401:
            raise ValueError("Invalid HF API key. Check HF_API_KEY at https://huggingface.co/settings/tokens")
        if status == 403:
            raise ValueError(f"HF token lacks Inference API permission. {detail}")
        if status == 503:
            raise RuntimeError(f"HF model is loading. Retry later. {detail}")
        raise RuntimeError(f"HF API error: {detail}")

    data = response.json()
    if isinstance(data, list) and data and isinstance(data[0], list):
        return data
    items = data if isinstance(data, list) else [data]
    return [item if isinstance(item, list) else [item] for item in items]


def embed_texts(texts: list[str], batch_size: int | None = None) -> list[list[float]]:
    """
    Embed texts in batches via the HF Inference API.
    Returns unit-length 384-dim vectors (the collection uses COSINE).
    """
    if not texts:
        return []
    if not HF_API_KEY:
        raise ServiceUnavailableError(
            "HF_API_KEY must be set (env or vault). Get a token from https://huggingface.co/settings/tokens"
        )
    size = batch_size or EMBED_BATCH_SIZE
    headers = {"Authorization": f"Bearer {HF_API_KEY}", "Content-Type": "application/json"}
    vectors: list[list[float]] = []
    with httpx.Client(timeout=EMBED_API_TIMEOUT) as client:
        for start in range(0, len(texts), size):
            vectors.extend(_unit(v) for v in _post_batch(client, texts[start : start + size], headers))
    logger.info("[vector_store:embed_texts] OUT vectors=%d", len(vectors))
    return vectors


def get_milvus_client() -> Any:
    """
    Connect to Milvus Cloud. Creates the collection (dim 384, COSINE, dynamic
    fields) when it does not exist yet.
    """
    if not MILVUS_URI or not MILVUS_TOKEN:
        raise ServiceUnavailableError("MILVUS_URI and MILVUS_TOKEN must be set (env or vault)")

    from pymilvus import MilvusClient

    client = MilvusClient(uri=MILVUS_URI, token=MILVUS_TOKEN)
    if not client.has_collection(COLLECTION_NAME):
        client.create_collection(
            collection_name=COLLECTION_NAME,
            dimension=VECTOR_DIM,
            primary_field_name="id",
            vector_field_name="vector",
            metric_type="COSINE",
            auto_id=True,
        )
        logger.info("Collection %s created (dim=%s)", COLLECTION_NAME, VECTOR_DIM)
    return client


def check_connection() -> None:
    """Raise if the vector store is unreachable or misconfigured."""
    client = get_milvus_client()
    client.list_partitions(collection_name=COLLECTION_NAME)


def _ensure_namespace(client: Any, namespace: str) -> None:
    if not client.has_partition(collection_name=COLLECTION_NAME, partition_name=namespace):
        client.create_partition(collection_name=COLLECTION_NAME, partition_name=namespace)
        logger.info("Namespace %s created in %s", namespace, COLLECTION_NAME)


def insert_chunks(chunks: list[dict], namespace: str = NAMESPACE) -> int:
    """
    Embed chunks ({"text", "metadata": {...}}) and insert them into namespace.
    Returns the number of inserted rows.
    """
    if not chunks:
        return 0
    embeddings = embed_texts([c["text"] for c in chunks])
    client = get_milvus_client()
    _ensure_namespace(client, namespace)
    rows = []
    for chunk, vec in zip(chunks, embeddings):
        meta = chunk.get("metadata") or {}
        rows.append({
            "vector": vec,
            "text": chunk["text"],
            "source": meta.get("source", ""),
            "chunk_id": meta.get("chunk_id", 0),
            "indexed_at": meta.get("indexed_at", ""),
        })
    result = client.insert(collection_name=COLLECTION_NAME, data=rows, partition_name=namespace)
    client.flush(collection_name=COLLECTION_NAME)
    inserted = int((result or {}).get("insert_count", 0))
    logger.info("[vector_store:insert_chunks] namespace=%s inserted=%d", namespace, inserted)
    return inserted


def search(query: str, top_k: int = LOOKUP_TOP_K, namespace: str = NAMESPACE) -> list[dict]:
    """Similarity search in namespace. Returns hits as {"id", "text", "score", "source", ...}."""
    logger.info("[vector_store:search] IN  query=%r top_k=%d namespace=%s", query, top_k, namespace)
    if not query or not query.strip():
        return []
    query_vec = embed_texts([query.strip()])
    client = get_milvus_client()
    if not client.has_partition(collection_name=COLLECTION_NAME, partition_name=namespace):
        logger.info("[vector_store:search] OUT namespace %s does not exist", namespace)
        return []
    results = client.search(
        collection_name=COLLECTION_NAME,
        data=query_vec,
        limit=top_k,
        output_fields=OUTPUT_FIELDS,
        partition_names=[namespace],
    )
    hits = []
    for h in (results[0] if results else []):
        entity = h.get("entity") or h
        hits.append({
            "id": h.get("id", entity.get("id")),
            "text": entity.get("text", ""),
            "score": float(h.get("distance", h.get("score", 0.0))),
            "source": entity.get("source", ""),
            "chunk_id": entity.get("chunk_id", 0),
            "indexed_at": entity.get("indexed_at", ""),
        })
    logger.info("[vector_store:search] OUT hits=%d sources=%s", len(hits), [h["source"] for h in hits])
    return hits


def purge_all_namespaces() -> list[str]:
    """
    Delete every vector in every namespace of the collection.
    A namespace that fails is logged and skipped. Returns the purged namespaces;
    raises ServiceUnavailableError when namespaces exist but none could be purged.
    """
    client = get_milvus_client()
    namespaces = list(client.list_partitions(collection_name=COLLECTION_NAME))
    purged: list[str] = []
    failures: list[str] = []
    for ns in namespaces:
        try:
            client.delete(collection_name=COLLECTION_NAME, filter="id >= 0", partition_name=ns)
            purged.append(ns)
        except Exception as e:
            logger.warning("[vector_store:purge_all_namespaces] failed to purge namespace %r: %s", ns, e)
            failures.append(f"{ns}: {e}")
    if namespaces and not purged:
        raise ServiceUnavailableError(f"no namespace could be purged ({'; '.join(failures)})")
    client.flush(collection_name=COLLECTION_NAME)
    logger.info("[vector_store:purge_all_namespaces] OUT purged=%s", purged)
    return purged


def list_indexed_sources(limit: int = LIST_SCAN_LIMIT) -> list[str]:
    """Distinct source file names stored in any namespace."""
    client = get_milvus_client()
    rows = client.query(
        collection_name=COLLECTION_NAME,
        filter="",
        limit=limit,
        output_fields=["source"],
    )
    return sorted({(r.get("source") or "").strip() for r in rows if (r.get("source") or "").strip()})
