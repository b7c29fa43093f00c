"""Open Library search API client (public, no key). https://openlibrary.org/dev/docs/api/search"""

import logging

import httpx

from app.core.config import OPENLIBRARY_SEARCH_URL, TOOLS_HTTP_TIMEOUT

logger = logging.getLogger(__name__)


def search_books(query: str, limit: int = 5) -> list[dict]:
    """Return Open Library search records for query. Raises httpx.HTTPError on transport/status errors."""
    q = (query or "").strip()
    if not q:
        return []
    logger.info("[openlibrary:search_books] IN  query=%r", q)
    with httpx.Client(timeout=TOOLS_HTTP_TIMEOUT) as client:
        response = client.get(OPENLIBRARY_SEARCH_URL, params={"q": q, "limit": limit})
        response.raise_for_status()
        data = response.json()
    docs = data.get("docs") or []
    logger.info("[openlibrary:search_books] OUT records=%d", len(docs))
    return docs
