"""
Document ingestion: resolve, parse, chunk and index documents; inventory the data dir.

Responsibility: Turn a user-supplied document path into chunks in the vector
store, and report which PDFs in the data directory are indexed. Called by the
skill handlers; no HTTP or FastAPI here.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from app.core.config import CHUNK_OVERLAP, CHUNK_SIZE, DATA_DIR_NAME, NAMESPACE
from app.ingest.loader import load_document
from app.services.text_processing import chunk_text, clean_text
from app.services.vector_store import insert_chunks, list_indexed_sources

logger = logging.getLogger(__name__)

_LEGACY_PREFIX = "agentbackend/"


@dataclass
class IndexResult:
    """Outcome of indexing one document."""

    source: str
    chunks: int
    inserted: int


@dataclass
class DocumentInventory:
    """PDFs found in the data directory, split by indexing status."""

    data_directory: list[dict] = field(default_factory=list)
    indexed: list[dict] = field(default_factory=list)
    not_indexed: list[dict] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(d["size"] for d in self.data_directory)

    def summary(self) -> str:
        def names(docs: list[dict]) -> str:
            return "\n".join(f"  • {d['name']} ({d['sizeFormatted']})" for d in docs) or "  None"

        return (
            "📊 DOCUMENT INVENTORY:\n"
            f"📁 Total PDF files: {len(self.data_directory)}\n"
            f"✅ Indexed documents: {len(self.indexed)}\n"
            f"❌ Not indexed: {len(self.not_indexed)}\n"
            f"📏 Total size: {format_file_size(self.total_size)}\n\n"
            f"📚 INDEXED DOCUMENTS:\n{names(self.indexed)}\n\n"
            f"📋 NOT INDEXED DOCUMENTS:\n{names(self.not_indexed)}"
        )


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent.parent


def data_dir(base_dir: Path | None = None) -> Path:
    return (base_dir or _project_root()) / DATA_DIR_NAME


def resolve_document_path(document_path: str, base_dir: Path | None = None) -> Path:
    """
    Map what the user typed to a file path.

    "bitcoin.pdf" -> <root>/data/bitcoin.pdf; "data/bitcoin.pdf" and
    "agentbackend/data/bitcoin.pdf" -> <root>/data/bitcoin.pdf; absolute paths
    are used as given.
    """
    raw = (document_path or "").strip()
    p = Path(raw)
    if p.is_absolute():
        return p
    root = base_dir or _project_root()
    if "/" not in raw and "\\" not in raw:
        return root / DATA_DIR_NAME / raw
    if raw.startswith(_LEGACY_PREFIX):
        raw = raw[len(_LEGACY_PREFIX):]
    return root / raw


def build_chunks(path: Path, indexed_at: str | None = None) -> list[dict]:
    """Parse → clean → chunk one file; returns chunks with source/chunk_id/indexed_at metadata."""
    stamp = indexed_at or datetime.now(timezone.utc).isoformat()
    cleaned = clean_text(load_document(path))
    pieces = chunk_text(cleaned, chunk_size=CHUNK_SIZE, overlap=CHUNK_OVERLAP)
    logger.info("File %s → %d chunks created", path.name, len(pieces))
    return [
        {"text": piece, "metadata": {"source": path.name, "chunk_id": i, "indexed_at": stamp}}
        for i, piece in enumerate(pieces)
    ]


def index_document(path: Path, namespace: str = NAMESPACE) -> IndexResult:
    """Parse and store one document in namespace. Raises on parse or vector store errors."""
    chunks = build_chunks(path)
    inserted = insert_chunks(chunks, namespace=namespace)
    return IndexResult(source=path.name, chunks=len(chunks), inserted=inserted)


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = 0
    while size >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    return f"{round(size / 1024**i, 2):g} {units[i]}"


def scan_data_dir(base_dir: Path | None = None) -> list[dict]:
    """PDF files in the data dir with size and modification time, sorted by name."""
    root = data_dir(base_dir)
    docs = []
    for p in sorted(root.iterdir()):
        if not p.is_file() or p.suffix.lower() != ".pdf":
            continue
        stat = p.stat()
        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        docs.append({
            "name": p.name,
            "path": f"{DATA_DIR_NAME}/{p.name}",
            "size": stat.st_size,
            "sizeFormatted": format_file_size(stat.st_size),
            "modified": modified.isoformat(),
            "modifiedFormatted": modified.date().isoformat(),
        })
    return docs


def build_inventory(base_dir: Path | None = None) -> DocumentInventory:
    """
    Cross-reference the data dir with sources in the vector store. If the
    vector store cannot be reached every document is reported as not indexed.
    """
    inventory = DocumentInventory(data_directory=scan_data_dir(base_dir))
    try:
        indexed_sources = set(list_indexed_sources())
    except Exception as e:
        logger.warning("[ingestion:build_inventory] could not read indexed sources: %s", e)
        indexed_sources = set()
    for doc in inventory.data_directory:
        if doc["name"] in indexed_sources:
            inventory.indexed.append({**doc, "status": "✅ Indexed"})
        else:
            inventory.not_indexed.append({**doc, "status": "❌ Not Indexed"})
    return inventory
