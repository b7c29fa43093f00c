# Document loader: file on disk -> plain text. No embeddings, no chunking.
# PDFs go through pypdf; anything else is decoded as UTF-8 text.

import io
from pathlib import Path

PDF_EXTENSION = ".pdf"


def bytes_to_text(raw: bytes, filename: str) -> str:
    """Convert raw file bytes to text by extension."""
    ext = Path(filename).suffix.lower() if filename else ""
    if ext == PDF_EXTENSION:
        return _read_pdf(raw)
    return raw.decode("utf-8", errors="replace")


def load_document(path: Path | str) -> str:
    """Read a document from disk and return its text (pages joined by newlines)."""
    p = Path(path)
    return bytes_to_text(p.read_bytes(), p.name)


def _read_pdf(raw: bytes) -> str:
    from pypdf import PdfReader
    reader = PdfReader(io.BytesIO(raw))
    return "\n".join(page.extract_text() or "" for page in reader.pages)
