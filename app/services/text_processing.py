"""
Text processing for indexing: cleaning and chunking parsed PDF text.

PDF extraction leaves ragged whitespace, repeated header/footer lines and
compatibility characters; cleaning them first gives more consistent embeddings.
"""

import re
import unicodedata


def clean_text(text: str) -> str:
    """
    NFKC-normalize, strip every line, drop consecutive duplicate lines and
    collapse runs of blank lines to a single paragraph break.
    """
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize("NFKC", text)
    out: list[str] = []
    previous: str | None = None
    for line in (raw.strip() for raw in text.splitlines()):
        if line == previous:
            continue
        previous = line
        if line == "" and (not out or out[-1] == ""):
            continue
        out.append(line)
    return "\n".join(out).strip()


def _joined_len(parts: list[str]) -> int:
    return sum(len(p) for p in parts) + max(0, len(parts) - 1)


def _tail_for_overlap(parts: list[str], overlap: int) -> list[str]:
    """Trailing pieces of a finished chunk that fit in `overlap` chars; they open the next chunk."""
    tail: list[str] = []
    used = 0
    for piece in reversed(parts):
        if used + len(piece) + 1 > overlap:
            break
        tail.append(piece)
        used += len(piece) + 1
    tail.reverse()
    return tail


def chunk_text(text: str, chunk_size: int = 500, overlap: int = 50) -> list[str]:
    """
    Split text into chunks of at most ~chunk_size chars on sentence boundaries.

    Sentences longer than chunk_size are split on words. Each new chunk starts
    with the tail of the previous one (up to `overlap` chars).
    """
    if not text or not text.strip():
        return []
    text = text.strip()
    if len(text) <= chunk_size:
        return [text]

    sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", text) if s.strip()]
    if not sentences:
        sentences = text.split()

    chunks: list[str] = []
    current: list[str] = []

    def push(piece: str) -> None:
        nonlocal current
        extra = len(piece) + (1 if current else 0)
        if current and _joined_len(current) + extra > chunk_size:
            chunks.append(" ".join(current))
            current = _tail_for_overlap(current, overlap)
        current.append(piece)

    for sentence in sentences:
        if len(sentence) > chunk_size:
            for word in sentence.split():
                push(word)
        else:
            push(sentence)

    if current:
        chunks.append(" ".join(current))
    return chunks
