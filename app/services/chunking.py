import hashlib
import math
import re
from datetime import datetime, timezone
from typing import List

import structlog

from app.models.schemas import Chunk

logger = structlog.get_logger()

_WHITESPACE = re.compile(r"\s+")


def _short_hash(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:16]


def _make_chunk(doc_id: str, index: int, start: int, text: str, created_at: datetime) -> Chunk:
    return Chunk(
        id=_short_hash(f"{doc_id}|{start}|{text}"),
        doc_id=doc_id,
        chunk_index=index,
        text=text,
        text_hash=_short_hash(text),
        token_count=math.ceil(len(text) / 4),  # rough: ~4 chars per token
        created_at=created_at,
    )


def chunk_requirement(doc_id: str, text: str, max_chars: int = 3000, overlap: int = 300) -> List[Chunk]:
    """Split a requirement document into overlapping character windows.

    Chunk ids depend only on the document id, the window offset and the
    window text, so chunking the same text twice yields the same ids.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if not 0 <= overlap < max_chars:
        raise ValueError("overlap must be >= 0 and smaller than max_chars")

    clean = _WHITESPACE.sub(" ", text or "").strip()
    if not clean:
        logger.warning("Empty text provided for chunking", doc_id=doc_id)
        return []

    now = datetime.now(timezone.utc)
    chunks: List[Chunk] = []
    start = 0
    while True:
        end = min(start + max_chars, len(clean))
        chunks.append(_make_chunk(doc_id, len(chunks), start, clean[start:end], now))
        if end >= len(clean):
            break
        start = end - overlap

    logger.info("Document chunked", doc_id=doc_id, chunks=len(chunks), text_length=len(clean))
    return chunks
