"""
Fixed-size character windowing for the semantic index.

Text is cut into windows of ``chunk_size`` characters where each window
starts ``chunk_size - overlap`` characters after its predecessor.  Every
window except the last is exactly ``chunk_size`` long; the last one ends at
the end of the text and may be shorter.  Consecutive windows share exactly
``overlap`` characters, so the union of the windows always covers the text.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from app.config import settings

logger = logging.getLogger(__name__)


def split_into_chunks(
    text: str,
    chunk_size: Optional[int] = None,
    overlap: Optional[int] = None,
) -> List[str]:
    """
    Split *text* into overlapping character windows.

    Args:
        text:       Source text.  Empty text yields no windows.
        chunk_size: Window length in characters (default ``CHUNK_SIZE``).
        overlap:    Characters shared by consecutive windows
                    (default ``CHUNK_OVERLAP``).

    Raises:
        ValueError: if ``chunk_size`` is not positive or ``overlap`` is not in
                    ``[0, chunk_size)``.
    """
    size = settings.CHUNK_SIZE if chunk_size is None else chunk_size
    step_overlap = settings.CHUNK_OVERLAP if overlap is None else overlap

    if size <= 0:
        raise ValueError("chunk_size must be a positive integer")
    if not 0 <= step_overlap < size:
        raise ValueError("overlap must be >= 0 and smaller than chunk_size")

    chunks: List[str] = []
    start = 0
    length = len(text)

    while start < length:
        end = min(start + size, length)
        chunks.append(text[start:end])
        if end == length:
            break
        start = end - step_overlap

    logger.debug(
        "split_into_chunks: %d chars → %d windows (size=%d, overlap=%d)",
        length,
        len(chunks),
        size,
        step_overlap,
    )
    return chunks
