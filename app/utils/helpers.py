"""
Common utility functions and helpers.
"""
from typing import Sequence
import logging
import os
import re

import numpy as np

from app.exceptions import DimensionMismatch

logger = logging.getLogger(__name__)


def cosine_scores(
    query_vector: Sequence[float], vectors: Sequence[Sequence[float]]
) -> np.ndarray:
    """
    Cosine similarity of *query_vector* against each of *vectors*.

    Returns:
        Array of scores in [-1, 1], one per vector; a zero vector on either
        side scores 0.0

    Raises:
        DimensionMismatch: if any vector differs in length from the query
    """
    dim = len(query_vector)
    for vector in vectors:
        if len(vector) != dim:
            raise DimensionMismatch(dim, len(vector))

    matrix = np.asarray(vectors, dtype=float).reshape(len(vectors), dim)
    query = np.asarray(query_vector, dtype=float)

    dots = matrix @ query
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Cosine similarity of two vectors (see :func:`cosine_scores`)."""
    return float(cosine_scores(vec1, [vec2])[0])


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` delimiters that LLMs often wrap output in."""
    text = text.strip()
    # Remove opening fence (with optional language tag)
    text = re.sub(r"^```(?:json)?\s*\n?", "", text, flags=re.IGNORECASE)
    # Remove closing fence
    text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()


def title_from_filename(filename: str) -> str:
    """
    Derive a display title from an uploaded file name.

    Args:
        filename: Original file name, e.g. "results-2024.final.pdf"

    Returns:
        The name with its last extension removed ("results-2024.final")
    """
    stem, _ext = os.path.splitext(os.path.basename(filename))
    return stem or filename


def safe_remove(path: str) -> None:
    """Delete a file silently, logging warnings but never raising."""
    try:
        if path and os.path.exists(path):
            os.remove(path)
    except OSError as exc:
        logger.warning("Could not remove file %r: %s", path, exc)
