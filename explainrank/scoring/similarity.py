"""Content similarity between explanations."""

import re
from collections.abc import Sequence

import numpy as np

_WORD_RE = re.compile(r"[a-z0-9]+")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors."""
    a_arr = np.asarray(a, dtype=float)
    b_arr = np.asarray(b, dtype=float)

    if a_arr.shape != b_arr.shape:
        raise ValueError(f"Embedding dimensions differ: {a_arr.shape} vs {b_arr.shape}")

    norm_a = np.linalg.norm(a_arr)
    norm_b = np.linalg.norm(b_arr)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a_arr, b_arr) / (norm_a * norm_b))


def tokenize(text: str | None) -> set[str]:
    return set(_WORD_RE.findall((text or "").lower()))


def token_jaccard(text_a: str | None, text_b: str | None) -> float:
    """Word-set Jaccard similarity."""
    tokens_a = tokenize(text_a)
    tokens_b = tokenize(text_b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def content_similarity(
    a_embedding: Sequence[float] | None,
    b_embedding: Sequence[float] | None,
    a_text: str | None = None,
    b_text: str | None = None,
) -> float:
    """
    Similarity in [0, 1] between two explanations.

    Cosine over embeddings when both are present, word Jaccard over the
    content otherwise. Negative cosine is clamped to 0.
    """
    if a_embedding is not None and b_embedding is not None and len(a_embedding) and len(b_embedding):
        score = cosine_similarity(a_embedding, b_embedding)
    else:
        score = token_jaccard(a_text, b_text)
    return max(0.0, min(1.0, score))
