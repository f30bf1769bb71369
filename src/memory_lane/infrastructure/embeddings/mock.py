"""Deterministic placeholder embeddings for offline operation."""

import hashlib

import numpy as np


def text_seed(text: str) -> int:
    """Stable 64-bit seed derived from the text (unlike ``hash``, not salted per process)."""
    return int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")


def mock_embedding(text: str, dimension: int) -> list[float]:
    """Generate a unit-length pseudo-random vector keyed by the text.

    Identical text always yields an identical vector, so ranking stays stable
    without a model. The vector carries no semantic meaning.
    """
    rng = np.random.default_rng(text_seed(text))
    vector = rng.standard_normal(dimension)
    norm = np.linalg.norm(vector)
    if norm == 0:
        return vector.tolist()
    return (vector / norm).tolist()
