"""Cosine-similarity ranking over stored memory vectors."""

import math
from collections.abc import Iterable, Sequence

import numpy as np

from memory_lane.core.base import AIServiceErrorDetails
from memory_lane.core.errors import DimensionMismatchError
from memory_lane.domain.models.retrieval import SimilarityHit, VectorRecord
from memory_lane.domain.models.utils import as_utc


def cosine_similarity(query: Sequence[float], vector: Sequence[float]) -> float:
    """Cosine similarity in float64, clamped to [-1, 1].

    Returns 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(query) != len(vector):
        raise DimensionMismatchError(
            f"Cannot compare vectors of length {len(query)} and {len(vector)}",
            details=AIServiceErrorDetails(
                source="ranking",
                operation="cosine_similarity",
                service_name="similarity_ranker",
                expected_dimension=len(query),
                actual_dimension=len(vector),
            ),
        )

    q = np.asarray(query, dtype=np.float64)
    v = np.asarray(vector, dtype=np.float64)
    qq = float(np.dot(q, q))
    vv = float(np.dot(v, v))
    if qq == 0.0 or vv == 0.0:
        return 0.0

    # A single sqrt over the product keeps sim(v, v) at exactly 1.0
    similarity = float(np.dot(q, v)) / math.sqrt(qq * vv)
    return max(-1.0, min(1.0, similarity))


def rank(
    query_vector: Sequence[float],
    candidates: Iterable[VectorRecord],
    threshold: float,
    top_k: int | None,
) -> list[SimilarityHit]:
    """Rank candidates by similarity to the query vector.

    Hits below ``threshold`` are dropped. Ties go to the more recently
    created memory, then to the memory id. ``top_k=None`` keeps every hit.
    """
    scored: list[tuple[float, VectorRecord]] = []
    for record in candidates:
        similarity = cosine_similarity(query_vector, record.vector)
        if similarity >= threshold:
            scored.append((similarity, record))

    # Stable sorts, least significant key first
    scored.sort(key=lambda item: str(item[1].memory_id))
    scored.sort(key=lambda item: as_utc(item[1].created_at), reverse=True)
    scored.sort(key=lambda item: item[0], reverse=True)

    if top_k is not None:
        scored = scored[:top_k]
    return [SimilarityHit(memory_id=record.memory_id, similarity=similarity) for similarity, record in scored]
