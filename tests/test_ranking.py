from datetime import UTC, datetime, timedelta
from uuid import UUID

import pytest

from memory_lane.core.errors import DimensionMismatchError
from memory_lane.domain.models import VectorRecord
from memory_lane.services.ranking import cosine_similarity, rank

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def record(memory_id: int, vector: list[float], age_minutes: int = 0) -> VectorRecord:
    return VectorRecord(
        memory_id=UUID(int=memory_id),
        vector=vector,
        created_at=NOW - timedelta(minutes=age_minutes),
    )


class TestCosineSimilarity:
    def test_self_similarity_is_one(self):
        assert cosine_similarity([1.0, 2.0, 2.0], [1.0, 2.0, 2.0]) == 1.0

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 2.0, 2.0], [3.0, 6.0, 6.0]) == pytest.approx(1.0)

    def test_zero_vector_is_zero(self):
        assert cosine_similarity([0.3, 0.4], [0.0, 0.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 0.0], [-2.0, 0.0]) == pytest.approx(-1.0)

    def test_length_mismatch_raises(self):
        with pytest.raises(DimensionMismatchError):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


class TestRank:
    def test_threshold_and_order(self):
        candidates = [
            record(1, [0.0, 1.0]),  # 0.0
            record(2, [1.0, 0.0]),  # 1.0
            record(3, [0.6, 0.8]),  # 0.6
        ]
        hits = rank([1.0, 0.0], candidates, threshold=0.5, top_k=10)

        assert [hit.memory_id.int for hit in hits] == [2, 3]
        assert hits[1].similarity == pytest.approx(0.6)

    def test_threshold_is_inclusive(self):
        hits = rank([1.0, 0.0], [record(1, [1.0, 0.0])], threshold=1.0, top_k=5)
        assert len(hits) == 1

    def test_top_k_truncates(self):
        candidates = [record(i, [1.0, i / 10]) for i in range(1, 6)]
        assert len(rank([1.0, 0.0], candidates, threshold=0.0, top_k=2)) == 2

    def test_ties_prefer_newer_then_id(self):
        candidates = [
            record(5, [1.0, 0.0], age_minutes=10),
            record(7, [2.0, 0.0], age_minutes=1),
            record(6, [3.0, 0.0], age_minutes=1),
        ]
        hits = rank([1.0, 0.0], candidates, threshold=0.0, top_k=3)
        assert [hit.memory_id.int for hit in hits] == [6, 7, 5]

    def test_empty_candidates(self):
        assert rank([1.0, 0.0], [], threshold=0.0, top_k=3) == []

    def test_mismatched_candidate_raises(self):
        with pytest.raises(DimensionMismatchError):
            rank([1.0, 0.0], [record(1, [1.0, 0.0, 0.0])], threshold=0.0, top_k=3)
