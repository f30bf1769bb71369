"""Hybrid retrieval: literal entity matches merged with semantic matches."""

from uuid import UUID

from memory_lane.core.base import ValidationErrorDetails
from memory_lane.core.errors import ValidationError
from memory_lane.core.logging import get_logger
from memory_lane.domain.models.memory import FeedbackType, Memory
from memory_lane.domain.models.retrieval import MatchType, RetrievalQuery, RetrievalResult
from memory_lane.domain.models.utils import as_utc
from memory_lane.infrastructure.repositories.memory import MemoryStore
from memory_lane.services import EmbeddingService
from memory_lane.services.ranking import rank

logger = get_logger(__name__)

ENTITY_RANK = 1.0

# Tie order at equal combined rank
_TIER = {MatchType.BOTH: 0, MatchType.ENTITY: 1, MatchType.SEMANTIC: 2}


def is_entity_hit(memory: Memory, entity_filters: list[str], text: str) -> bool:
    """Literal match on related entities, or on title/content for the raw query text."""
    entities = [entity.lower() for entity in memory.related_entities]
    for term in entity_filters:
        needle = term.strip().lower()
        if needle and any(needle in entity for entity in entities):
            return True

    needle = text.strip().lower()
    return bool(needle) and (needle in memory.title.lower() or needle in memory.content.lower())


class DualRetrievalCoordinator:
    """Merge entity-literal and semantic matches into one ranked list.

    Entity hits rank 1.0, semantic hits rank by similarity, and a memory found
    by both ranks ``1.0 + similarity``. Every returned memory has its recall
    count incremented in the store.
    """

    def __init__(self, store: MemoryStore, embeddings: EmbeddingService):
        self.store = store
        self.embeddings = embeddings

    async def _entity_hits(self, query: RetrievalQuery) -> dict[UUID, Memory]:
        scanned: dict[UUID, Memory] = {}
        for term in [*query.entity_filters, query.text]:
            if term.strip():
                scanned.update((memory.id, memory) for memory in await self.store.scan(term))
        # Filter terms match entities only, the raw text matches title or content only
        return {
            memory_id: memory
            for memory_id, memory in scanned.items()
            if is_entity_hit(memory, query.entity_filters, query.text)
        }

    async def _semantic_hits(self, query: RetrievalQuery) -> dict[UUID, float]:
        vector = await self.embeddings.embed(query.text)
        records = await self.store.vectors()
        hits = rank(vector.values, records, threshold=query.threshold, top_k=None)
        logger.debug("semantic_search", mode=vector.mode.value, candidates=len(records), hits=len(hits))
        return {hit.memory_id: hit.similarity for hit in hits}

    async def retrieve(self, query: RetrievalQuery) -> list[RetrievalResult]:
        """Run both retrieval paths and return the merged top ``query.top_k``."""
        if not await self.store.count():
            return []

        memories = await self._entity_hits(query)
        entity_ids = set(memories)
        semantic = await self._semantic_hits(query) if query.text.strip() else {}
        for memory_id in semantic.keys() - entity_ids:
            memory = await self.store.get_by_id(memory_id)
            if memory is not None:
                memories[memory_id] = memory

        results: list[RetrievalResult] = []
        for memory_id, memory in memories.items():
            similarity = semantic.get(memory_id)
            if memory_id in entity_ids and similarity is not None:
                match_type, combined = MatchType.BOTH, ENTITY_RANK + similarity
            elif memory_id in entity_ids:
                match_type, combined = MatchType.ENTITY, ENTITY_RANK
            else:
                match_type, combined = MatchType.SEMANTIC, similarity
            results.append(
                RetrievalResult(
                    memory_id=memory_id,
                    match_type=match_type,
                    combined_rank=combined,
                    similarity=similarity,
                    memory=memory,
                )
            )

        # Stable sorts, least significant key first
        results.sort(key=lambda result: str(result.memory_id))
        results.sort(key=lambda result: as_utc(memories[result.memory_id].created_at), reverse=True)
        results.sort(key=lambda result: (-result.combined_rank, _TIER[result.match_type]))
        returned = results[: query.top_k]

        await self.store.record_recall([result.memory_id for result in returned])
        logger.info(
            "retrieval_complete",
            entity_hits=len(entity_ids),
            semantic_hits=len(semantic),
            returned=len(returned),
        )
        return returned

    async def submit_feedback(
        self, memory_id: UUID, feedback: FeedbackType | str, session_id: str | None = None
    ) -> Memory:
        """Record a positive or negative rating for a retrieved memory.

        Raises:
            ValidationError: If ``feedback`` is not "positive" or "negative"
            NotFoundError: If the memory does not exist
        """
        try:
            feedback = FeedbackType(feedback)
        except ValueError as e:
            raise ValidationError(
                f"Feedback must be 'positive' or 'negative', got {feedback!r}",
                details=ValidationErrorDetails(
                    source="dual_retrieval",
                    operation="submit_feedback",
                    field="feedback",
                    actual_value=feedback,
                    constraint="positive|negative",
                ),
            ) from e

        memory = await self.store.add_feedback(memory_id, feedback)
        logger.info(
            "feedback_submitted",
            memory_id=str(memory_id),
            session_id=session_id,
            feedback=feedback.value,
        )
        return memory
