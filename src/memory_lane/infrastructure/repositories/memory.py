"""Memory store interface and the in-process reference implementation."""

import asyncio
from collections import Counter, defaultdict
from collections.abc import Sequence
from typing import Protocol, runtime_checkable
from uuid import UUID

from memory_lane.core.base import AIServiceErrorDetails, ErrorLevel, ResourceErrorDetails
from memory_lane.core.decorators import with_error_handling
from memory_lane.core.errors import DimensionMismatchError, NotFoundError
from memory_lane.core.logging import get_logger
from memory_lane.domain.models.embedding import EmbeddingMode
from memory_lane.domain.models.memory import FeedbackType, Memory, MemoryStatistics
from memory_lane.domain.models.retrieval import VectorRecord

logger = get_logger(__name__)


@runtime_checkable
class MemoryStore(Protocol):
    """Opaque key/value + scan store for memories."""

    async def remember(self, memory: Memory) -> Memory: ...

    async def get_by_id(self, memory_id: UUID) -> Memory | None: ...

    async def update(self, memory: Memory) -> Memory: ...

    async def forget(self, memory_id: UUID) -> bool: ...

    async def all(self) -> list[Memory]: ...

    async def scan(self, term: str) -> list[Memory]:
        """Case-insensitive substring scan over entities, title and content."""
        ...

    async def vectors(self) -> list[VectorRecord]: ...

    async def count(self) -> int: ...

    async def record_recall(self, memory_ids: Sequence[UUID]) -> int: ...

    async def add_feedback(self, memory_id: UUID, feedback: FeedbackType) -> Memory: ...

    async def statistics(self) -> MemoryStatistics: ...


class InMemoryMemoryStore:
    """Dictionary-backed store with serialized writes and snapshot reads."""

    def __init__(self, dimension: int = 1024):
        self.dimension = dimension
        self._memories: dict[UUID, Memory] = {}
        self._lock = asyncio.Lock()

    def _check_dimension(self, memory: Memory) -> None:
        if memory.embedding.dimension != self.dimension:
            raise DimensionMismatchError(
                f"Memory {memory.id} has a {memory.embedding.dimension}-dimensional embedding, "
                f"store expects {self.dimension}",
                details=AIServiceErrorDetails(
                    source="memory_store",
                    operation="remember",
                    service_name="in_memory_store",
                    expected_dimension=self.dimension,
                    actual_dimension=memory.embedding.dimension,
                ),
            )

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def remember(self, memory: Memory) -> Memory:
        """Store a new memory, replacing any memory with the same id."""
        self._check_dimension(memory)
        async with self._lock:
            self._memories[memory.id] = memory.model_copy(deep=True)
        logger.debug("memory_stored", memory_id=str(memory.id), memory_type=memory.type.value)
        return memory

    async def get_by_id(self, memory_id: UUID) -> Memory | None:
        memory = self._memories.get(memory_id)
        return memory.model_copy(deep=True) if memory else None

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def update(self, memory: Memory) -> Memory:
        """Replace an existing memory.

        Raises:
            NotFoundError: If no memory has this id
        """
        self._check_dimension(memory)
        async with self._lock:
            if memory.id not in self._memories:
                raise NotFoundError(
                    f"Memory {memory.id} does not exist",
                    details=ResourceErrorDetails(
                        source="memory_store",
                        operation="update",
                        resource_id=str(memory.id),
                        resource_type="memory",
                        action="write",
                    ),
                )
            self._memories[memory.id] = memory.model_copy(deep=True)
        logger.debug("memory_updated", memory_id=str(memory.id), times_observed=memory.times_observed)
        return memory

    async def forget(self, memory_id: UUID) -> bool:
        async with self._lock:
            removed = self._memories.pop(memory_id, None) is not None
        if removed:
            logger.debug("memory_forgotten", memory_id=str(memory_id))
        return removed

    async def all(self) -> list[Memory]:
        return [memory.model_copy(deep=True) for memory in list(self._memories.values())]

    async def scan(self, term: str) -> list[Memory]:
        needle = term.strip().lower()
        if not needle:
            return []
        return [
            memory.model_copy(deep=True)
            for memory in list(self._memories.values())
            if any(needle in text for text in memory.searchable_text())
        ]

    async def vectors(self) -> list[VectorRecord]:
        return [
            VectorRecord(memory_id=memory.id, vector=memory.embedding.values, created_at=memory.created_at)
            for memory in list(self._memories.values())
        ]

    async def count(self) -> int:
        return len(self._memories)

    async def record_recall(self, memory_ids: Sequence[UUID]) -> int:
        """Increment ``recall_count`` on each known id; unknown ids are ignored."""
        async with self._lock:
            updated = 0
            for memory_id in memory_ids:
                memory = self._memories.get(memory_id)
                if memory is not None:
                    memory.recall_count += 1
                    updated += 1
        return updated

    @with_error_handling(error_level=ErrorLevel.WARNING, reraise=True)
    async def add_feedback(self, memory_id: UUID, feedback: FeedbackType) -> Memory:
        """Count one positive or negative rating.

        Raises:
            NotFoundError: If no memory has this id
        """
        async with self._lock:
            memory = self._memories.get(memory_id)
            if memory is None:
                raise NotFoundError(
                    f"Memory {memory_id} does not exist",
                    details=ResourceErrorDetails(
                        source="memory_store",
                        operation="add_feedback",
                        resource_id=str(memory_id),
                        resource_type="memory",
                        action="write",
                    ),
                )
            if feedback == FeedbackType.POSITIVE:
                memory.positive_feedback += 1
            else:
                memory.negative_feedback += 1
            return memory.model_copy(deep=True)

    async def statistics(self) -> MemoryStatistics:
        memories = list(self._memories.values())
        if not memories:
            return MemoryStatistics()

        counts = Counter(memory.type.value for memory in memories)
        confidences: dict[str, list[float]] = defaultdict(list)
        for memory in memories:
            confidences[memory.type.value].append(memory.confidence_score)
        recalls = [memory.recall_count for memory in memories]
        real = sum(1 for memory in memories if memory.embedding.mode == EmbeddingMode.REAL)

        return MemoryStatistics(
            total_count=len(memories),
            count_by_type=dict(counts.most_common()),
            average_confidence_by_type={
                memory_type: sum(scores) / len(scores) for memory_type, scores in confidences.items()
            },
            total_recalls=sum(recalls),
            average_recalls=sum(recalls) / len(memories),
            max_recalls=max(recalls),
            total_positive_feedback=sum(memory.positive_feedback for memory in memories),
            total_negative_feedback=sum(memory.negative_feedback for memory in memories),
            real_embedding_coverage=round(real / len(memories) * 100, 2),
        )
