"""Session extraction pipeline: chunk, extract, score, embed, merge, persist."""

import asyncio
from collections.abc import Callable

import structlog

from memory_lane.core.base import ErrorLevel
from memory_lane.core.config import Settings, settings
from memory_lane.core.decorators import with_error_handling
from memory_lane.core.logging import get_logger
from memory_lane.domain.models.embedding import FixedVector
from memory_lane.domain.models.memory import Memory, MemoryCandidate
from memory_lane.domain.models.utils import utc_now
from memory_lane.domain.scoring import score
from memory_lane.infrastructure.extraction.client import ExtractionClient
from memory_lane.infrastructure.repositories.memory import MemoryStore
from memory_lane.infrastructure.sessions.jsonl import SessionSource
from memory_lane.services import EmbeddingService
from memory_lane.services.chunker import chunk
from memory_lane.services.ranking import rank

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


def _candidate_evidence(candidate: MemoryCandidate) -> list[str]:
    if candidate.evidence:
        return list(candidate.evidence)
    return [candidate.source_chunk_ref] if candidate.source_chunk_ref else []


class MemoryExtractionService:
    """Turns a stored session into persisted, de-duplicated memories.

    Extraction failures degrade to zero memories for the affected chunk and
    are visible only through logs. A missing session raises NotFoundError.
    """

    def __init__(
        self,
        sessions: SessionSource,
        client: ExtractionClient,
        embeddings: EmbeddingService,
        store: MemoryStore,
        config: Settings | None = None,
    ):
        config = config or settings
        self.sessions = sessions
        self.client = client
        self.embeddings = embeddings
        self.store = store
        self.chunk_size = config.chunk_size
        self.dedup_threshold = config.dedup_threshold

    async def _find_duplicate(self, vector: FixedVector) -> Memory | None:
        if self.dedup_threshold is None:
            return None
        hits = rank(vector.values, await self.store.vectors(), threshold=self.dedup_threshold, top_k=1)
        if not hits:
            return None
        return await self.store.get_by_id(hits[0].memory_id)

    async def _merge(self, existing: Memory, candidate: MemoryCandidate, confidence: float) -> Memory:
        evidence = list(existing.evidence)
        evidence.extend(item for item in _candidate_evidence(candidate) if item not in evidence)

        known = {entity.lower() for entity in existing.related_entities}
        entities = list(existing.related_entities)
        entities.extend(entity for entity in candidate.related_entities if entity.lower() not in known)

        merged = existing.model_copy(
            update={
                "times_observed": existing.times_observed + 1,
                "last_observed_at": utc_now(),
                "confidence_score": max(existing.confidence_score, confidence),
                "evidence": evidence,
                "related_entities": entities,
            }
        )
        await self.store.update(merged)
        logger.debug(
            "memory_merged",
            memory_id=str(existing.id),
            times_observed=merged.times_observed,
            title=existing.title,
        )
        return merged

    async def _absorb(self, candidates: list[MemoryCandidate], session_id: str) -> tuple[int, int]:
        """Persist one chunk's candidates; returns (new, merged)."""
        if not candidates:
            return 0, 0

        vectors = await self.embeddings.embed_batch([candidate.content for candidate in candidates])
        created = merged = 0
        # Sequential so later candidates de-duplicate against earlier ones
        for candidate, vector in zip(candidates, vectors, strict=True):
            confidence = score(candidate.raw_confidence, candidate.type, candidate.content)
            duplicate = await self._find_duplicate(vector)
            if duplicate is not None:
                await self._merge(duplicate, candidate, confidence)
                merged += 1
                continue

            memory = Memory.from_candidate(
                candidate,
                confidence_score=confidence,
                embedding=vector,
                session_id=session_id,
            )
            await self.store.remember(memory)
            created += 1
        return created, merged

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def extract(
        self,
        session_id: str,
        cancel_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Extract memories from one session.

        Args:
            session_id: Session to load from the session source
            cancel_event: When set, stops before the next chunk
            on_progress: Called with (chunks_done, chunks_total) after each chunk

        Returns:
            Number of new memories stored; merged duplicates are not counted

        Raises:
            NotFoundError: If the session does not exist
        """
        with structlog.contextvars.bound_contextvars(session_id=session_id):
            messages = await self.sessions.get_messages(session_id)
            chunks = chunk(messages, self.chunk_size, session_id)

            processed = new_memories = merged = 0
            cancelled = False
            for current in chunks:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break

                candidates = await self.client.extract(current)
                created, absorbed = await self._absorb(candidates, session_id)
                new_memories += created
                merged += absorbed
                processed += 1
                if on_progress is not None:
                    on_progress(processed, len(chunks))

            logger.info(
                "session_extraction_complete",
                session_id=session_id,
                messages=len(messages),
                chunks=len(chunks),
                chunks_processed=processed,
                new_memories=new_memories,
                merged=merged,
                cancelled=cancelled,
            )
            return new_memories

    async def extract_sessions(self, session_ids: list[str], concurrency: int = 4) -> dict[str, int]:
        """Extract several independent sessions in parallel.

        Raises:
            NotFoundError: If any session does not exist
        """
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def bounded(session_id: str) -> int:
            async with semaphore:
                return await self.extract(session_id)

        counts = await asyncio.gather(*(bounded(session_id) for session_id in session_ids))
        return dict(zip(session_ids, counts, strict=True))
