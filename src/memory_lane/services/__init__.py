"""Service layer interfaces and implementations."""

from typing import Protocol, runtime_checkable

from memory_lane.domain.models.embedding import EmbeddingStatus, FixedVector


@runtime_checkable
class EmbeddingService(Protocol):
    """Protocol for embedding services."""

    async def embed(self, text: str) -> FixedVector:
        """Generate a tagged embedding for a single text."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[FixedVector]:
        """Generate embeddings for multiple texts, preserving order."""
        ...

    def embedding_status(self) -> EmbeddingStatus:
        """Report the current mode and reachability."""
        ...
