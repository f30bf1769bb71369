"""Domain models for memory extraction and retrieval."""

from .conversation import ConversationChunk, Message, MessageRole
from .embedding import EmbeddingMode, EmbeddingStatus, FixedVector
from .memory import FeedbackType, Memory, MemoryCandidate, MemoryStatistics, MemoryType
from .retrieval import MatchType, RetrievalQuery, RetrievalResult, SimilarityHit, VectorRecord

__all__ = [
    # Conversation
    "ConversationChunk",
    # Embedding
    "EmbeddingMode",
    "EmbeddingStatus",
    "FixedVector",
    # Retrieval
    "MatchType",
    # Memory
    "FeedbackType",
    "Memory",
    "MemoryCandidate",
    "MemoryStatistics",
    "MemoryType",
    "Message",
    "MessageRole",
    "RetrievalQuery",
    "RetrievalResult",
    "SimilarityHit",
    "VectorRecord",
]
