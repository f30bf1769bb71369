"""Retrieval query and result models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from memory_lane.domain.models.memory import Memory


class MatchType(str, Enum):
    """Which retrieval signal(s) found a memory."""

    ENTITY = "entity"
    SEMANTIC = "semantic"
    BOTH = "both"


class RetrievalQuery(BaseModel):
    """A hybrid retrieval request."""

    text: str = ""
    entity_filters: list[str] = Field(default_factory=list)
    threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    top_k: int = Field(default=10, gt=0)


class VectorRecord(BaseModel):
    """One stored vector as enumerated for ranking."""

    memory_id: UUID
    vector: list[float]
    created_at: datetime


class SimilarityHit(BaseModel):
    """A ranked semantic match."""

    memory_id: UUID
    similarity: float


class RetrievalResult(BaseModel):
    """A merged, ranked retrieval hit."""

    memory_id: UUID
    match_type: MatchType
    combined_rank: float
    similarity: float | None = None
    memory: Memory | None = None
