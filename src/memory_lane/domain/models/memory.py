"""Memory domain models: extraction candidates and persisted memories."""

from datetime import datetime
from enum import Enum
from typing import Any, Self
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from memory_lane.domain.models.embedding import FixedVector
from memory_lane.domain.models.utils import utc_now


class MemoryType(str, Enum):
    """The ten kinds of memory an extraction may produce."""

    # High priority
    CORRECTION = "correction"
    DECISION = "decision"
    COMMITMENT = "commitment"

    # Medium priority
    INSIGHT = "insight"
    LEARNING = "learning"
    CONFIDENCE = "confidence"

    # Lower priority
    PATTERN_SEED = "pattern_seed"
    CROSS_AGENT = "cross_agent"
    WORKFLOW_NOTE = "workflow_note"
    GAP = "gap"


class FeedbackType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


DEFAULT_RAW_CONFIDENCE = 50.0


class MemoryFields(BaseModel):
    """Fields shared by candidates and persisted memories."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: MemoryType
    category: str = ""
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    source_chunk_ref: str = ""
    related_entities: list[str] = Field(default_factory=list)
    raw_confidence: float = DEFAULT_RAW_CONFIDENCE
    reasoning: str = ""
    evidence: list[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_").replace(" ", "_")
        return value

    @field_validator("related_entities", mode="before")
    @classmethod
    def _flatten_entities(cls, value: Any) -> list[str]:
        """Accept plain names or ``{type, raw, slug}`` objects; drop blanks and repeats."""
        if value is None:
            return []
        if isinstance(value, str | dict):
            value = [value]
        if not isinstance(value, list | tuple):
            raise ValueError(f"related_entities must be a list, got {type(value).__name__}")

        names: list[str] = []
        seen: set[str] = set()
        for entity in value:
            if isinstance(entity, dict):
                entity = entity.get("raw") or entity.get("name") or entity.get("slug") or ""
            name = str(entity).strip()
            if name and name.lower() not in seen:
                seen.add(name.lower())
                names.append(name)
        return names

    @field_validator("raw_confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        if value is None or value == "":
            return DEFAULT_RAW_CONFIDENCE
        if isinstance(value, bool) or not isinstance(value, int | float | str):
            raise ValueError(f"confidence must be a number, got {type(value).__name__}")
        try:
            number = float(value)
        except ValueError as e:
            raise ValueError(f"confidence must be a number, got {value!r}") from e
        return min(100.0, max(0.0, number))

    @field_validator("evidence", mode="before")
    @classmethod
    def _listify_evidence(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if not isinstance(value, list | tuple):
            raise ValueError(f"evidence must be a list, got {type(value).__name__}")
        return [str(item) for item in value if str(item).strip()]

    @field_validator("category", "source_chunk_ref", "reasoning", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class MemoryCandidate(MemoryFields):
    """A memory proposed by an extraction provider, before scoring."""

    @model_validator(mode="before")
    @classmethod
    def _accept_provider_keys(cls, data: Any) -> Any:
        # Providers answer with the prompt's field names
        if isinstance(data, dict):
            data = dict(data)
            if "source_chunk" in data and "source_chunk_ref" not in data:
                data["source_chunk_ref"] = data.pop("source_chunk")
            if "confidence_score" in data and "raw_confidence" not in data:
                data["raw_confidence"] = data.pop("confidence_score")
        return data


class Memory(MemoryFields):
    """A scored, embedded memory as held by the memory store."""

    id: UUID = Field(default_factory=uuid4)
    confidence_score: float = Field(ge=0.0, le=1.0)
    embedding: FixedVector
    created_at: datetime = Field(default_factory=utc_now)
    session_id: str | None = None
    times_observed: int = Field(default=1, ge=1)
    last_observed_at: datetime = Field(default_factory=utc_now)
    recall_count: int = Field(default=0, ge=0)
    positive_feedback: int = Field(default=0, ge=0)
    negative_feedback: int = Field(default=0, ge=0)

    @classmethod
    def from_candidate(
        cls,
        candidate: MemoryCandidate,
        *,
        confidence_score: float,
        embedding: FixedVector,
        session_id: str | None = None,
    ) -> Self:
        evidence = candidate.evidence or ([candidate.source_chunk_ref] if candidate.source_chunk_ref else [])
        now = utc_now()
        return cls(
            **candidate.model_dump(exclude={"evidence"}),
            evidence=evidence,
            confidence_score=confidence_score,
            embedding=embedding,
            session_id=session_id,
            created_at=now,
            last_observed_at=now,
        )

    def searchable_text(self) -> list[str]:
        """Lower-cased fields covered by literal scans."""
        return [self.title.lower(), self.content.lower(), *(entity.lower() for entity in self.related_entities)]

    def __str__(self) -> str:
        return f"Memory({self.type.value}, '{self.title[:40]}', confidence={self.confidence_score:.2f})"


class MemoryStatistics(BaseModel):
    """Summary of the memory set: counts per type, recall and feedback totals."""

    total_count: int = 0
    count_by_type: dict[str, int] = Field(default_factory=dict)
    average_confidence_by_type: dict[str, float] = Field(default_factory=dict)
    total_recalls: int = 0
    average_recalls: float = 0.0
    max_recalls: int = 0
    total_positive_feedback: int = 0
    total_negative_feedback: int = 0
    real_embedding_coverage: float = Field(default=0.0, description="Percent of memories with a real vector")
