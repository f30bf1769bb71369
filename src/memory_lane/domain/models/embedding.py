"""Embedding vector models."""

from enum import Enum

from pydantic import BaseModel, Field


class EmbeddingMode(str, Enum):
    """How a vector was produced."""

    REAL = "real"
    MOCK = "mock"


class FixedVector(BaseModel):
    """An embedding vector tagged with the mode that produced it."""

    values: list[float] = Field(min_length=1)
    mode: EmbeddingMode

    @property
    def dimension(self) -> int:
        return len(self.values)

    def __len__(self) -> int:
        return len(self.values)


class EmbeddingStatus(BaseModel):
    """Observable state of the embedding service."""

    mode: EmbeddingMode
    dimension: int
    reachable: bool
    model: str
    endpoint: str
