"""Shared test fixtures for memory-lane tests."""

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

import pytest

from memory_lane.core.config import Settings
from memory_lane.domain.models import (
    EmbeddingMode,
    EmbeddingStatus,
    FixedVector,
    Memory,
    MemoryType,
    Message,
    MessageRole,
)
from memory_lane.domain.models.utils import utc_now
from memory_lane.infrastructure.embeddings.mock import mock_embedding
from memory_lane.infrastructure.extraction.context import CommandResult


class FakeEmbeddings:
    """Embedding service returning fixed vectors for known texts and mock vectors otherwise."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, dimension: int = 3):
        self.vectors = vectors or {}
        self.dimension = dimension
        self.calls: list[str] = []

    async def embed(self, text: str) -> FixedVector:
        self.calls.append(text)
        if text in self.vectors:
            return FixedVector(values=self.vectors[text], mode=EmbeddingMode.REAL)
        return FixedVector(values=mock_embedding(text, self.dimension), mode=EmbeddingMode.MOCK)

    async def embed_batch(self, texts: list[str]) -> list[FixedVector]:
        return [await self.embed(text) for text in texts]

    def embedding_status(self) -> EmbeddingStatus:
        return EmbeddingStatus(
            mode=EmbeddingMode.REAL,
            dimension=self.dimension,
            reachable=True,
            model="fake",
            endpoint="memory://fake",
        )


class FakeRunner:
    """Scripted stand-in for the subprocess runner used by the CLI provider."""

    def __init__(
        self,
        version: CommandResult | BaseException | None = None,
        auth: CommandResult | BaseException | None = None,
        prompt: CommandResult | BaseException | None = None,
    ):
        self.responses = {
            "--version": version or CommandResult(0, "2.0.0 (Claude Code)\n", ""),
            "auth": auth or CommandResult(0, "Authenticated as: dev@example.com\n", ""),
            "-p": prompt or CommandResult(0, '{"type": "result", "result": "[]"}', ""),
        }
        self.calls: list[list[str]] = []

    async def __call__(self, args: Sequence[str], timeout: float) -> CommandResult:
        self.calls.append(list(args))
        response = self.responses[args[1]]
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def prompt_calls(self) -> list[list[str]]:
        return [call for call in self.calls if call[1] == "-p"]


def make_memory(
    title: str,
    content: str,
    vector: list[float],
    entities: list[str] | None = None,
    created_at: datetime | None = None,
    memory_type: MemoryType = MemoryType.INSIGHT,
    **extra: Any,
) -> Memory:
    return Memory(
        type=memory_type,
        title=title,
        content=content,
        related_entities=entities or [],
        confidence_score=0.5,
        embedding=FixedVector(values=vector, mode=EmbeddingMode.REAL),
        created_at=created_at or utc_now(),
        **extra,
    )


def make_messages(count: int) -> list[Message]:
    start = utc_now() - timedelta(minutes=count)
    return [
        Message(
            role=MessageRole.USER if index % 2 == 0 else MessageRole.ASSISTANT,
            content=f"message {index}",
            timestamp=start + timedelta(minutes=index),
        )
        for index in range(count)
    ]


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        anthropic_api_key="",
        embedding_dimension=3,
        chunk_size=2,
        dedup_threshold=0.9,
    )


@pytest.fixture
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()
