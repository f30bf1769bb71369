import json

import httpx
import numpy as np
import pytest

from memory_lane.core.config import Settings
from memory_lane.core.errors import DimensionMismatchError, ValidationError
from memory_lane.domain.models import EmbeddingMode
from memory_lane.infrastructure.embeddings.cache import EmbeddingCache
from memory_lane.infrastructure.embeddings.factory import create_embedding_service
from memory_lane.infrastructure.embeddings.mock import mock_embedding
from memory_lane.infrastructure.embeddings.ollama import OllamaEmbeddingService

DIMENSION = 4


class FakeOllama:
    """MockTransport handler emulating /api/tags and /api/embed."""

    def __init__(self, models=("mxbai-embed-large:latest",), vector=None, fail_inputs=(), status=200):
        self.models = list(models)
        self.vector = vector or [0.5, 1.5, -2.0, 3.0]
        self.fail_inputs = set(fail_inputs)
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": name} for name in self.models]})
        body = json.loads(request.content)
        if body["input"] in self.fail_inputs or self.status != 200:
            return httpx.Response(self.status if self.status != 200 else 500, json={"error": "boom"})
        return httpx.Response(200, json={"model": body["model"], "embeddings": [self.vector]})

    @property
    def embed_calls(self) -> int:
        return sum(1 for request in self.requests if request.url.path == "/api/embed")


def make_service(handler, **kwargs) -> OllamaEmbeddingService:
    kwargs.setdefault("dimension", DIMENSION)
    return OllamaEmbeddingService(transport=httpx.MockTransport(handler), **kwargs)


class TestMockEmbedding:
    def test_deterministic(self):
        assert mock_embedding("same text", 16) == mock_embedding("same text", 16)

    def test_different_text_differs(self):
        assert mock_embedding("one", 16) != mock_embedding("two", 16)

    def test_unit_length_and_dimension(self):
        vector = mock_embedding("hello", 1024)
        assert len(vector) == 1024
        assert np.linalg.norm(vector) == pytest.approx(1.0)


class TestOllamaEmbeddingService:
    async def test_real_vector_returned_verbatim(self):
        fake = FakeOllama()
        service = make_service(fake)

        result = await service.embed("hello")

        assert result.mode == EmbeddingMode.REAL
        assert result.values == [0.5, 1.5, -2.0, 3.0]
        status = service.embedding_status()
        assert status.mode == EmbeddingMode.REAL
        assert status.reachable is True
        assert status.dimension == DIMENSION

    async def test_request_body(self):
        fake = FakeOllama()
        await make_service(fake).embed("hello")

        embed_request = next(r for r in fake.requests if r.url.path == "/api/embed")
        assert embed_request.method == "POST"
        assert json.loads(embed_request.content) == {"model": "mxbai-embed-large", "input": "hello"}

    async def test_model_not_listed_falls_back_without_embedding_call(self):
        fake = FakeOllama(models=["nomic-embed-text:latest"])
        service = make_service(fake)

        result = await service.embed("hello")

        assert result.mode == EmbeddingMode.MOCK
        assert result.values == mock_embedding("hello", DIMENSION)
        assert fake.embed_calls == 0
        assert service.embedding_status().reachable is False

    async def test_connection_error_falls_back(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        service = make_service(refuse)
        result = await service.embed("hello")

        assert result.mode == EmbeddingMode.MOCK
        assert service.embedding_status().mode == EmbeddingMode.MOCK

    async def test_timeout_on_embed_marks_unreachable(self):
        fake = FakeOllama()

        def slow_embed(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/embed":
                raise httpx.ReadTimeout("timed out", request=request)
            return fake(request)

        service = make_service(slow_embed)
        first = await service.embed("one")
        second = await service.embed("two")

        assert first.mode == EmbeddingMode.MOCK
        assert second.mode == EmbeddingMode.MOCK
        assert service.embedding_status().reachable is False

    async def test_http_error_falls_back_without_marking_unreachable(self):
        service = make_service(FakeOllama(status=503))

        result = await service.embed("hello")

        assert result.mode == EmbeddingMode.MOCK
        assert result.values == mock_embedding("hello", DIMENSION)
        assert service.embedding_status().reachable is True

    async def test_dimension_mismatch_raises(self):
        service = make_service(FakeOllama(vector=[1.0, 2.0]))

        with pytest.raises(DimensionMismatchError) as exc_info:
            await service.embed("hello")
        assert exc_info.value.details.actual_dimension == 2

    async def test_disabled_never_calls_endpoint(self):
        fake = FakeOllama()
        service = make_service(fake, enabled=False)

        result = await service.embed("hello")

        assert result.mode == EmbeddingMode.MOCK
        assert fake.requests == []

    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_text_rejected(self, text):
        with pytest.raises(ValidationError):
            await make_service(FakeOllama()).embed(text)

    async def test_batch_falls_back_per_item_in_order(self):
        fake = FakeOllama(fail_inputs={"bad"})
        service = make_service(fake, batch_concurrency=2)

        results = await service.embed_batch(["good one", "bad", "good two"])

        assert [r.mode for r in results] == [EmbeddingMode.REAL, EmbeddingMode.MOCK, EmbeddingMode.REAL]
        assert results[1].values == mock_embedding("bad", DIMENSION)

    async def test_cache_avoids_repeat_calls(self):
        fake = FakeOllama()
        cache = EmbeddingCache(max_entries=8)
        service = make_service(fake, cache=cache)

        await service.embed("hello")
        again = await service.embed("hello")

        assert again.mode == EmbeddingMode.REAL
        assert fake.embed_calls == 1
        assert len(cache) == 1
        assert cache.hits == 1

    async def test_probe_cached_until_interval_expires(self):
        fake = FakeOllama()
        now = [0.0]
        service = make_service(fake, health_interval=300, clock=lambda: now[0])

        await service.embed("one")
        await service.embed("two")
        probes = sum(1 for r in fake.requests if r.url.path == "/api/tags")
        assert probes == 1

        now[0] = 301.0
        await service.embed("three")
        probes = sum(1 for r in fake.requests if r.url.path == "/api/tags")
        assert probes == 2

    async def test_refresh_status_probes_before_first_call(self):
        service = make_service(FakeOllama())

        assert service.embedding_status().reachable is False

        status = await service.refresh_status()

        assert status.reachable is True
        assert status.mode == EmbeddingMode.REAL

    async def test_refresh_status_replaces_stale_probe(self):
        fake = FakeOllama()
        now = [0.0]
        service = make_service(fake, health_interval=300, clock=lambda: now[0])
        assert (await service.refresh_status()).reachable is True

        fake.models = []
        assert (await service.refresh_status()).reachable is True

        now[0] = 301.0
        status = await service.refresh_status()
        assert status.reachable is False
        assert status.mode == EmbeddingMode.MOCK


class TestEmbeddingCache:
    def test_model_is_part_of_key(self):
        cache = EmbeddingCache()
        cache.store("text", "model-a", [1.0])

        assert cache.get_cached("text", "model-a") == [1.0]
        assert cache.get_cached("text", "model-b") is None

    def test_evicts_least_recently_used(self):
        cache = EmbeddingCache(max_entries=2)
        cache.store("a", "m", [1.0])
        cache.store("b", "m", [2.0])
        cache.get_cached("a", "m")
        cache.store("c", "m", [3.0])

        assert cache.get_cached("b", "m") is None
        assert cache.get_cached("a", "m") == [1.0]
        assert len(cache) == 2


async def test_factory_builds_from_settings():
    config = Settings(_env_file=None, embedding_dimension=DIMENSION, embedding_model="mxbai-embed-large")
    service = create_embedding_service(config, transport=httpx.MockTransport(FakeOllama()))

    assert service.dimension == DIMENSION
    assert service.cache is not None
    assert (await service.embed("hello")).mode == EmbeddingMode.REAL
    await service.aclose()
