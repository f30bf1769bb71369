"""Local embedding endpoint (Ollama) with a deterministic mock fallback."""

import asyncio
import time
from collections.abc import Callable
from typing import Any

import httpx

from memory_lane.core.base import AIServiceErrorDetails, ValidationErrorDetails
from memory_lane.core.errors import DimensionMismatchError, EmbeddingUnavailable, ValidationError
from memory_lane.core.logging import get_logger
from memory_lane.domain.models.embedding import EmbeddingMode, EmbeddingStatus, FixedVector
from memory_lane.infrastructure.embeddings.cache import EmbeddingCache
from memory_lane.infrastructure.embeddings.mock import mock_embedding

logger = get_logger(__name__)


class OllamaEmbeddingService:
    """Embedding service backed by Ollama's ``/api/embed``.

    Every vector is tagged with the mode that produced it. When the endpoint
    is disabled, unreachable or misbehaving, a seeded mock vector is returned
    instead, so callers never fail on embedding availability. A vector of the
    wrong dimension is never substituted and raises DimensionMismatchError.

    Reachability comes from ``GET /api/tags`` and is trusted for
    ``health_interval`` seconds. A connection failure or timeout on a real
    call marks the endpoint unreachable until the next probe; an HTTP error or
    malformed body only sends that one item to the mock.
    """

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:11434",
        model: str = "mxbai-embed-large",
        dimension: int = 1024,
        enabled: bool = True,
        timeout: float = 30.0,
        probe_timeout: float = 5.0,
        health_interval: float = 300.0,
        batch_concurrency: int = 4,
        cache: EmbeddingCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dimension = dimension
        self.enabled = enabled
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self.health_interval = health_interval
        self.batch_concurrency = max(1, batch_concurrency)
        self.cache = cache
        self._clock = clock
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport)
        self._reachable: bool | None = None
        self._checked_at: float | None = None
        self._probe_lock = asyncio.Lock()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/embed"

    async def aclose(self) -> None:
        await self._client.aclose()

    def _probe_is_fresh(self) -> bool:
        return self._checked_at is not None and self._clock() - self._checked_at < self.health_interval

    def _mark(self, reachable: bool) -> None:
        self._reachable = reachable
        self._checked_at = self._clock()

    async def check_health(self, force: bool = False) -> bool:
        """Probe the endpoint and report whether the configured model is served."""
        if not self.enabled:
            return False

        async with self._probe_lock:
            if not force and self._probe_is_fresh():
                return bool(self._reachable)

            try:
                response = await self._client.get("/api/tags", timeout=self.probe_timeout)
                response.raise_for_status()
                names = [str(entry.get("name", "")) for entry in response.json().get("models", [])]
                reachable = any(name == self.model or name.split(":", 1)[0] == self.model for name in names)
                if not reachable:
                    logger.warning("embedding_model_not_listed", model=self.model, available=names)
            except (httpx.HTTPError, ValueError, AttributeError) as e:
                logger.warning("embedding_probe_failed", endpoint=self.base_url, error=str(e))
                reachable = False

            self._mark(reachable)
            return reachable

    def _validate_text(self, text: str) -> None:
        if not text or not text.strip():
            raise ValidationError(
                "Cannot embed empty text",
                details=ValidationErrorDetails(
                    source="ollama_embedding",
                    operation="embed",
                    field="text",
                    actual_value=text,
                    constraint="non-empty",
                ),
            )

    def _mock(self, text: str) -> FixedVector:
        return FixedVector(values=mock_embedding(text, self.dimension), mode=EmbeddingMode.MOCK)

    def _check_dimension(self, values: list[float], operation: str) -> None:
        if len(values) != self.dimension:
            raise DimensionMismatchError(
                f"Embedding model {self.model} returned {len(values)} values, expected {self.dimension}",
                details=AIServiceErrorDetails(
                    source="ollama_embedding",
                    operation=operation,
                    service_name="ollama",
                    endpoint=self.endpoint,
                    model_name=self.model,
                    expected_dimension=self.dimension,
                    actual_dimension=len(values),
                ),
            )

    async def _embed_real(self, text: str) -> list[float]:
        """Call the endpoint once.

        Raises:
            EmbeddingUnavailable: On timeout, HTTP error or malformed body
            DimensionMismatchError: If the vector has the wrong length
        """
        started = self._clock()
        try:
            response = await self._client.post(
                "/api/embed",
                json={"model": self.model, "input": text},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body: Any = response.json()
            values = [float(value) for value in body["embeddings"][0]]
        except httpx.HTTPStatusError as e:
            raise EmbeddingUnavailable(
                f"Embedding endpoint returned {e.response.status_code}",
                details=AIServiceErrorDetails(
                    source="ollama_embedding",
                    operation="embed",
                    service_name="ollama",
                    endpoint=self.endpoint,
                    status_code=e.response.status_code,
                    model_name=self.model,
                ),
            ) from e
        except httpx.HTTPError as e:
            # Connection-level failure: stop calling until the next probe
            self._mark(False)
            raise EmbeddingUnavailable(
                f"Embedding endpoint request failed: {type(e).__name__}",
                details=AIServiceErrorDetails(
                    source="ollama_embedding",
                    operation="embed",
                    service_name="ollama",
                    endpoint=self.endpoint,
                    latency_ms=(self._clock() - started) * 1000,
                    model_name=self.model,
                ),
            ) from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EmbeddingUnavailable(
                "Embedding endpoint returned a malformed body",
                details=AIServiceErrorDetails(
                    source="ollama_embedding",
                    operation="embed",
                    service_name="ollama",
                    endpoint=self.endpoint,
                    model_name=self.model,
                ),
            ) from e

        self._check_dimension(values, "embed")
        return values

    async def _embed_one(self, text: str) -> FixedVector:
        if self.cache is not None:
            cached = self.cache.get_cached(text, self.model)
            if cached is not None:
                logger.debug("embedding_cache_hit", model=self.model, text_preview=text[:50])
                return FixedVector(values=cached, mode=EmbeddingMode.REAL)

        if not await self.check_health():
            return self._mock(text)

        try:
            values = await self._embed_real(text)
        except EmbeddingUnavailable as e:
            logger.warning("embedding_fallback_to_mock", error=e.message, error_code=e.code.value)
            return self._mock(text)

        if self.cache is not None:
            self.cache.store(text, self.model, values)
        return FixedVector(values=values, mode=EmbeddingMode.REAL)

    async def embed(self, text: str) -> FixedVector:
        """Embed one text, falling back to a mock vector when the endpoint is unusable.

        Raises:
            ValidationError: If the text is empty
            DimensionMismatchError: If the endpoint returns the wrong dimension
        """
        self._validate_text(text)
        return await self._embed_one(text)

    async def embed_batch(self, texts: list[str]) -> list[FixedVector]:
        """Embed texts concurrently; each item falls back to mock on its own."""
        for text in texts:
            self._validate_text(text)

        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def bounded(text: str) -> FixedVector:
            async with semaphore:
                return await self._embed_one(text)

        return list(await asyncio.gather(*(bounded(text) for text in texts)))

    def embedding_status(self) -> EmbeddingStatus:
        """Last known status; reports mock until the first probe has run."""
        reachable = bool(self.enabled and self._reachable)
        return EmbeddingStatus(
            mode=EmbeddingMode.REAL if reachable else EmbeddingMode.MOCK,
            dimension=self.dimension,
            reachable=reachable,
            model=self.model,
            endpoint=self.base_url,
        )

    async def refresh_status(self) -> EmbeddingStatus:
        """Status after re-probing the endpoint if the last probe is missing or stale."""
        await self.check_health()
        return self.embedding_status()
