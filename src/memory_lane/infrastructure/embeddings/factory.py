"""Dependency injection for embedding services.

Builds a configured embedding service from settings so callers receive it
by injection rather than through a module-level singleton.
"""

from __future__ import annotations

import httpx

from memory_lane.core.base import ServiceErrorDetails
from memory_lane.core.config import Settings, settings
from memory_lane.core.decorators import with_error_handling
from memory_lane.core.errors import ValidationError
from memory_lane.core.logging import get_logger
from memory_lane.infrastructure.embeddings.cache import EmbeddingCache
from memory_lane.infrastructure.embeddings.ollama import OllamaEmbeddingService

logger = get_logger(__name__)


class EmbeddingServiceBuilder:
    """Builder for configured embedding service instances."""

    def __init__(self, config: Settings | None = None):
        self.config = config or settings
        self._use_cache = True
        self._model: str | None = None
        self._transport: httpx.AsyncBaseTransport | None = None

    def with_cache(self, enabled: bool = True) -> EmbeddingServiceBuilder:
        self._use_cache = enabled
        return self

    def with_model(self, model: str) -> EmbeddingServiceBuilder:
        self._model = model
        return self

    def with_transport(self, transport: httpx.AsyncBaseTransport) -> EmbeddingServiceBuilder:
        """Route HTTP through a custom transport (tests use ``httpx.MockTransport``)."""
        self._transport = transport
        return self

    @with_error_handling(reraise=True)
    def build(self) -> OllamaEmbeddingService:
        """Build the configured embedding service.

        Raises:
            ValidationError: If the configured dimension is not positive
        """
        config = self.config
        cache = None
        if self._use_cache and config.embedding_cache_size > 0:
            cache = EmbeddingCache(max_entries=config.embedding_cache_size)

        service = OllamaEmbeddingService(
            base_url=config.embedding_url,
            model=self._model or config.embedding_model,
            dimension=config.embedding_dimension,
            enabled=config.embedding_enabled,
            timeout=config.embedding_timeout,
            probe_timeout=config.embedding_probe_timeout,
            health_interval=config.embedding_health_interval,
            batch_concurrency=config.embedding_batch_concurrency,
            cache=cache,
            transport=self._transport,
        )
        self._validate_service(service)

        logger.info(
            "embedding_service_created",
            model=service.model,
            endpoint=service.base_url,
            dimension=service.dimension,
            enabled=service.enabled,
            cache=cache is not None,
        )
        return service

    def _validate_service(self, service: OllamaEmbeddingService) -> None:
        if service.dimension <= 0:
            raise ValidationError(
                f"Invalid embedding dimensions: {service.dimension}",
                details=ServiceErrorDetails(
                    source="embedding_builder",
                    operation="validate",
                    service_name="ollama",
                    endpoint=service.endpoint,
                ),
            )


def create_embedding_service(
    config: Settings | None = None,
    use_cache: bool = True,
    model: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> OllamaEmbeddingService:
    """Convenience function to create an embedding service for injection.

    Example:
        ```python
        embeddings = create_embedding_service()
        coordinator = DualRetrievalCoordinator(store, embeddings)
        ```
    """
    builder = EmbeddingServiceBuilder(config).with_cache(use_cache)
    if model:
        builder.with_model(model)
    if transport is not None:
        builder.with_transport(transport)
    return builder.build()
