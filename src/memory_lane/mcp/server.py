#!/usr/bin/env python3
"""
Memory Lane MCP server over stdio.

Exposes session extraction, hybrid retrieval and embedding status as MCP
tools so an assistant CLI can call the core services directly.
"""

import json
import logging
from typing import Any
from uuid import UUID

import anyio
import httpx
import logfire
import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from pydantic import ValidationError as PydanticValidationError

from memory_lane.core.base import ApplicationError
from memory_lane.core.config import Settings, settings
from memory_lane.core.logging import get_logger, setup_logging
from memory_lane.domain.models.retrieval import RetrievalQuery
from memory_lane.infrastructure.embeddings.factory import create_embedding_service
from memory_lane.infrastructure.embeddings.ollama import OllamaEmbeddingService
from memory_lane.infrastructure.extraction.client import ExtractionClient
from memory_lane.infrastructure.extraction.context import ExtractionContext
from memory_lane.infrastructure.repositories.memory import InMemoryMemoryStore
from memory_lane.infrastructure.sessions.jsonl import JsonlSessionSource
from memory_lane.services.extraction import MemoryExtractionService
from memory_lane.services.retrieval import DualRetrievalCoordinator

logger = get_logger(__name__)


class MemoryLaneTools:
    """The operations behind each MCP tool, returning display text."""

    def __init__(
        self,
        extraction: MemoryExtractionService,
        retrieval: DualRetrievalCoordinator,
        embeddings: OllamaEmbeddingService,
        config: Settings | None = None,
    ):
        self.extraction = extraction
        self.retrieval = retrieval
        self.embeddings = embeddings
        self.config = config or settings

    async def extract_session(self, session_id: str) -> str:
        count = await self.extraction.extract(session_id)
        return f"Extracted {count} new memories from session {session_id}"

    async def retrieve_memories(
        self,
        text: str = "",
        entity_filters: list[str] | None = None,
        threshold: float | None = None,
        top_k: int | None = None,
    ) -> str:
        query = RetrievalQuery(
            text=text,
            entity_filters=entity_filters or [],
            threshold=self.config.retrieval_threshold if threshold is None else threshold,
            top_k=self.config.retrieval_top_k if top_k is None else top_k,
        )
        results = await self.retrieval.retrieve(query)
        payload = [result.model_dump(mode="json", exclude={"memory": {"embedding"}}) for result in results]
        return json.dumps(payload, indent=2)

    async def embedding_status(self) -> str:
        status = await self.embeddings.refresh_status()
        return status.model_dump_json(indent=2)

    async def submit_feedback(self, memory_id: str, feedback: str, session_id: str | None = None) -> str:
        memory = await self.retrieval.submit_feedback(UUID(memory_id), feedback, session_id=session_id)
        return (
            f"Recorded {feedback} feedback for {memory.title!r} "
            f"(+{memory.positive_feedback} / -{memory.negative_feedback})"
        )

    async def memory_statistics(self) -> str:
        statistics = await self.retrieval.store.statistics()
        return statistics.model_dump_json(indent=2)


TOOLS = [
    types.Tool(
        name="extract_session",
        description="Extract typed, confidence-scored memories from a stored assistant session",
        inputSchema={
            "type": "object",
            "required": ["session_id"],
            "properties": {
                "session_id": {"type": "string", "description": "Session file name without .jsonl"},
            },
        },
    ),
    types.Tool(
        name="retrieve_memories",
        description="Hybrid retrieval: literal entity matches merged with semantic matches",
        inputSchema={
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "Free-text query"},
                "entity_filters": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Entity names to match literally",
                },
                "threshold": {"type": "number", "minimum": 0, "maximum": 1},
                "top_k": {"type": "integer", "minimum": 1},
            },
        },
    ),
    types.Tool(
        name="embedding_status",
        description="Report whether embeddings come from the local model or the offline fallback",
        inputSchema={"type": "object", "properties": {}},
    ),
    types.Tool(
        name="submit_feedback",
        description="Rate a retrieved memory as helpful or unhelpful",
        inputSchema={
            "type": "object",
            "required": ["memory_id", "feedback"],
            "properties": {
                "memory_id": {"type": "string", "description": "Memory id from retrieve_memories"},
                "feedback": {"type": "string", "enum": ["positive", "negative"]},
                "session_id": {"type": "string"},
            },
        },
    ),
    types.Tool(
        name="memory_statistics",
        description="Counts per memory type plus recall and feedback totals",
        inputSchema={"type": "object", "properties": {}},
    ),
]


def create_mcp_server(tools: MemoryLaneTools) -> Server:
    """Create the MCP server instance."""
    app = Server("memory-lane")

    @app.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.ContentBlock]:
        try:
            if name == "extract_session":
                text = await tools.extract_session(arguments["session_id"])
            elif name == "retrieve_memories":
                text = await tools.retrieve_memories(
                    text=arguments.get("text", ""),
                    entity_filters=arguments.get("entity_filters"),
                    threshold=arguments.get("threshold"),
                    top_k=arguments.get("top_k"),
                )
            elif name == "embedding_status":
                text = await tools.embedding_status()
            elif name == "submit_feedback":
                text = await tools.submit_feedback(
                    arguments["memory_id"], arguments["feedback"], session_id=arguments.get("session_id")
                )
            elif name == "memory_statistics":
                text = await tools.memory_statistics()
            else:
                text = f"Unknown tool: {name}"
        except ApplicationError as e:
            text = f"Error calling {name}: {e.message} (code {e.code.value})"
        except (PydanticValidationError, KeyError, ValueError) as e:
            text = f"Invalid arguments for {name}: {e!s}"

        return [types.TextContent(type="text", text=text)]

    @app.list_tools()
    async def list_tools() -> list[types.Tool]:
        return TOOLS

    return app


def build_tools(config: Settings) -> MemoryLaneTools:
    """Wire the services from settings."""
    embeddings = create_embedding_service(config)
    store = InMemoryMemoryStore(dimension=config.embedding_dimension)
    context = ExtractionContext.from_settings(config, http_client=httpx.AsyncClient())
    extraction = MemoryExtractionService(
        sessions=JsonlSessionSource(config.sessions_dir),
        client=ExtractionClient(context),
        embeddings=embeddings,
        store=store,
        config=config,
    )
    retrieval = DualRetrievalCoordinator(store, embeddings)
    return MemoryLaneTools(extraction, retrieval, embeddings, config)


async def serve() -> None:
    """Run the MCP server on stdin/stdout."""
    tools = build_tools(settings)
    app = create_mcp_server(tools)
    logger.info("mcp_server_starting", transport="stdio", sessions_dir=str(settings.sessions_dir))

    try:
        async with stdio_server() as streams:
            await app.run(streams[0], streams[1], app.create_initialization_options())
    finally:
        await tools.embeddings.aclose()
        await tools.extraction.client.ctx.http_client.aclose()


def main() -> None:
    """Console entry point for ``memory-lane-mcp``."""
    # stdout carries the MCP protocol, so no Logfire console output
    logfire.configure(service_name="memory-lane", send_to_logfire="if-token-present", console=False)
    setup_logging(logging.DEBUG if settings.debug else logging.INFO)
    anyio.run(serve)


if __name__ == "__main__":
    main()
