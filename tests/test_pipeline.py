import asyncio

import pytest
from structlog.testing import capture_logs

from memory_lane.core.errors import NotFoundError
from memory_lane.domain.models import ConversationChunk, MemoryCandidate, Message
from memory_lane.domain.scoring import score
from memory_lane.infrastructure.repositories.memory import InMemoryMemoryStore
from memory_lane.services.extraction import MemoryExtractionService

from conftest import FakeEmbeddings, make_messages

VECTORS = {
    "alpha content": [1.0, 0.0, 0.0],
    "beta content": [0.0, 1.0, 0.0],
    "gamma content": [0.0, 0.0, 1.0],
}


def candidate(name: str, evidence: str, confidence: float = 60, entities: list[str] | None = None) -> MemoryCandidate:
    return MemoryCandidate(
        type="decision",
        title=f"{name} title",
        content=f"{name} content",
        source_chunk_ref=evidence,
        raw_confidence=confidence,
        related_entities=entities or [],
    )


class FakeSessions:
    def __init__(self, sessions: dict[str, list[Message]]):
        self.sessions = sessions

    async def get_messages(self, session_id: str) -> list[Message]:
        if session_id not in self.sessions:
            raise NotFoundError(f"Session {session_id} not found")
        return self.sessions[session_id]


class ScriptedClient:
    """Returns pre-scripted candidates per chunk index."""

    def __init__(self, script: dict[int, list[MemoryCandidate]]):
        self.script = script
        self.seen: list[str] = []

    async def extract(self, chunk: ConversationChunk) -> list[MemoryCandidate]:
        self.seen.append(chunk.chunk_id)
        return list(self.script.get(chunk.chunk_index, []))


@pytest.fixture
def store() -> InMemoryMemoryStore:
    return InMemoryMemoryStore(dimension=3)


def make_service(store, client, test_settings, sessions=None) -> MemoryExtractionService:
    return MemoryExtractionService(
        sessions=sessions or FakeSessions({"s1": make_messages(5), "s2": make_messages(2)}),
        client=client,
        embeddings=FakeEmbeddings(VECTORS),
        store=store,
        config=test_settings,
    )


async def test_new_memories_are_scored_and_stored(store, test_settings):
    client = ScriptedClient({0: [candidate("alpha", "User: alpha", confidence=60)]})
    service = make_service(store, client, test_settings)

    assert await service.extract("s1") == 1

    [memory] = await store.all()
    assert memory.session_id == "s1"
    assert memory.confidence_score == pytest.approx(score(60, "decision", "alpha content"))
    assert memory.embedding.values == VECTORS["alpha content"]
    assert memory.evidence == ["User: alpha"]
    assert memory.times_observed == 1


async def test_duplicates_merge_instead_of_insert(store, test_settings):
    client = ScriptedClient(
        {
            0: [candidate("alpha", "first sighting", confidence=40, entities=["Repo"])],
            1: [candidate("alpha", "second sighting", confidence=90, entities=["Team"]), candidate("beta", "b")],
            2: [],
        }
    )
    service = make_service(store, client, test_settings)

    new = await service.extract("s1")

    assert new == 2
    assert await store.count() == 2
    [alpha] = [m for m in await store.all() if m.title == "alpha title"]
    assert alpha.times_observed == 2
    assert alpha.evidence == ["first sighting", "second sighting"]
    assert alpha.related_entities == ["Repo", "Team"]
    assert alpha.confidence_score == pytest.approx(score(90, "decision", "alpha content"))
    assert alpha.last_observed_at >= alpha.created_at


async def test_dedup_can_be_disabled(store, test_settings):
    client = ScriptedClient({0: [candidate("alpha", "a")], 1: [candidate("alpha", "b")]})
    config = test_settings.model_copy(update={"dedup_threshold": None})
    service = make_service(store, client, config)

    assert await service.extract("s1") == 2


async def test_progress_reported_per_chunk(store, test_settings):
    progress: list[tuple[int, int]] = []
    service = make_service(store, ScriptedClient({}), test_settings)

    await service.extract("s1", on_progress=lambda done, total: progress.append((done, total)))

    assert progress == [(1, 3), (2, 3), (3, 3)]


async def test_cancellation_stops_at_chunk_boundary(store, test_settings):
    cancel = asyncio.Event()
    client = ScriptedClient({0: [candidate("alpha", "a")], 1: [candidate("beta", "b")]})
    service = make_service(store, client, test_settings)

    with capture_logs() as logs:
        new = await service.extract("s1", cancel_event=cancel, on_progress=lambda done, total: cancel.set())

    assert new == 1
    assert client.seen == ["s1:0"]
    [summary] = [entry for entry in logs if entry["event"] == "session_extraction_complete"]
    assert summary["cancelled"] is True
    assert summary["chunks"] == 3
    assert summary["chunks_processed"] == 1


async def test_summary_event(store, test_settings):
    client = ScriptedClient({0: [candidate("alpha", "a")], 1: [candidate("alpha", "b")]})
    service = make_service(store, client, test_settings)

    with capture_logs() as logs:
        await service.extract("s1")

    [summary] = [entry for entry in logs if entry["event"] == "session_extraction_complete"]
    assert summary["session_id"] == "s1"
    assert summary["new_memories"] == 1
    assert summary["merged"] == 1
    assert summary["cancelled"] is False


async def test_missing_session_propagates(store, test_settings):
    service = make_service(store, ScriptedClient({}), test_settings)

    with pytest.raises(NotFoundError):
        await service.extract("nope")


async def test_empty_session_extracts_nothing(store, test_settings):
    client = ScriptedClient({})
    service = make_service(store, client, test_settings, sessions=FakeSessions({"empty": []}))

    assert await service.extract("empty") == 0
    assert client.seen == []


async def test_extract_sessions_in_parallel(store, test_settings):
    client = ScriptedClient({0: [candidate("gamma", "g")]})
    service = make_service(store, client, test_settings)

    counts = await service.extract_sessions(["s1", "s2"], concurrency=2)

    # Both sessions propose the same memory; whichever runs second merges
    assert sorted(counts.values()) == [0, 1]
    assert set(counts) == {"s1", "s2"}
    [memory] = await store.all()
    assert memory.times_observed == 2
