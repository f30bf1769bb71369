import json

import pytest

from memory_lane.core.errors import NotFoundError
from memory_lane.domain.models import MessageRole
from memory_lane.infrastructure.sessions.jsonl import JsonlSessionSource, SessionSource


def write_session(directory, session_id: str, lines: list) -> None:
    rendered = [line if isinstance(line, str) else json.dumps(line) for line in lines]
    (directory / f"{session_id}.jsonl").write_text("\n".join(rendered) + "\n", encoding="utf-8")


def test_satisfies_protocol(tmp_path):
    assert isinstance(JsonlSessionSource(tmp_path), SessionSource)


async def test_simple_format(tmp_path):
    write_session(
        tmp_path,
        "simple",
        [
            {"type": "input", "content": "Please use tabs", "timestamp": "2025-11-02T10:00:00Z"},
            {"type": "output", "content": "Switched to tabs", "timestamp": "2025-11-02T10:00:05Z"},
        ],
    )

    messages = await JsonlSessionSource(tmp_path).get_messages("simple")

    assert [(m.role, m.content) for m in messages] == [
        (MessageRole.USER, "Please use tabs"),
        (MessageRole.ASSISTANT, "Switched to tabs"),
    ]
    assert messages[0].timestamp.year == 2025


async def test_cli_format_keeps_text_blocks(tmp_path):
    write_session(
        tmp_path,
        "cli",
        [
            {"type": "summary", "summary": "Tab discussion"},
            {"type": "user", "message": {"role": "user", "content": "Never use spaces"}},
            {
                "type": "assistant",
                "message": {
                    "role": "assistant",
                    "content": [
                        {"type": "thinking", "thinking": "..."},
                        {"type": "text", "text": "Understood."},
                        {"type": "tool_use", "name": "Edit", "input": {}},
                    ],
                },
            },
            {"type": "user", "message": {"role": "user", "content": [{"type": "tool_result", "content": "ok"}]}},
        ],
    )

    messages = await JsonlSessionSource(tmp_path).get_messages("cli")

    assert [(m.role, m.content) for m in messages] == [
        (MessageRole.USER, "Never use spaces"),
        (MessageRole.ASSISTANT, "Understood."),
    ]


async def test_malformed_lines_skipped(tmp_path):
    write_session(
        tmp_path,
        "messy",
        [
            "{not json",
            {"type": "input", "content": "kept"},
            "[1, 2, 3]",
            {"type": "input", "content": "bad time", "timestamp": "yesterday-ish"},
            "",
        ],
    )

    messages = await JsonlSessionSource(tmp_path).get_messages("messy")

    assert [m.content for m in messages] == ["kept"]


async def test_missing_session(tmp_path):
    with pytest.raises(NotFoundError):
        await JsonlSessionSource(tmp_path).get_messages("absent")


async def test_session_id_cannot_escape_directory(tmp_path):
    (tmp_path / "outside.jsonl").write_text("", encoding="utf-8")
    sessions = tmp_path / "sessions"
    sessions.mkdir()

    with pytest.raises(NotFoundError):
        await JsonlSessionSource(sessions).get_messages("../outside")


def test_list_sessions(tmp_path):
    write_session(tmp_path, "a", [{"type": "input", "content": "x"}])
    write_session(tmp_path, "b", [{"type": "input", "content": "y"}])
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    assert sorted(JsonlSessionSource(tmp_path).list_sessions()) == ["a", "b"]
    assert JsonlSessionSource(tmp_path / "missing").list_sessions() == []
