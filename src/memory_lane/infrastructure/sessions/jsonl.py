"""Read assistant session transcripts from JSONL files."""

import asyncio
import json
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError as PydanticValidationError

from memory_lane.core.base import ResourceErrorDetails
from memory_lane.core.errors import NotFoundError
from memory_lane.core.logging import get_logger
from memory_lane.domain.models.conversation import Message, MessageRole

logger = get_logger(__name__)

# Simple log format: {"type": "input" | "output", "content": ..., "timestamp": ...}
SIMPLE_ROLES = {"input": MessageRole.USER, "output": MessageRole.ASSISTANT}
# Assistant CLI format: {"type": "user" | "assistant", "message": {"role", "content"}, ...}
CLI_ROLES = {"user": MessageRole.USER, "assistant": MessageRole.ASSISTANT}


@runtime_checkable
class SessionSource(Protocol):
    async def get_messages(self, session_id: str) -> list[Message]: ...


def _text_of(content: Any) -> str:
    """Flatten message content; list content keeps only its text blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        return "\n".join(part for part in parts if part)
    return ""


def parse_line(entry: dict[str, Any]) -> Message | None:
    """Convert one decoded JSONL entry into a message, or None if it carries no conversation text."""
    kind = entry.get("type")
    if kind in SIMPLE_ROLES:
        role, content = SIMPLE_ROLES[kind], _text_of(entry.get("content"))
    elif kind in CLI_ROLES and isinstance(entry.get("message"), dict):
        message = entry["message"]
        role = CLI_ROLES.get(message.get("role"), CLI_ROLES[kind])
        content = _text_of(message.get("content"))
    else:
        return None

    if not content.strip():
        return None

    fields: dict[str, Any] = {"role": role, "content": content}
    if entry.get("timestamp"):
        fields["timestamp"] = entry["timestamp"]
    return Message.model_validate(fields)


class JsonlSessionSource:
    """Session source over ``<base_dir>/<session_id>.jsonl`` files."""

    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir).expanduser()

    def path_for(self, session_id: str) -> Path:
        return self.base_dir / f"{session_id}.jsonl"

    def list_sessions(self) -> list[str]:
        """Session ids available on disk, most recently modified first."""
        if not self.base_dir.is_dir():
            return []
        files = sorted(self.base_dir.glob("*.jsonl"), key=lambda path: path.stat().st_mtime, reverse=True)
        return [path.stem for path in files]

    async def get_messages(self, session_id: str) -> list[Message]:
        """Load a session's messages in file order.

        Raises:
            NotFoundError: If the session file does not exist
        """
        path = self.path_for(session_id)
        # Reject ids that would escape the sessions directory
        if path.parent != self.base_dir or not path.is_file():
            raise NotFoundError(
                f"Session {session_id} not found",
                details=ResourceErrorDetails(
                    source="jsonl_session_source",
                    operation="get_messages",
                    resource_id=session_id,
                    resource_type="session",
                    action="read",
                ),
            )

        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return self.parse(text, session_id)

    def parse(self, text: str, session_id: str = "") -> list[Message]:
        messages: list[Message] = []
        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
                if not isinstance(entry, dict):
                    raise ValueError(f"expected an object, got {type(entry).__name__}")
                message = parse_line(entry)
            except (ValueError, PydanticValidationError) as e:
                logger.warning("session_line_skipped", session_id=session_id, line=line_number, error=str(e))
                continue
            if message is None:
                logger.debug("session_line_ignored", session_id=session_id, line=line_number, type=entry.get("type"))
                continue
            messages.append(message)

        logger.debug("session_loaded", session_id=session_id, messages=len(messages))
        return messages
