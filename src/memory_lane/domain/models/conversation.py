"""Conversation models for transcripts fed to extraction."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from memory_lane.domain.models.utils import utc_now


class MessageRole(str, Enum):
    """Message roles in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """A single message in a conversation."""

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def speaker(self) -> str:
        return "User" if self.role == MessageRole.USER else "Assistant"


class ConversationChunk(BaseModel):
    """A bounded, non-overlapping slice of one session's messages."""

    session_id: str
    chunk_index: int = Field(ge=0)
    messages: list[Message] = Field(default_factory=list)

    @property
    def chunk_id(self) -> str:
        return f"{self.session_id}:{self.chunk_index}"

    def __len__(self) -> int:
        return len(self.messages)

    def to_transcript(self) -> str:
        """Render the chunk the way extraction prompts expect it."""
        return "\n\n".join(f"{message.speaker}: {message.content}" for message in self.messages)
