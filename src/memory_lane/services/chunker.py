"""Split session transcripts into bounded extraction chunks."""

from collections.abc import Sequence

from memory_lane.core.base import ValidationErrorDetails
from memory_lane.core.errors import ValidationError
from memory_lane.domain.models.conversation import ConversationChunk, Message


def chunk(messages: Sequence[Message], max_chunk_size: int, session_id: str = "") -> list[ConversationChunk]:
    """Partition messages into consecutive, non-overlapping chunks.

    Args:
        messages: Messages in conversation order
        max_chunk_size: Maximum messages per chunk; the last chunk may be shorter
        session_id: Session the messages belong to

    Returns:
        Chunks with contiguous 0-based indexes

    Raises:
        ValidationError: If max_chunk_size is less than 1
    """
    if max_chunk_size < 1:
        raise ValidationError(
            f"Chunk size must be at least 1, got {max_chunk_size}",
            details=ValidationErrorDetails(
                source="chunker",
                operation="chunk",
                field="max_chunk_size",
                actual_value=max_chunk_size,
                constraint=">= 1",
            ),
        )

    return [
        ConversationChunk(
            session_id=session_id,
            chunk_index=index,
            messages=list(messages[start : start + max_chunk_size]),
        )
        for index, start in enumerate(range(0, len(messages), max_chunk_size))
    ]
