"""Turn provider text into validated memory candidates."""

import json
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from memory_lane.core.base import ErrorDetails
from memory_lane.core.errors import ParseError
from memory_lane.core.logging import get_logger
from memory_lane.domain.models.memory import MemoryCandidate

logger = get_logger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _parse_error(message: str) -> ParseError:
    return ParseError(message, details=ErrorDetails(source="extraction_parser", operation="parse_candidates"))


def extract_json_array(text: str) -> list[Any]:
    """Locate and decode the JSON array in a provider response.

    The array may be bare, inside a markdown code fence, or surrounded by
    prose; in the last case the outermost ``[...]`` span is used.

    Raises:
        ParseError: If no JSON array can be decoded
    """
    stripped = text.strip()
    fenced = _FENCE.search(stripped)
    if fenced:
        stripped = fenced.group(1).strip()

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        start, end = stripped.find("["), stripped.rfind("]")
        if start == -1 or end <= start:
            raise _parse_error("Provider response contains no JSON array") from None
        try:
            data = json.loads(stripped[start : end + 1])
        except json.JSONDecodeError as e:
            raise _parse_error(f"Provider response is not valid JSON: {e.msg}") from e

    if not isinstance(data, list):
        raise _parse_error(f"Expected a JSON array, got {type(data).__name__}")
    return data


def parse_candidates(text: str) -> list[MemoryCandidate]:
    """Parse provider output, dropping items that are not valid candidates.

    Raises:
        ParseError: If the top level is not a JSON array
    """
    candidates: list[MemoryCandidate] = []
    for index, item in enumerate(extract_json_array(text)):
        if not isinstance(item, dict):
            logger.debug("candidate_dropped", index=index, reason="not an object")
            continue
        try:
            candidates.append(MemoryCandidate.model_validate(item))
        except PydanticValidationError as e:
            logger.debug(
                "candidate_dropped",
                index=index,
                reason="validation failed",
                fields=[".".join(str(part) for part in err["loc"]) for err in e.errors()],
            )
    return candidates
