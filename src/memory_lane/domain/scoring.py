"""Confidence scoring for extracted memories.

Turns a provider-reported confidence (0-100) into the stored
``confidence_score`` in [0, 1], adjusted by memory type priority and by
lexical signals in the memory content.
"""

from memory_lane.domain.models.memory import MemoryType

TYPE_BOOSTS: dict[MemoryType, float] = {
    # High priority
    MemoryType.CORRECTION: 0.15,
    MemoryType.DECISION: 0.15,
    MemoryType.COMMITMENT: 0.15,
    # Medium priority
    MemoryType.INSIGHT: 0.10,
    MemoryType.LEARNING: 0.10,
    MemoryType.CONFIDENCE: 0.10,
    # Lower priority
    MemoryType.PATTERN_SEED: 0.05,
    MemoryType.CROSS_AGENT: 0.05,
    MemoryType.WORKFLOW_NOTE: 0.05,
    MemoryType.GAP: 0.05,
}

STRONG_SIGNALS = ("always", "never", "must", "critical", "important", "exactly", "perfect", "wrong", "incorrect")
AMBIGUOUS_SIGNALS = ("maybe", "perhaps", "might", "could", "unsure")

STRONG_SIGNAL_BONUS = 0.10
AMBIGUITY_PENALTY = 0.10


def _contains_any(text: str, signals: tuple[str, ...]) -> bool:
    return any(signal in text for signal in signals)


def score(raw_confidence: float, memory_type: MemoryType | str, content: str) -> float:
    """Compute the final confidence for a memory.

    Args:
        raw_confidence: Producer-reported confidence on a 0-100 scale
        memory_type: The memory's type; unknown types get no boost
        content: Memory content scanned (case-insensitively) for signal words

    Returns:
        Confidence clamped to [0, 1]
    """
    try:
        kind = MemoryType(memory_type)
    except ValueError:
        kind = None

    confidence = raw_confidence / 100
    if kind is not None:
        confidence += TYPE_BOOSTS[kind]

    text = (content or "").lower()
    if _contains_any(text, STRONG_SIGNALS):
        confidence += STRONG_SIGNAL_BONUS
    if _contains_any(text, AMBIGUOUS_SIGNALS):
        confidence -= AMBIGUITY_PENALTY

    return max(0.0, min(1.0, confidence))
