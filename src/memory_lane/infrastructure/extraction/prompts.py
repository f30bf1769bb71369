"""Prompts shared by every extraction provider."""

from memory_lane.domain.models.memory import MemoryType

TYPE_DESCRIPTIONS: dict[MemoryType, str] = {
    MemoryType.CORRECTION: "User corrected agent behavior",
    MemoryType.DECISION: "Explicit choice with reasoning",
    MemoryType.COMMITMENT: "User preference expressed",
    MemoryType.INSIGHT: "Non-obvious discovery",
    MemoryType.LEARNING: "New knowledge gained",
    MemoryType.CONFIDENCE: "Strong confidence in approach",
    MemoryType.PATTERN_SEED: "Repeated behavior to formalize",
    MemoryType.CROSS_AGENT: "Info relevant to other agents",
    MemoryType.WORKFLOW_NOTE: "Process observation",
    MemoryType.GAP: "Missing capability or limitation",
}

PRIORITY_TIERS: list[tuple[str, list[MemoryType]]] = [
    ("HIGH PRIORITY", [MemoryType.CORRECTION, MemoryType.DECISION, MemoryType.COMMITMENT]),
    ("MEDIUM PRIORITY", [MemoryType.INSIGHT, MemoryType.LEARNING, MemoryType.CONFIDENCE]),
    (
        "LOWER PRIORITY",
        [MemoryType.PATTERN_SEED, MemoryType.CROSS_AGENT, MemoryType.WORKFLOW_NOTE, MemoryType.GAP],
    ),
]

EXTRACTION_TRIGGERS = [
    "Recovery patterns: error -> workaround -> success",
    'User corrections: "I want it this other way"',
    'Enthusiasm: "that\'s exactly what I wanted!"',
    'Negative reactions: "never do that"',
    "Repeated requests: same workflow multiple times",
    'Strong sentiment: "always", "never", "must", "critical"',
    'Explicit preferences: "I prefer", "I like", "I want"',
]

OUTPUT_SHAPE = """{
  "type": "memory_type",
  "category": "specific-category-slug",
  "title": "Brief title (5-10 words)",
  "content": "What happened and why it matters",
  "source_chunk": "Exact relevant excerpt from the conversation",
  "related_entities": [
    {"type": "person|project|business", "raw": "Name as mentioned", "slug": "normalized-name"}
  ],
  "confidence_score": 0-100,
  "reasoning": "Why this is worth remembering"
}"""


def _render_tiers() -> str:
    blocks = []
    for heading, types in PRIORITY_TIERS:
        lines = "\n".join(f"  - {kind.value}: {TYPE_DESCRIPTIONS[kind]}" for kind in types)
        blocks.append(f"{heading}:\n{lines}")
    return "\n\n".join(blocks)


def build_system_prompt() -> str:
    """The extraction instructions: memory types by tier, triggers and the JSON contract."""
    triggers = "\n".join(f"- {trigger}" for trigger in EXTRACTION_TRIGGERS)
    return f"""You are analyzing a conversation between a user and an AI assistant to extract memorable moments.

Identify consequential decisions, corrections, insights and patterns that should be remembered in future sessions.

MEMORY TYPES (extract only clear examples):

{_render_tiers()}

TRIGGERS TO WATCH:
{triggers}

For each memory found, return:
{OUTPUT_SHAPE}

IMPORTANT:
- Only extract clear, unambiguous memories
- Quote concrete evidence in source_chunk
- Be conservative: missing a memory is better than creating noise
- Return an empty array if no strong memories are found
- Return valid JSON array only, no other text"""


SYSTEM_PROMPT = build_system_prompt()


def build_user_prompt(transcript: str) -> str:
    return f"Analyze this conversation and extract memories:\n\n{transcript}"
