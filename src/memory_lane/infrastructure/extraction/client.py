"""Multi-provider memory extraction with CLI-to-API fallback."""

from memory_lane.core.base import ServiceErrorDetails
from memory_lane.core.errors import ParseError, ProviderError, ProviderUnavailable
from memory_lane.domain.models.conversation import ConversationChunk
from memory_lane.domain.models.memory import MemoryCandidate
from memory_lane.infrastructure.extraction.context import ExtractionContext
from memory_lane.infrastructure.extraction.parsing import parse_candidates
from memory_lane.infrastructure.extraction.prompts import SYSTEM_PROMPT, build_user_prompt
from memory_lane.infrastructure.extraction.providers import (
    SENDERS,
    ProviderKind,
    check_capabilities,
    select_providers,
)

NO_PROVIDER = "no_provider"


class ExtractionClient:
    """Extract memory candidates from conversation chunks.

    ``extract`` never raises: every failure degrades to an empty list and a
    single ``memory_extraction`` log event describing what happened.
    """

    def __init__(self, ctx: ExtractionContext, system_prompt: str = SYSTEM_PROMPT):
        self.ctx = ctx
        self.system_prompt = system_prompt

    def _report(
        self,
        chunk: ConversationChunk,
        method: ProviderKind | None,
        candidates: list[MemoryCandidate],
        error: str | None = None,
    ) -> None:
        fields = {
            "chosen_method": method.value if method else None,
            "chunk_id": chunk.chunk_id,
            "success": error is None,
            "memory_count": len(candidates),
        }
        if error is None:
            self.ctx.logger.info("memory_extraction", **fields)
        else:
            self.ctx.logger.warning("memory_extraction", error=error, **fields)

    async def extract(self, chunk: ConversationChunk) -> list[MemoryCandidate]:
        """Run the first provider that succeeds on this chunk."""
        if not chunk.messages:
            self._report(chunk, None, [])
            return []

        caps = await check_capabilities(self.ctx)
        order = select_providers(caps)
        if not order:
            unavailable = ProviderUnavailable(
                "No extraction provider is available",
                details=ServiceErrorDetails(
                    source="extraction_client",
                    operation="select_provider",
                    service_name="none",
                ),
            )
            self.ctx.logger.debug("provider_unavailable", error_code=unavailable.code.value, **caps.model_dump())
            self._report(chunk, None, [], error=NO_PROVIDER)
            return []

        user_prompt = build_user_prompt(chunk.to_transcript())
        failures: list[str] = []
        for kind in order:
            try:
                text = await SENDERS[kind](self.ctx, self.system_prompt, user_prompt)
                candidates = parse_candidates(text)
            except (ProviderError, ParseError) as e:
                self.ctx.logger.warning(
                    "provider_failed",
                    provider=kind.value,
                    chunk_id=chunk.chunk_id,
                    error=e.message,
                    error_code=e.code.value,
                )
                failures.append(f"{kind.value}: {e.message}")
                continue
            except Exception as e:
                self.ctx.logger.exception("provider_crashed", provider=kind.value, chunk_id=chunk.chunk_id)
                failures.append(f"{kind.value}: {type(e).__name__}: {e}")
                continue

            self._report(chunk, kind, candidates)
            return candidates

        self._report(chunk, order[-1], [], error="; ".join(failures))
        return []
