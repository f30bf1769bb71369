"""Extraction providers: capability probing, ordering and transports."""

import json
import re
import time
from collections.abc import Awaitable, Callable
from enum import Enum

import httpx
from pydantic import BaseModel

from memory_lane.core.base import ServiceErrorDetails
from memory_lane.core.errors import ProviderError
from memory_lane.infrastructure.extraction.context import ExtractionContext

AUTHENTICATED = re.compile(r"Authenticated as:\s*(.+)", re.IGNORECASE)


class ProviderKind(str, Enum):
    """Extraction transports, in default preference order."""

    CLI = "cli"
    API = "api"


class Capabilities(BaseModel):
    """What is usable right now; probed on every extraction."""

    cli_installed: bool = False
    cli_authenticated: bool = False
    cli_account: str | None = None
    api_key_present: bool = False


async def check_capabilities(ctx: ExtractionContext) -> Capabilities:
    """Probe the local agent CLI and check for an API key."""
    caps = Capabilities(api_key_present=bool(ctx.api_key.strip()))

    try:
        version = await ctx.run_command([ctx.cli_command, "--version"], ctx.cli_probe_timeout)
        caps.cli_installed = version.returncode == 0
        if caps.cli_installed:
            status = await ctx.run_command([ctx.cli_command, "auth", "status"], ctx.cli_probe_timeout)
            match = AUTHENTICATED.search(f"{status.stdout}\n{status.stderr}")
            if status.returncode == 0 and match:
                caps.cli_authenticated = True
                caps.cli_account = match.group(1).strip()
    except (OSError, TimeoutError) as e:
        ctx.logger.debug("cli_probe_failed", command=ctx.cli_command, error=str(e) or type(e).__name__)

    return caps


def select_providers(caps: Capabilities) -> list[ProviderKind]:
    """Order the usable providers: authenticated CLI first, then the keyed API."""
    order: list[ProviderKind] = []
    if caps.cli_installed and caps.cli_authenticated:
        order.append(ProviderKind.CLI)
    if caps.api_key_present:
        order.append(ProviderKind.API)
    return order


def _failure(
    message: str,
    service_name: str,
    endpoint: str,
    status_code: int | None = None,
    started: float | None = None,
) -> ProviderError:
    return ProviderError(
        message,
        details=ServiceErrorDetails(
            source="extraction_provider",
            operation="send",
            service_name=service_name,
            endpoint=endpoint,
            status_code=status_code,
            latency_ms=(time.monotonic() - started) * 1000 if started is not None else None,
        ),
    )


async def send_via_cli(ctx: ExtractionContext, system_prompt: str, user_prompt: str) -> str:
    """Send the prompts through ``claude -p`` and return the response text.

    Raises:
        ProviderError: On timeout, launch failure or non-zero exit
    """
    args = [
        ctx.cli_command,
        "-p",
        user_prompt,
        "--system-prompt",
        system_prompt,
        "--output-format",
        "json",
    ]
    started = time.monotonic()
    try:
        result = await ctx.run_command(args, ctx.cli_timeout)
    except TimeoutError as e:
        raise _failure(f"CLI timed out after {ctx.cli_timeout}s", "cli", ctx.cli_command, started=started) from e
    except OSError as e:
        raise _failure(f"CLI could not be started: {e}", "cli", ctx.cli_command, started=started) from e

    if result.returncode != 0:
        raise _failure(
            f"CLI exited with code {result.returncode}: {result.stderr.strip() or 'no stderr'}",
            "cli",
            ctx.cli_command,
            status_code=result.returncode,
            started=started,
        )

    try:
        envelope = json.loads(result.stdout)
    except json.JSONDecodeError:
        # Plain text output
        return result.stdout.strip()

    if isinstance(envelope, dict):
        if envelope.get("is_error"):
            raise _failure(f"CLI reported an error: {envelope.get('result', '')}", "cli", ctx.cli_command)
        for key in ("result", "content", "message"):
            if isinstance(envelope.get(key), str):
                return envelope[key]
    return result.stdout.strip()


async def send_via_api(ctx: ExtractionContext, system_prompt: str, user_prompt: str) -> str:
    """Send the prompts to the Messages API and return the first text block.

    Raises:
        ProviderError: On timeout, HTTP error or an unexpected body
    """
    endpoint = f"{ctx.api_url.rstrip('/')}/v1/messages"
    started = time.monotonic()
    try:
        response = await ctx.http_client.post(
            endpoint,
            headers={
                "x-api-key": ctx.api_key,
                "anthropic-version": ctx.api_version,
                "content-type": "application/json",
            },
            json={
                "model": ctx.api_model,
                "max_tokens": ctx.max_tokens,
                "system": system_prompt,
                "messages": [{"role": "user", "content": user_prompt}],
            },
            timeout=ctx.api_timeout,
        )
        response.raise_for_status()
        return str(response.json()["content"][0]["text"])
    except httpx.HTTPStatusError as e:
        raise _failure(
            f"API returned {e.response.status_code}", "api", endpoint, status_code=e.response.status_code, started=started
        ) from e
    except httpx.TimeoutException as e:
        raise _failure(f"API timed out after {ctx.api_timeout}s", "api", endpoint, started=started) from e
    except httpx.HTTPError as e:
        raise _failure(f"API request failed: {type(e).__name__}", "api", endpoint, started=started) from e
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise _failure("API response has no text content", "api", endpoint, started=started) from e


Sender = Callable[[ExtractionContext, str, str], Awaitable[str]]

SENDERS: dict[ProviderKind, Sender] = {
    ProviderKind.CLI: send_via_cli,
    ProviderKind.API: send_via_api,
}
