"""Explicit dependencies for one extraction client."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, NamedTuple, Self

import httpx
from pydantic import BaseModel, ConfigDict, Field

from memory_lane.core.config import Settings
from memory_lane.core.logging import get_logger


class CommandResult(NamedTuple):
    returncode: int
    stdout: str
    stderr: str


CommandRunner = Callable[[Sequence[str], float], Awaitable[CommandResult]]


async def run_command(args: Sequence[str], timeout: float) -> CommandResult:
    """Run a command and collect its output.

    Raises:
        OSError: If the executable cannot be started
        TimeoutError: If it runs longer than ``timeout``; the process is killed
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        raise
    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


class ExtractionContext(BaseModel):
    """Provider handles, timeouts and credentials passed to every extraction call."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    # Authenticated local agent
    cli_command: str = "claude"
    cli_timeout: float = Field(default=120.0, gt=0)
    cli_probe_timeout: float = Field(default=5.0, gt=0)
    run_command: CommandRunner = run_command

    # Keyed HTTP API
    api_key: str = ""
    api_url: str = "https://api.anthropic.com"
    api_model: str = "claude-haiku-4-5"
    api_version: str = "2023-06-01"
    max_tokens: int = 4000
    api_timeout: float = Field(default=120.0, gt=0)
    http_client: httpx.AsyncClient = Field(default_factory=httpx.AsyncClient)

    logger: Any = Field(default_factory=lambda: get_logger("memory_lane.extraction"))

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        runner: CommandRunner | None = None,
    ) -> Self:
        values: dict[str, Any] = {
            "cli_command": config.cli_command,
            "cli_timeout": config.cli_timeout,
            "cli_probe_timeout": config.cli_probe_timeout,
            "api_key": config.anthropic_api_key,
            "api_url": config.anthropic_api_url,
            "api_model": config.anthropic_model,
            "api_version": config.anthropic_version,
            "max_tokens": config.anthropic_max_tokens,
            "api_timeout": config.api_timeout,
        }
        if http_client is not None:
            values["http_client"] = http_client
        if runner is not None:
            values["run_command"] = runner
        return cls(**values)
