"""Configuration management."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Keyed HTTP extraction provider
    anthropic_api_key: str = ""
    anthropic_api_url: str = "https://api.anthropic.com"
    anthropic_model: str = "claude-haiku-4-5"
    anthropic_version: str = "2023-06-01"
    anthropic_max_tokens: int = 4000
    api_timeout: float = Field(default=120.0, gt=0)

    # Authenticated local agent provider
    cli_command: str = "claude"
    cli_timeout: float = Field(default=120.0, gt=0)
    cli_probe_timeout: float = Field(default=5.0, gt=0)

    # Local embedding endpoint (Ollama)
    embedding_enabled: bool = True
    embedding_url: str = "http://localhost:11434"
    embedding_model: str = "mxbai-embed-large"
    embedding_dimension: int = Field(default=1024, gt=0)
    embedding_timeout: float = Field(default=30.0, gt=0)
    embedding_probe_timeout: float = Field(default=5.0, gt=0)
    embedding_health_interval: float = Field(default=300.0, ge=0, description="Seconds a reachability probe is trusted")  # noqa: E501
    embedding_batch_concurrency: int = Field(default=4, gt=0)
    embedding_cache_size: int = Field(default=2048, ge=0)

    # Extraction pipeline
    chunk_size: int = Field(default=15, ge=1, description="Messages per extraction chunk")
    dedup_threshold: float | None = Field(default=0.9, ge=0, le=1, description="Similarity at which a new memory merges into an existing one")  # noqa: E501
    sessions_dir: Path = Path("~/.claude/sessions").expanduser()

    # Retrieval defaults
    retrieval_threshold: float = Field(default=0.4, ge=0, le=1)
    retrieval_top_k: int = Field(default=10, gt=0)

    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # Ignore extra fields in .env file
    )


settings = Settings()
