"""Settings and configuration management.

This module handles all environment variables and configuration settings
using pydantic-settings for type safety and validation.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Chat completion API
    api_key: str = Field(default="", description="API key for the chat completion endpoint")
    api_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible API"
    )
    model: str = Field(default="gpt-4o", description="Model identifier")
    temperature: float = Field(default=0.7, description="Sampling temperature")
    max_tokens: int = Field(default=4096, description="Maximum tokens per response")
    request_timeout: float = Field(
        default=120.0,
        description="HTTP timeout for streaming requests in seconds"
    )

    # Permissions
    allow_read_by_default: bool = Field(
        default=True,
        description="Auto-approve read operations"
    )
    allow_write_by_default: bool = Field(
        default=False,
        description="Auto-approve write operations"
    )
    allow_execute_by_default: bool = Field(
        default=False,
        description="Auto-approve command execution"
    )
    always_confirm: List[str] = Field(
        default_factory=lambda: ["delete", "execute"],
        description="Operations that always ask the user"
    )
    permission_timeout: float = Field(
        default=300.0,
        description="Seconds to wait for a permission response before denying"
    )

    # Agent loop
    max_loop_count: int = Field(default=25, description="Maximum turns per task")
    context_window_size: int = Field(
        default=100000,
        description="Context window reported with token usage"
    )
    max_retry_attempts: int = Field(
        default=3,
        description="Retry cap for network failures per operation"
    )
    retry_delay: float = Field(
        default=1.0,
        description="Fixed backoff before retrying a failed turn, in seconds"
    )
    default_mode: str = Field(default="code", description="Initial agent mode")

    # Parser limits
    max_message_size: int = Field(
        default=1024 * 1024,
        description="Maximum size of one streamed assistant message"
    )
    max_param_length: int = Field(
        default=1024 * 100,
        description="Maximum size of a single tool parameter value"
    )

    # Command execution
    command_timeout: int = Field(
        default=60,
        description="Timeout for execute_command in seconds"
    )

    # Directory Configuration
    workspace_root: Path = Field(
        default=Path("."),
        description="Workspace the agent operates on"
    )
    history_dir: Path = Field(
        default=Path("./.sidecar/history"),
        description="Directory for persisted conversations"
    )

    @field_validator('workspace_root', 'history_dir', mode='after')
    @classmethod
    def resolve_to_absolute(cls, v: Path) -> Path:
        """Ensure paths are absolute."""
        resolved = v.resolve()
        logger.debug(f"[Settings] Resolved path: {v} -> {resolved}")
        return resolved

    # Server Configuration
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8765, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def is_configured(self) -> bool:
        """Whether enough is set to talk to the API."""
        return bool(self.api_key and self.api_base_url and self.model)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    return Settings()


def init_directories(settings: Optional[Settings] = None) -> None:
    """Initialize required directories."""
    if settings is None:
        settings = get_settings()

    settings.history_dir.mkdir(parents=True, exist_ok=True)
