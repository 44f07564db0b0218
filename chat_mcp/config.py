"""Configuration for the Chat MCP Bridge.

Settings are read once from the environment (or a ``.env`` file) at process
start and handed to :func:`chat_mcp.server.create_app`. Request handling code
never reads the environment directly.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROTOCOL_VERSION = "2025-03-26"


class Settings(BaseSettings):
    """Server configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ============ UPSTREAM ============

    api_key: str = Field(
        default="",
        validation_alias="LLM_SECRET",
        description="Bearer token for the upstream chat-completion API",
    )
    base_path: str = Field(
        ...,
        validation_alias="LLM_BASEPATH",
        description="Base URL of the upstream API, e.g. https://api.openai.com/v1",
    )
    model: str = Field(
        ...,
        validation_alias="LLM_MODEL",
        description="Default model for chat completions",
    )
    upstream_timeout: float = Field(
        default=300.0,
        gt=0,
        validation_alias="LLM_TIMEOUT",
    )

    # ============ MCP ============

    protocol_version: str = Field(
        default=DEFAULT_PROTOCOL_VERSION,
        validation_alias="LLM_MCP_PROTOCOL_VERSION",
    )
    server_name: str = Field(
        default="Chat-MCP-Server",
        validation_alias="MCP_SERVER_NAME",
    )

    # ============ AUTH ============

    auth_mode: Literal["api_key", "oauth"] = Field(
        default="api_key",
        validation_alias="MCP_AUTH_MODE",
    )
    oauth_issuer: str | None = Field(
        default=None,
        validation_alias="OAUTH_ISSUER",
        description="Authorization server that issues tokens for this resource",
    )
    oauth_scopes: str = Field(
        default="mcp:read",
        validation_alias="OAUTH_SCOPES",
    )

    # ============ SERVER ============

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    @field_validator("base_path")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def chat_completions_url(self) -> str:
        return f"{self.base_path}/chat/completions"

    @property
    def oauth_scopes_list(self) -> list[str]:
        return [s for s in self.oauth_scopes.split() if s]


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
