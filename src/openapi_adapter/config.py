"""Configuration for the OpenAPI MCP adapter."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional, Set

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .indexer import CollisionPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="openapi-mcp-adapter")

    openapi_spec_source: str = Field(default="openapi.json")
    api_base_url: Optional[str] = Field(default=None)
    api_timeout_seconds: float = Field(default=30)
    api_verify_ssl: bool = Field(default=True)

    adapter_transport: str = Field(default="stdio")
    adapter_host: str = Field(default="0.0.0.0")
    adapter_port: int = Field(default=8000)

    adapter_max_concurrency: int = Field(default=20)
    adapter_openapi_cache_seconds: int = Field(default=3600)
    adapter_tool_name_collision: CollisionPolicy = Field(default=CollisionPolicy.ERROR)
    adapter_tool_allowlist: Optional[str] = Field(default=None)

    adapter_log_level: str = Field(default="INFO")

    @field_validator("adapter_tool_name_collision", mode="before")
    @classmethod
    def _lower_policy(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    def tool_allowlist(self) -> Set[str]:
        if not self.adapter_tool_allowlist:
            return set()
        return {item.strip() for item in self.adapter_tool_allowlist.split(",") if item.strip()}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
