"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]

BackoffKind = Literal["constant", "exponential"]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "durable-agent"
    app_env: str = "dev"
    log_level: str = "INFO"
    default_agent_id: str = "default"
    max_turns: int = Field(default=10, ge=0)
    database_url: str = ""
    worker_threads: int = Field(default=4, ge=1)
    resume_on_startup: bool = True

    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o-mini"
    llm_max_tokens: int = Field(default=4096, ge=1)
    llm_timeout_s: float = Field(default=60.0, ge=0.5)
    llm_api_key: str = ""
    llm_auth_header: str = "Authorization"
    llm_max_attempts: int = Field(default=3, ge=1)
    llm_retry_delay_s: float = Field(default=10.0, ge=0.0)
    llm_retry_backoff: BackoffKind = "exponential"

    tool_max_attempts: int = Field(default=2, ge=1)
    tool_retry_delay_s: float = Field(default=5.0, ge=0.0)
    tool_retry_backoff: BackoffKind = "constant"

    github_api_url: str = "https://api.github.com"
    github_token: str = ""
    github_timeout_s: float = Field(default=10.0, ge=0.5)

    model_config = SettingsConfigDict(
        env_prefix="DURABLE_AGENT_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    def resolved_llm_api_key(self) -> str:
        return self.llm_api_key or os.getenv("OPENAI_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
