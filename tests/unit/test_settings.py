from __future__ import annotations

import pytest

from durable_agent.config.settings import Settings


def test_defaults_match_loop_contract(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DURABLE_AGENT_MAX_TURNS", raising=False)
    settings = Settings(_env_file=None)

    assert settings.max_turns == 10
    assert settings.llm_max_attempts == 3
    assert settings.llm_retry_delay_s == 10.0
    assert settings.llm_retry_backoff == "exponential"
    assert settings.tool_max_attempts == 2
    assert settings.tool_retry_delay_s == 5.0
    assert settings.tool_retry_backoff == "constant"


def test_environment_overrides_use_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DURABLE_AGENT_MAX_TURNS", "3")
    monkeypatch.setenv("DURABLE_AGENT_LLM_MODEL", "local-model")

    settings = Settings(_env_file=None)

    assert settings.max_turns == 3
    assert settings.llm_model == "local-model"


def test_unprefixed_fallbacks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DURABLE_AGENT_DATABASE_URL", raising=False)
    monkeypatch.delenv("DURABLE_AGENT_LLM_API_KEY", raising=False)
    monkeypatch.setenv("DATABASE_URL", "postgresql://db/agent")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    settings = Settings(_env_file=None)

    assert settings.resolved_database_url() == "postgresql://db/agent"
    assert settings.resolved_llm_api_key() == "sk-env"
    explicit = Settings(_env_file=None, llm_api_key="sk-explicit")
    assert explicit.resolved_llm_api_key() == "sk-explicit"
