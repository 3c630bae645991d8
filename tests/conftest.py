from __future__ import annotations

import pytest
from fakes import NO_DELAY_LLM, NO_DELAY_TOOL, ScriptedGateway, fake_registry

from durable_agent.broadcast import AgentState, BroadcasterHub
from durable_agent.graph.controller import AgentLoopController
from durable_agent.storage import InMemoryStorage
from durable_agent.tools import ToolRegistry


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def hub() -> BroadcasterHub:
    return BroadcasterHub()


@pytest.fixture
def progress(hub: BroadcasterHub) -> list[AgentState]:
    seen: list[AgentState] = []
    hub.get("default").subscribe(seen.append)
    return seen


@pytest.fixture
def make_controller(storage: InMemoryStorage, hub: BroadcasterHub):
    def _make(
        gateway: ScriptedGateway,
        *,
        registry: ToolRegistry | None = None,
        max_turns: int = 10,
    ) -> AgentLoopController:
        return AgentLoopController(
            storage=storage,
            registry=registry or fake_registry(),
            gateway=gateway,
            hub=hub,
            model="test-model",
            max_turns=max_turns,
            llm_policy=NO_DELAY_LLM,
            tool_policy=NO_DELAY_TOOL,
        )

    return _make
