"""Collaborators shared by the loop graph nodes for one run."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from durable_agent.broadcast import ProgressBroadcaster, ProgressUpdate
from durable_agent.errors import RunTerminatedError
from durable_agent.gateway import LLMGateway
from durable_agent.steps import RetryPolicy, StepExecutor
from durable_agent.storage.base import RunStorage
from durable_agent.storage.models import Message
from durable_agent.tools import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class LoopRuntime:
    run_id: str
    storage: RunStorage
    steps: StepExecutor
    registry: ToolRegistry
    gateway: LLMGateway
    broadcaster: ProgressBroadcaster
    model: str
    max_turns: int
    llm_policy: RetryPolicy
    tool_policy: RetryPolicy
    max_tokens: int | None = None
    persisted_messages: int = 0
    tool_definitions: list[dict[str, Any]] = field(default_factory=list)
    should_stop: Callable[[], bool] | None = None

    def ensure_running(self) -> None:
        """Raise before announcing work once termination was requested."""
        if self.should_stop is not None and self.should_stop():
            raise RunTerminatedError(self.run_id)

    def publish(self, status: str, message: str, **extra: Any) -> None:
        self.broadcaster.publish(ProgressUpdate(status=status, message=message, **extra))

    def save(self, *, turn: int | None = None, messages: list[Message] | None = None) -> None:
        """Persist loop progress.

        A resumed run replays its transcript from the task message, so the
        stored transcript is only replaced once the replay has caught up with
        it; the persisted list never shrinks.
        """
        if messages is not None and len(messages) <= self.persisted_messages:
            messages = None
        if turn is None and messages is None:
            return
        self.storage.update_run(self.run_id, turn=turn, messages=messages)
        if messages is not None:
            self.persisted_messages = len(messages)
