"""Storage models shared by the loop, the API and persistence backends."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"
    MAX_TURNS_REACHED = "max_turns_reached"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        RunStatus.COMPLETE,
        RunStatus.ERROR,
        RunStatus.MAX_TURNS_REACHED,
        RunStatus.TERMINATED,
    }
)


class FunctionCall(BaseModel):
    name: str
    arguments: str = ""


class ToolCall(BaseModel):
    """A model request to invoke one named tool with a serialized payload."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments


class Message(BaseModel):
    """One entry of the conversation transcript."""

    role: Literal["user", "assistant", "tool"]
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_request(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True) | {"content": self.content}


class RunRecord(BaseModel):
    """Persisted state of one durable execution of the agent loop."""

    run_id: str
    agent_id: str
    task: str
    status: RunStatus = RunStatus.QUEUED
    turn: int = 0
    messages: list[Message] = Field(default_factory=list)
    result: str | None = None
    turns: int | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime


StepOutcome = Literal["pending", "succeeded", "failed"]


class StepRecord(BaseModel):
    """Checkpoint of one (turn, operation) unit of work within a run."""

    run_id: str
    key: str
    attempts: int = 0
    outcome: StepOutcome = "pending"
    result: Any = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime
