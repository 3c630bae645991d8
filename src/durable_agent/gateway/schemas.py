"""Chat-completions wire shapes accepted from the LLM gateway."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from durable_agent.storage.models import Message, ToolCall


class GatewayModel(BaseModel):
    """Gateways add fields freely (usage, system_fingerprint, ...); ignore them."""

    model_config = ConfigDict(extra="ignore")


class AssistantMessage(GatewayModel):
    role: Literal["assistant"] = "assistant"
    content: str | None = None
    tool_calls: list[ToolCall] | None = None

    def to_message(self) -> Message:
        return Message(
            role="assistant",
            content=self.content,
            tool_calls=list(self.tool_calls) if self.tool_calls else None,
        )


class Choice(GatewayModel):
    message: AssistantMessage
    finish_reason: str | None = None


class ChatCompletionResponse(GatewayModel):
    id: str
    model: str
    choices: list[Choice] = Field(...)
