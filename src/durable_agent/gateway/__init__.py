"""LLM gateway client and response shapes."""

from durable_agent.gateway.client import ChatCompletionsGateway, LLMGateway, build_request_body
from durable_agent.gateway.schemas import AssistantMessage, ChatCompletionResponse, Choice

__all__ = [
    "AssistantMessage",
    "ChatCompletionResponse",
    "ChatCompletionsGateway",
    "Choice",
    "LLMGateway",
    "build_request_body",
]
