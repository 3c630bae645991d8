"""OpenAI-compatible chat-completions gateway client."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from urllib import error, request

from durable_agent.errors import GatewayError

logger = logging.getLogger(__name__)


class LLMGateway(Protocol):
    """Anything that turns a chat-completions request body into a response body."""

    def complete(self, request_body: dict[str, Any]) -> dict[str, Any]: ...


class ChatCompletionsGateway:
    """Small client for the chat completions REST API.

    Retries are owned by the step executor, so each call is a single attempt.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 60.0,
        auth_header: str = "Authorization",
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.auth_header = auth_header

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def complete(self, request_body: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers[self.auth_header] = f"Bearer {self.api_key}"
        req = request.Request(
            url=self.url,
            data=json.dumps(request_body).encode("utf-8"),
            method="POST",
            headers=headers,
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            message = exc.read().decode("utf-8", errors="replace")
            raise GatewayError(
                f"LLM gateway error ({exc.code}): {message[:400]}",
                status_code=exc.code,
            ) from exc
        except (error.URLError, TimeoutError) as exc:
            raise GatewayError(
                f"LLM gateway request failed: {getattr(exc, 'reason', exc)}"
            ) from exc

        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise GatewayError("LLM gateway returned non-JSON response") from exc


def build_request_body(
    *,
    model: str,
    messages: list[dict[str, Any]],
    tools: list[dict[str, Any]] | None = None,
    max_tokens: int | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"model": model, "messages": messages}
    if max_tokens is not None:
        body["max_tokens"] = max_tokens
    if tools:
        body["tools"] = tools
    return body
