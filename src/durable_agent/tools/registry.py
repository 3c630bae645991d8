"""Open tool registry: name -> capability descriptor, plus the dispatch contract."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from durable_agent.tools.github import build_get_repo_tool, build_search_repos_tool
from durable_agent.tools.schemas import GetRepoInput, SearchReposInput
from durable_agent.validation import Invalid, parse_json_arguments, validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: type[BaseModel]
    fn: Callable[[BaseModel], str]

    @property
    def input_schema(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema()
        return {
            "type": "object",
            "properties": schema.get("properties", {}),
            "required": schema.get("required", []),
        }

    def definition(self) -> dict[str, Any]:
        """OpenAI-style function tool definition sent to the gateway."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


class ToolRegistry:
    """Tools are added by registration; dispatch never raises for bad input."""

    def __init__(self, tools: Iterable[ToolSpec] = ()) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for spec in tools:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return sorted(self._tools)

    def definitions(self) -> list[dict[str, Any]]:
        return [spec.definition() for spec in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def dispatch(self, name: str, arguments: str | dict[str, Any] | None) -> str:
        """Validate arguments and run the named tool.

        Unknown names and malformed arguments come back as strings so the
        model can correct itself on the next turn. Exceptions raised by the
        tool itself propagate to the caller, which owns retries.
        """
        spec = self._tools.get(name)
        if spec is None:
            logger.info("tool dispatch event=unknown_tool tool=%s", name)
            return f"Unknown tool: {name}"

        payload = parse_json_arguments(arguments) if isinstance(arguments, str) else arguments
        if payload is None:
            payload = {}
        if isinstance(payload, Invalid):
            logger.info(
                "tool dispatch event=invalid_arguments tool=%s errors=%s", name, payload.errors
            )
            return f"Invalid arguments for {name}"

        checked = validate(spec.input_model, payload)
        if isinstance(checked, Invalid):
            logger.info(
                "tool dispatch event=invalid_arguments tool=%s errors=%s", name, checked.errors
            )
            return f"Invalid arguments for {name}"

        output = spec.fn(checked.value)
        return output if isinstance(output, str) else str(output)


def build_registry(
    *,
    github_api_url: str = "https://api.github.com",
    github_token: str = "",
    github_timeout_s: float = 10.0,
) -> ToolRegistry:
    return ToolRegistry(
        [
            ToolSpec(
                name="search_repos",
                description=(
                    "Search GitHub repositories by keyword. Returns top results. "
                    "Use get_repo for details."
                ),
                input_model=SearchReposInput,
                fn=build_search_repos_tool(
                    api_url=github_api_url,
                    token=github_token,
                    timeout_s=github_timeout_s,
                ),
            ),
            ToolSpec(
                name="get_repo",
                description=(
                    "Get detailed info about a GitHub repository including stars, "
                    "forks, and description."
                ),
                input_model=GetRepoInput,
                fn=build_get_repo_tool(
                    api_url=github_api_url,
                    token=github_token,
                    timeout_s=github_timeout_s,
                ),
            ),
        ]
    )
