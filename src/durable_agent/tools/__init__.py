"""Tooling layer for schema-validated dispatch."""

from durable_agent.tools.registry import ToolRegistry, ToolSpec, build_registry

__all__ = [
    "ToolRegistry",
    "ToolSpec",
    "build_registry",
]
