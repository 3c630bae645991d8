"""Observer-facing progress state."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

AgentStatus = Literal[
    "idle",
    "running",
    "searching",
    "analyzing",
    "fetching",
    "complete",
    "error",
]


class AgentState(BaseModel):
    status: AgentStatus = "idle"
    message: str = ""
    result: str | None = None


class ProgressUpdate(BaseModel):
    """Partial state; only the fields that were set are merged."""

    status: AgentStatus
    message: str
    result: str | None = None
