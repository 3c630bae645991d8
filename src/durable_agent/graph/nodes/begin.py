"""Begin node: announce the run and clear any previous result."""

from __future__ import annotations

from durable_agent.graph.runtime import LoopRuntime
from durable_agent.graph.state import LoopState


def run(state: LoopState, runtime: LoopRuntime) -> LoopState:
    runtime.publish("searching", "Starting analysis...", result="")
    return {"outcome": "pending"}
