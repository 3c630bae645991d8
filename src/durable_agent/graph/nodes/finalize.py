"""Finalize node: map the last turn outcome to a terminal run status."""

from __future__ import annotations

from durable_agent.graph.runtime import LoopRuntime
from durable_agent.graph.state import LoopState
from durable_agent.storage.models import RunStatus


def run(state: LoopState, runtime: LoopRuntime) -> LoopState:
    if state.get("outcome") == "complete":
        result = state.get("result")
        extra = {"result": result} if result is not None else {}
        runtime.publish("complete", "Analysis complete!", **extra)
        return {"status": RunStatus.COMPLETE.value}

    runtime.publish("complete", f"Stopped after {runtime.max_turns} turns without a final answer.")
    return {
        "status": RunStatus.MAX_TURNS_REACHED.value,
        "result": None,
        "turns": runtime.max_turns,
    }
