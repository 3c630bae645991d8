"""Tool node: dispatch the assistant's tool calls, sequentially and in order."""

from __future__ import annotations

from durable_agent.graph.runtime import LoopRuntime
from durable_agent.graph.state import LoopState
from durable_agent.storage.models import Message, ToolCall


def step_key(turn: int, call: ToolCall) -> str:
    return f"tool-{turn}-{call.id}"


def run(state: LoopState, runtime: LoopRuntime) -> LoopState:
    turn = int(state.get("turn", 0))
    messages = list(state.get("messages", []))
    last = messages[-1] if messages else None
    tool_calls = list(last.tool_calls or []) if last is not None else []

    for call in tool_calls:
        runtime.ensure_running()
        runtime.publish("fetching", f"Using tool: {call.name}...")
        output = runtime.steps.execute(
            step_key(turn, call),
            runtime.tool_policy,
            lambda call=call: runtime.registry.dispatch(call.name, call.arguments),
        )
        messages.append(Message(role="tool", content=str(output), tool_call_id=call.id))
        runtime.save(messages=messages)

    runtime.save(turn=turn + 1)
    return {"messages": messages, "turn": turn + 1, "outcome": "continue", "turns": turn + 1}
