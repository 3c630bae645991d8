"""LLM node: one checkpointed gateway call per turn."""

from __future__ import annotations

import logging

from durable_agent.gateway import ChatCompletionResponse, build_request_body
from durable_agent.graph.runtime import LoopRuntime
from durable_agent.graph.state import LoopState
from durable_agent.validation import Invalid, validate

logger = logging.getLogger(__name__)


def step_key(turn: int) -> str:
    return f"llm-turn-{turn}"


def run(state: LoopState, runtime: LoopRuntime) -> LoopState:
    turn = int(state.get("turn", 0))
    messages = list(state.get("messages", []))
    runtime.ensure_running()
    runtime.publish("analyzing", f"Processing turn {turn + 1}...")

    request_body = build_request_body(
        model=runtime.model,
        messages=[item.to_request() for item in messages],
        tools=runtime.tool_definitions,
        max_tokens=runtime.max_tokens,
    )
    raw_response = runtime.steps.execute(
        step_key(turn),
        runtime.llm_policy,
        lambda: runtime.gateway.complete(request_body),
    )

    checked = validate(ChatCompletionResponse, raw_response)
    if isinstance(checked, Invalid):
        logger.warning(
            "loop event=invalid_gateway_response run_id=%s turn=%d errors=%s",
            runtime.run_id,
            turn,
            checked.errors,
        )
        return _skip_turn(turn, runtime)

    response = checked.value
    if not response.choices:
        logger.warning(
            "loop event=empty_choices run_id=%s turn=%d response_id=%s",
            runtime.run_id,
            turn,
            response.id,
        )
        return _skip_turn(turn, runtime)

    choice = response.choices[0]
    assistant = choice.message.to_message()
    messages.append(assistant)
    runtime.save(messages=messages)

    if choice.finish_reason == "stop" or not assistant.tool_calls:
        return {
            "messages": messages,
            "outcome": "complete",
            "result": assistant.content,
            "turns": turn + 1,
        }
    return {"messages": messages, "outcome": "tools"}


def _skip_turn(turn: int, runtime: LoopRuntime) -> LoopState:
    runtime.save(turn=turn + 1)
    return {"turn": turn + 1, "outcome": "skipped", "turns": turn + 1}
