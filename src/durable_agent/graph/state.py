"""Typed state contract for the agent loop graph."""

from typing import Literal, TypedDict

from durable_agent.storage.models import Message

TurnOutcome = Literal["pending", "skipped", "tools", "continue", "complete"]


class LoopState(TypedDict, total=False):
    run_id: str
    task: str
    turn: int
    messages: list[Message]
    outcome: TurnOutcome
    status: str
    result: str | None
    turns: int


def initial_state(run_id: str, task: str) -> LoopState:
    return {
        "run_id": run_id,
        "task": task,
        "turn": 0,
        "messages": [Message(role="user", content=task)],
        "outcome": "pending",
        "status": "running",
        "result": None,
        "turns": 0,
    }
