"""Checkpointed step execution."""

from durable_agent.steps.executor import (
    StepExecutor,
    StepExhausted,
    StepResult,
    StepSucceeded,
)
from durable_agent.steps.policy import RetryPolicy

__all__ = [
    "RetryPolicy",
    "StepExecutor",
    "StepExhausted",
    "StepResult",
    "StepSucceeded",
]
