"""Checkpointed step execution with retry/backoff."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from durable_agent.errors import RunTerminatedError, StepExhaustedError
from durable_agent.steps.policy import RetryPolicy
from durable_agent.storage.base import StepStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepSucceeded:
    key: str
    result: Any
    attempts: int
    cached: bool = False


@dataclass(frozen=True)
class StepExhausted:
    key: str
    last_error: BaseException
    attempts: int


StepResult = StepSucceeded | StepExhausted


class StepExecutor:
    """Run keyed units of work at most once to a recorded success.

    A key that already has a succeeded checkpoint returns the stored result
    without calling the operation again. Otherwise the operation is attempted
    up to ``policy.max_attempts`` times; every attempt is recorded before it
    starts, so an operation may have partially run when a crash interrupts it.
    """

    def __init__(
        self,
        storage: StepStorage,
        run_id: str,
        *,
        sleep: Callable[[float], None] = time.sleep,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        self.storage = storage
        self.run_id = run_id
        self._sleep = sleep
        self._should_stop = should_stop or (lambda: False)

    def execute_with_checkpoint(
        self,
        key: str,
        policy: RetryPolicy,
        operation: Callable[[], Any],
    ) -> StepResult:
        existing = self.storage.get_step(self.run_id, key)
        if existing is not None and existing.outcome == "succeeded":
            logger.debug("step event=cache_hit run_id=%s key=%s", self.run_id, key)
            return StepSucceeded(
                key=key,
                result=existing.result,
                attempts=existing.attempts,
                cached=True,
            )

        last_error: BaseException | None = None
        for attempt in range(1, policy.max_attempts + 1):
            if self._should_stop():
                raise RunTerminatedError(self.run_id)
            record = self.storage.record_attempt(self.run_id, key)
            try:
                result = _to_json_payload(operation())
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "step event=attempt_failed run_id=%s key=%s attempt=%d/%d reason=%s",
                    self.run_id,
                    key,
                    attempt,
                    policy.max_attempts,
                    exc,
                )
                if attempt < policy.max_attempts:
                    delay = policy.delay_after(attempt)
                    if delay > 0:
                        self._sleep(delay)
                continue

            stored = self.storage.record_success(self.run_id, key, result)
            return StepSucceeded(key=key, result=stored.result, attempts=record.attempts)

        if last_error is None:
            last_error = RuntimeError(f"step {key} failed with unknown error")
        record = self.storage.record_failure(self.run_id, key, str(last_error))
        return StepExhausted(key=key, last_error=last_error, attempts=record.attempts)

    def execute(self, key: str, policy: RetryPolicy, operation: Callable[[], Any]) -> Any:
        outcome = self.execute_with_checkpoint(key, policy, operation)
        if isinstance(outcome, StepExhausted):
            raise StepExhaustedError(key, outcome.last_error) from outcome.last_error
        return outcome.result


def _to_json_payload(value: Any) -> Any:
    """Normalize a step result to what storage round-trips (plain JSON)."""
    return json.loads(json.dumps(value))
