"""Storage interfaces for runs and their step checkpoints."""

from __future__ import annotations

from typing import Any, Protocol

from durable_agent.storage.models import Message, RunRecord, RunStatus, StepRecord


class RunStorage(Protocol):
    def migrate(self) -> None: ...

    def create_run(self, *, task: str, agent_id: str, run_id: str | None = None) -> RunRecord: ...

    def get_run(self, run_id: str) -> RunRecord | None: ...

    def list_runs(self, *, statuses: set[RunStatus] | None = None) -> list[RunRecord]: ...

    def update_run(
        self,
        run_id: str,
        *,
        status: RunStatus | None = None,
        turn: int | None = None,
        messages: list[Message] | None = None,
        result: str | None = None,
        turns: int | None = None,
        error: str | None = None,
    ) -> RunRecord: ...


class StepStorage(Protocol):
    def get_step(self, run_id: str, key: str) -> StepRecord | None: ...

    def record_attempt(self, run_id: str, key: str) -> StepRecord: ...

    def record_success(self, run_id: str, key: str, result: Any) -> StepRecord: ...

    def record_failure(self, run_id: str, key: str, error: str) -> StepRecord: ...

    def list_steps(self, run_id: str) -> list[StepRecord]: ...


class Storage(RunStorage, StepStorage, Protocol):
    """Backends persist runs and step checkpoints side by side."""
