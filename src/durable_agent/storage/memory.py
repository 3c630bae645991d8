"""In-memory storage backend for tests and local development."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from durable_agent.errors import RunFinalizedError, RunNotFoundError
from durable_agent.storage.models import Message, RunRecord, RunStatus, StepRecord


class InMemoryStorage:
    """Process-local implementation of run and step storage.

    Records are copied on the way in and out so callers never share mutable
    state with the store, matching what a database round trip would give.
    """

    def __init__(self) -> None:
        self._runs: dict[str, RunRecord] = {}
        self._steps: dict[tuple[str, str], StepRecord] = {}
        self._lock = threading.Lock()

    def migrate(self) -> None:
        return None

    def create_run(self, *, task: str, agent_id: str, run_id: str | None = None) -> RunRecord:
        now = datetime.now(UTC)
        record = RunRecord(
            run_id=run_id or str(uuid4()),
            agent_id=agent_id,
            task=task,
            status=RunStatus.QUEUED,
            turn=0,
            messages=[Message(role="user", content=task)],
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            if record.run_id in self._runs:
                raise ValueError(f"Run {record.run_id} already exists")
            self._runs[record.run_id] = record
        return record.model_copy(deep=True)

    def get_run(self, run_id: str) -> RunRecord | None:
        with self._lock:
            record = self._runs.get(run_id)
        return record.model_copy(deep=True) if record else None

    def list_runs(self, *, statuses: set[RunStatus] | None = None) -> list[RunRecord]:
        with self._lock:
            records = list(self._runs.values())
        return [
            record.model_copy(deep=True)
            for record in sorted(records, key=lambda item: item.created_at)
            if statuses is None or record.status in statuses
        ]

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
    ) -> RunRecord:
        with self._lock:
            current = self._runs.get(run_id)
            if current is None:
                raise RunNotFoundError(run_id)
            if current.status.is_terminal:
                raise RunFinalizedError(run_id, current.status.value)

            changes: dict[str, Any] = {"updated_at": datetime.now(UTC)}
            if status is not None:
                changes["status"] = status
            if turn is not None:
                changes["turn"] = turn
            if messages is not None:
                changes["messages"] = [item.model_copy(deep=True) for item in messages]
            if result is not None:
                changes["result"] = result
            if turns is not None:
                changes["turns"] = turns
            if error is not None:
                changes["error"] = error
            updated = current.model_copy(update=changes)
            self._runs[run_id] = updated
        return updated.model_copy(deep=True)

    def get_step(self, run_id: str, key: str) -> StepRecord | None:
        with self._lock:
            record = self._steps.get((run_id, key))
        return record.model_copy(deep=True) if record else None

    def record_attempt(self, run_id: str, key: str) -> StepRecord:
        now = datetime.now(UTC)
        with self._lock:
            current = self._steps.get((run_id, key))
            if current is None:
                current = StepRecord(run_id=run_id, key=key, created_at=now, updated_at=now)
            updated = current.model_copy(
                update={
                    "attempts": current.attempts + 1,
                    "outcome": "pending",
                    "error": None,
                    "updated_at": now,
                }
            )
            self._steps[(run_id, key)] = updated
        return updated.model_copy(deep=True)

    def record_success(self, run_id: str, key: str, result: Any) -> StepRecord:
        return self._finish_step(run_id, key, outcome="succeeded", result=result, error=None)

    def record_failure(self, run_id: str, key: str, error: str) -> StepRecord:
        return self._finish_step(run_id, key, outcome="failed", result=None, error=error)

    def list_steps(self, run_id: str) -> list[StepRecord]:
        with self._lock:
            records = [item for (owner, _), item in self._steps.items() if owner == run_id]
        return [item.model_copy(deep=True) for item in records]

    def _finish_step(
        self,
        run_id: str,
        key: str,
        *,
        outcome: str,
        result: Any,
        error: str | None,
    ) -> StepRecord:
        now = datetime.now(UTC)
        with self._lock:
            current = self._steps.get((run_id, key))
            if current is None:
                current = StepRecord(run_id=run_id, key=key, created_at=now, updated_at=now)
            if current.outcome == "succeeded":
                return current.model_copy(deep=True)
            updated = current.model_copy(
                update={"outcome": outcome, "result": result, "error": error, "updated_at": now}
            )
            self._steps[(run_id, key)] = updated
        return updated.model_copy(deep=True)
