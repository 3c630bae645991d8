"""Control surface: start, inspect, reset and resume runs."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from durable_agent.broadcast import BroadcasterHub
from durable_agent.errors import RunFinalizedError, RunNotFoundError
from durable_agent.graph.controller import AgentLoopController
from durable_agent.storage.base import Storage
from durable_agent.storage.models import RunRecord, RunStatus

logger = logging.getLogger(__name__)


class RunOutput(BaseModel):
    status: str
    turns: int
    result: str | None = None


class RunStatusView(BaseModel):
    status: str
    output: RunOutput | None = None
    error: str | None = None


@dataclass
class _ActiveRun:
    future: Future[Any]
    stop: threading.Event


class RunManager:
    """Drive runs on a worker pool; one worker thread per in-flight run."""

    def __init__(
        self,
        *,
        storage: Storage,
        controller: AgentLoopController,
        hub: BroadcasterHub,
        default_agent_id: str = "default",
        max_workers: int = 4,
    ) -> None:
        self.storage = storage
        self.controller = controller
        self.hub = hub
        self.default_agent_id = default_agent_id
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="agent-run")
        self._active: dict[str, _ActiveRun] = {}
        self._lock = threading.Lock()

    def start(self, task: str, *, agent_id: str | None = None, run_id: str | None = None) -> str:
        record = self.storage.create_run(
            task=task,
            agent_id=agent_id or self.default_agent_id,
            run_id=run_id,
        )
        logger.info("run event=queued run_id=%s agent_id=%s", record.run_id, record.agent_id)
        self._submit(record.run_id)
        return record.run_id

    def status(self, run_id: str) -> RunStatusView:
        record = self.storage.get_run(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return status_view(record)

    def reset(self, run_id: str | None = None, *, agent_id: str | None = None) -> None:
        if run_id:
            self.terminate(run_id)
            if agent_id is None:
                record = self.storage.get_run(run_id)
                agent_id = record.agent_id if record is not None else None
        self.hub.get(agent_id or self.default_agent_id).reset()

    def terminate(self, run_id: str) -> bool:
        """Request termination; returns False when there is nothing to stop.

        A run driven by this process stops before initiating its next step;
        steps already on the wire are not interrupted.
        """
        with self._lock:
            active = self._active.get(run_id)
        if active is not None and not active.future.done():
            active.stop.set()
            logger.info("run event=terminate_requested run_id=%s", run_id)
            return True

        record = self.storage.get_run(run_id)
        if record is None or record.status.is_terminal:
            return False
        try:
            self.storage.update_run(run_id, status=RunStatus.TERMINATED)
        except RunFinalizedError:
            return False
        logger.info("run event=terminated run_id=%s driver=none", run_id)
        return True

    def resume_incomplete(self) -> list[str]:
        pending = self.storage.list_runs(statuses={RunStatus.QUEUED, RunStatus.RUNNING})
        resumed: list[str] = []
        for record in pending:
            if self._submit(record.run_id):
                resumed.append(record.run_id)
        if resumed:
            logger.info("run event=resumed count=%d run_ids=%s", len(resumed), resumed)
        return resumed

    def wait(self, run_id: str, timeout: float | None = None) -> RunRecord:
        with self._lock:
            active = self._active.get(run_id)
        if active is not None:
            active.future.result(timeout=timeout)
        record = self.storage.get_run(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return record

    def shutdown(self, *, wait: bool = True) -> None:
        with self._lock:
            active = list(self._active.values())
        if not wait:
            for item in active:
                item.stop.set()
        self._pool.shutdown(wait=wait)

    def active_run_ids(self) -> list[str]:
        """Runs with a worker still driving them in this process."""
        with self._lock:
            return sorted(self._active)

    def _submit(self, run_id: str) -> bool:
        with self._lock:
            existing = self._active.get(run_id)
            if existing is not None and not existing.future.done():
                return False
            stop = threading.Event()
            future = self._pool.submit(self._drive, run_id, stop)
            active = _ActiveRun(future=future, stop=stop)
            self._active[run_id] = active
        # Outside the lock: the callback runs inline when the future is already done.
        future.add_done_callback(lambda _: self._forget(run_id, active))
        return True

    def _forget(self, run_id: str, active: _ActiveRun) -> None:
        with self._lock:
            if self._active.get(run_id) is active:
                del self._active[run_id]

    def _drive(self, run_id: str, stop: threading.Event) -> None:
        try:
            self.controller.run(run_id, should_stop=stop.is_set)
        except Exception:  # noqa: BLE001
            # The run stays non-terminal in storage and is picked up by the
            # next resume_incomplete().
            logger.exception("run event=driver_crashed run_id=%s", run_id)
            raise


def status_view(record: RunRecord) -> RunStatusView:
    output: RunOutput | None = None
    if record.status in (RunStatus.COMPLETE, RunStatus.MAX_TURNS_REACHED):
        output = RunOutput(
            status=record.status.value,
            turns=record.turns or 0,
            result=record.result if record.status == RunStatus.COMPLETE else None,
        )
    return RunStatusView(status=record.status.value, output=output, error=record.error)
