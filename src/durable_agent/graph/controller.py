"""Agent loop controller: drives one run to a terminal status."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from durable_agent.broadcast import BroadcasterHub, ProgressUpdate
from durable_agent.errors import (
    RunFinalizedError,
    RunNotFoundError,
    RunTerminatedError,
    StepExhaustedError,
)
from durable_agent.gateway import LLMGateway
from durable_agent.graph.runtime import LoopRuntime
from durable_agent.graph.state import initial_state
from durable_agent.graph.workflow import build_graph, recursion_limit
from durable_agent.steps import RetryPolicy, StepExecutor
from durable_agent.storage.base import Storage
from durable_agent.storage.models import RunRecord, RunStatus
from durable_agent.tools import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_LLM_POLICY = RetryPolicy(max_attempts=3, backoff="exponential", delay_s=10.0)
DEFAULT_TOOL_POLICY = RetryPolicy(max_attempts=2, backoff="constant", delay_s=5.0)


class AgentLoopController:
    """Run the LLM/tool loop for a run, checkpointing every call.

    Running the same run id again (after a crash, or on a second process)
    replays completed steps from storage and continues where it stopped.
    """

    def __init__(
        self,
        *,
        storage: Storage,
        registry: ToolRegistry,
        gateway: LLMGateway,
        hub: BroadcasterHub,
        model: str,
        max_turns: int = 10,
        max_tokens: int | None = 4096,
        llm_policy: RetryPolicy = DEFAULT_LLM_POLICY,
        tool_policy: RetryPolicy = DEFAULT_TOOL_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.storage = storage
        self.registry = registry
        self.gateway = gateway
        self.hub = hub
        self.model = model
        self.max_turns = max_turns
        self.max_tokens = max_tokens
        self.llm_policy = llm_policy
        self.tool_policy = tool_policy
        self._sleep = sleep

    def run(self, run_id: str, *, should_stop: Callable[[], bool] | None = None) -> RunRecord:
        record = self.storage.get_run(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        if record.status.is_terminal:
            return record

        runtime = LoopRuntime(
            run_id=run_id,
            storage=self.storage,
            steps=StepExecutor(self.storage, run_id, sleep=self._sleep, should_stop=should_stop),
            registry=self.registry,
            gateway=self.gateway,
            broadcaster=self.hub.get(record.agent_id),
            model=self.model,
            max_turns=self.max_turns,
            llm_policy=self.llm_policy,
            tool_policy=self.tool_policy,
            max_tokens=self.max_tokens,
            persisted_messages=len(record.messages),
            tool_definitions=self.registry.definitions(),
            should_stop=should_stop,
        )
        logger.info(
            "run event=start run_id=%s agent_id=%s resumed=%s max_turns=%d",
            run_id,
            record.agent_id,
            record.status == RunStatus.RUNNING,
            self.max_turns,
        )

        try:
            self.storage.update_run(run_id, status=RunStatus.RUNNING)
            final_state = build_graph(runtime).invoke(
                initial_state(run_id, record.task),
                config={"recursion_limit": recursion_limit(self.max_turns)},
            )
        except StepExhaustedError as exc:
            cause = str(exc.last_error)
            logger.warning(
                "run event=failed run_id=%s step=%s reason=%s", run_id, exc.key, cause
            )
            runtime.broadcaster.publish(
                ProgressUpdate(status="error", message=f"Run failed: {cause}")
            )
            return self._finish(run_id, status=RunStatus.ERROR, error=cause)
        except RunTerminatedError:
            logger.info("run event=terminated run_id=%s", run_id)
            runtime.broadcaster.reset()
            return self._finish(run_id, status=RunStatus.TERMINATED)
        except RunFinalizedError as exc:
            logger.info("run event=finalized_elsewhere run_id=%s status=%s", run_id, exc.status)
            return self._current(run_id)

        status = RunStatus(final_state.get("status", RunStatus.MAX_TURNS_REACHED.value))
        turns = int(final_state.get("turns", 0))
        logger.info("run event=completed run_id=%s status=%s turns=%d", run_id, status.value, turns)
        return self._finish(
            run_id,
            status=status,
            messages=final_state.get("messages"),
            turn=int(final_state.get("turn", 0)),
            turns=turns,
            result=final_state.get("result") if status == RunStatus.COMPLETE else None,
        )

    def _finish(self, run_id: str, *, status: RunStatus, **changes) -> RunRecord:
        messages = changes.pop("messages", None)
        current = self._current(run_id)
        if current.status.is_terminal:
            return current
        if messages is not None and len(messages) <= len(current.messages):
            messages = None
        try:
            return self.storage.update_run(run_id, status=status, messages=messages, **changes)
        except RunFinalizedError:
            return self._current(run_id)

    def _current(self, run_id: str) -> RunRecord:
        record = self.storage.get_run(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return record
