from __future__ import annotations

import threading
import time

import pytest
from fakes import ScriptedGateway, completion, tool_call

from durable_agent.broadcast import BroadcasterHub, ProgressUpdate
from durable_agent.errors import RunNotFoundError
from durable_agent.graph.runner import RunManager
from durable_agent.storage import InMemoryStorage, RunStatus


@pytest.fixture
def make_manager(storage: InMemoryStorage, hub: BroadcasterHub, make_controller):
    managers: list[RunManager] = []

    def _make(gateway) -> RunManager:
        manager = RunManager(
            storage=storage,
            controller=make_controller(gateway),
            hub=hub,
            max_workers=2,
        )
        managers.append(manager)
        return manager

    yield _make
    for manager in managers:
        manager.shutdown()


class _BlockingGateway(ScriptedGateway):
    """Holds the first call open until the test releases it."""

    def __init__(self, responses) -> None:
        super().__init__(responses)
        self.entered = threading.Event()
        self.release = threading.Event()

    def complete(self, request_body):
        self.entered.set()
        assert self.release.wait(timeout=5)
        return super().complete(request_body)


def test_start_runs_task_to_completion(make_manager) -> None:
    manager = make_manager(ScriptedGateway(default=completion("pong")))

    run_id = manager.start("ping")
    record = manager.wait(run_id, timeout=5)

    assert record.status == RunStatus.COMPLETE
    first = manager.status(run_id)
    assert first == manager.status(run_id)
    assert first.status == "complete"
    assert first.output is not None
    assert first.output.result == "pong"
    assert first.output.turns == 1


def test_start_honours_explicit_run_id(make_manager, storage: InMemoryStorage) -> None:
    manager = make_manager(ScriptedGateway(default=completion("pong")))

    run_id = manager.start("ping", run_id="fixed-id", agent_id="agent-b")
    manager.wait(run_id, timeout=5)

    record = storage.get_run("fixed-id")
    assert run_id == "fixed-id"
    assert record is not None
    assert record.agent_id == "agent-b"


def test_status_of_unknown_run_raises(make_manager) -> None:
    manager = make_manager(ScriptedGateway())

    with pytest.raises(RunNotFoundError):
        manager.status("missing")


def test_reset_without_run_clears_progress(make_manager, hub: BroadcasterHub) -> None:
    manager = make_manager(ScriptedGateway())
    hub.get("default").publish(ProgressUpdate(status="complete", message="done", result="x"))

    manager.reset()

    state = hub.get("default").snapshot()
    assert (state.status, state.message, state.result) == ("idle", "", None)


def test_terminate_undriven_run_marks_it_terminated(
    make_manager, storage: InMemoryStorage
) -> None:
    manager = make_manager(ScriptedGateway())
    run = storage.create_run(task="ping", agent_id="default")

    assert manager.terminate(run.run_id) is True
    assert manager.terminate(run.run_id) is False
    assert manager.terminate("missing") is False
    assert manager.status(run.run_id).status == "terminated"


def test_reset_with_instance_id_terminates_run(
    make_manager, storage: InMemoryStorage
) -> None:
    manager = make_manager(ScriptedGateway())
    run = storage.create_run(task="ping", agent_id="default")

    manager.reset(run.run_id)

    record = storage.get_run(run.run_id)
    assert record is not None
    assert record.status == RunStatus.TERMINATED


def test_terminate_live_run_stops_before_next_step(make_manager) -> None:
    gateway = _BlockingGateway(
        [
            completion(
                None,
                finish_reason="tool_calls",
                tool_calls=[tool_call("c1", "search_repos", {"query": "x"})],
            )
        ]
    )
    manager = make_manager(gateway)

    run_id = manager.start("find x")
    assert gateway.entered.wait(timeout=5)
    assert manager.terminate(run_id) is True
    gateway.release.set()
    record = manager.wait(run_id, timeout=5)

    assert record.status == RunStatus.TERMINATED
    assert len(gateway.requests) == 1


def test_resume_incomplete_drives_pending_runs(
    make_manager, storage: InMemoryStorage
) -> None:
    queued = storage.create_run(task="a", agent_id="default")
    running = storage.create_run(task="b", agent_id="default")
    storage.update_run(running.run_id, status=RunStatus.RUNNING)
    finished = storage.create_run(task="c", agent_id="default")
    storage.update_run(finished.run_id, status=RunStatus.COMPLETE, result="old", turns=1)
    manager = make_manager(ScriptedGateway(default=completion("pong")))

    resumed = manager.resume_incomplete()

    assert sorted(resumed) == sorted([queued.run_id, running.run_id])
    for run_id in resumed:
        assert manager.wait(run_id, timeout=5).status == RunStatus.COMPLETE
    assert storage.get_run(finished.run_id).result == "old"


def test_reset_with_instance_id_clears_that_runs_agent(
    make_manager, hub: BroadcasterHub
) -> None:
    manager = make_manager(ScriptedGateway(default=completion("pong")))
    run_id = manager.start("ping", agent_id="other")
    manager.wait(run_id, timeout=5)
    assert hub.get("other").snapshot().status == "complete"
    hub.get("default").publish(ProgressUpdate(status="analyzing", message="untouched"))

    manager.reset(run_id)

    assert hub.get("other").snapshot().status == "idle"
    assert hub.get("default").snapshot().message == "untouched"


def test_reset_during_inflight_step_leaves_agent_idle(
    make_manager, hub: BroadcasterHub
) -> None:
    gateway = _BlockingGateway(
        [
            completion(
                None,
                finish_reason="tool_calls",
                tool_calls=[tool_call("c1", "search_repos", {"query": "x"})],
            )
        ]
    )
    manager = make_manager(gateway)
    seen: list[str] = []
    hub.get("default").subscribe(lambda state: seen.append(state.status))

    run_id = manager.start("find x")
    assert gateway.entered.wait(timeout=5)
    manager.reset(run_id)
    assert hub.get("default").snapshot().status == "idle"
    gateway.release.set()
    record = manager.wait(run_id, timeout=5)

    assert record.status == RunStatus.TERMINATED
    state = hub.get("default").snapshot()
    assert (state.status, state.message, state.result) == ("idle", "", None)
    assert "fetching" not in seen


def test_finished_runs_are_released(make_manager) -> None:
    manager = make_manager(ScriptedGateway(default=completion("pong")))

    run_ids = [manager.start(f"task {index}") for index in range(3)]
    for run_id in run_ids:
        manager.wait(run_id, timeout=5)

    deadline = time.monotonic() + 5
    while manager.active_run_ids() and time.monotonic() < deadline:
        time.sleep(0.01)
    assert manager.active_run_ids() == []
    assert manager.wait(run_ids[0]).status == RunStatus.COMPLETE
