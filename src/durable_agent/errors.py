"""Exception hierarchy shared by the loop, storage and API layers."""

from __future__ import annotations


class DurableAgentError(Exception):
    """Base class for all service errors."""


class StepExhaustedError(DurableAgentError):
    """A checkpointed step failed on every attempt its retry policy allowed."""

    def __init__(self, key: str, last_error: BaseException | str) -> None:
        self.key = key
        self.last_error = last_error
        super().__init__(f"Step '{key}' exhausted its retries: {last_error}")


class RunTerminatedError(DurableAgentError):
    """Raised instead of starting a new step once termination was requested."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run {run_id} was terminated")


class RunNotFoundError(DurableAgentError, KeyError):
    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run {run_id} does not exist")

    def __str__(self) -> str:
        return self.args[0]


class RunFinalizedError(DurableAgentError):
    """Raised on any attempt to mutate a run that reached a terminal status."""

    def __init__(self, run_id: str, status: str) -> None:
        self.run_id = run_id
        self.status = status
        super().__init__(f"Run {run_id} is already {status}")


class GatewayError(DurableAgentError):
    """The LLM gateway returned a non-2xx status or an unreadable body."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
