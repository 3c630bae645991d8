"""Retry policies for checkpointed steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

BackoffKind = Literal["constant", "exponential"]


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a step may run and how long to wait between attempts."""

    max_attempts: int = 1
    backoff: BackoffKind = "constant"
    delay_s: float = 0.0
    max_delay_s: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_s < 0:
            raise ValueError("delay_s must not be negative")
        if self.backoff not in ("constant", "exponential"):
            raise ValueError(f"unsupported backoff: {self.backoff}")

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after the given 1-based failed attempt."""
        if self.backoff == "exponential":
            delay = self.delay_s * (2 ** max(attempt - 1, 0))
        else:
            delay = self.delay_s
        if self.max_delay_s is not None:
            delay = min(delay, self.max_delay_s)
        return delay
