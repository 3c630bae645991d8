"""Identity-keyed progress broadcasters.

Each logical agent identity owns one ``AgentState``. The loop controller is
the single writer; any number of observers subscribe and receive the current
snapshot followed by every later update, in the order it was published.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from durable_agent.broadcast.models import AgentState, ProgressUpdate

logger = logging.getLogger(__name__)

Observer = Callable[[AgentState], None]


@dataclass
class Subscription:
    subscription_id: int
    agent_id: str
    _broadcaster: ProgressBroadcaster = field(repr=False)

    def unsubscribe(self) -> None:
        self._broadcaster.unsubscribe(self)


class ProgressBroadcaster:
    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        self._state = AgentState()
        self._observers: dict[int, Observer] = {}
        self._ids = itertools.count(1)
        # Reentrant so an observer may unsubscribe itself during delivery.
        self._lock = threading.RLock()

    def snapshot(self) -> AgentState:
        with self._lock:
            return self._state.model_copy()

    def publish(self, update: ProgressUpdate) -> AgentState:
        changes = update.model_dump(exclude_unset=True)
        with self._lock:
            self._state = self._state.model_copy(update=changes)
            state = self._state.model_copy()
            self._notify_all(state)
        return state

    def reset(self) -> AgentState:
        with self._lock:
            self._state = AgentState()
            state = self._state.model_copy()
            self._notify_all(state)
        return state

    def subscribe(self, observer: Observer) -> Subscription:
        with self._lock:
            subscription = Subscription(
                subscription_id=next(self._ids),
                agent_id=self.agent_id,
                _broadcaster=self,
            )
            self._observers[subscription.subscription_id] = observer
            self._deliver(subscription.subscription_id, observer, self._state.model_copy())
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._observers.pop(subscription.subscription_id, None)

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def _notify_all(self, state: AgentState) -> None:
        for subscription_id, observer in list(self._observers.items()):
            self._deliver(subscription_id, observer, state.model_copy())

    def _deliver(self, subscription_id: int, observer: Observer, state: AgentState) -> None:
        try:
            observer(state)
        except Exception:  # noqa: BLE001
            logger.exception(
                "progress event=observer_failed agent_id=%s subscription_id=%d",
                self.agent_id,
                subscription_id,
            )
            self._observers.pop(subscription_id, None)


class BroadcasterHub:
    """Lazily creates one broadcaster per agent identity."""

    def __init__(self) -> None:
        self._broadcasters: dict[str, ProgressBroadcaster] = {}
        self._lock = threading.Lock()

    def get(self, agent_id: str) -> ProgressBroadcaster:
        with self._lock:
            broadcaster = self._broadcasters.get(agent_id)
            if broadcaster is None:
                broadcaster = ProgressBroadcaster(agent_id)
                self._broadcasters[agent_id] = broadcaster
            return broadcaster

    def agent_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._broadcasters)


class QueueObserver:
    """Forward states into an asyncio queue owned by another thread's loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[AgentState]) -> None:
        self._loop = loop
        self._queue = queue

    def __call__(self, state: AgentState) -> None:
        if self._loop.is_closed():
            raise RuntimeError("observer event loop is closed")
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(state)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, state)
