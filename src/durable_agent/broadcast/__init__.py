"""Progress broadcast to external observers."""

from durable_agent.broadcast.broadcaster import (
    BroadcasterHub,
    Observer,
    ProgressBroadcaster,
    QueueObserver,
    Subscription,
)
from durable_agent.broadcast.models import AgentState, AgentStatus, ProgressUpdate

__all__ = [
    "AgentState",
    "AgentStatus",
    "BroadcasterHub",
    "Observer",
    "ProgressBroadcaster",
    "ProgressUpdate",
    "QueueObserver",
    "Subscription",
]
