"""Storage backends and models."""

from durable_agent.storage.base import RunStorage, StepStorage, Storage
from durable_agent.storage.memory import InMemoryStorage
from durable_agent.storage.models import (
    FunctionCall,
    Message,
    RunRecord,
    RunStatus,
    StepRecord,
    ToolCall,
)
from durable_agent.storage.postgres import PostgresStorage

__all__ = [
    "FunctionCall",
    "InMemoryStorage",
    "Message",
    "PostgresStorage",
    "RunRecord",
    "RunStatus",
    "RunStorage",
    "StepRecord",
    "StepStorage",
    "Storage",
    "ToolCall",
]
