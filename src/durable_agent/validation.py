"""Tagged validation results for untrusted JSON payloads.

Both the gateway-response check and the tool-argument check go through
``validate`` so that a malformed payload is a value, not an exception.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

TModel = TypeVar("TModel", bound=BaseModel)


@dataclass(frozen=True)
class Valid(Generic[TModel]):
    value: TModel

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Invalid:
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return False


def validate(model: type[TModel], payload: Any) -> Valid[TModel] | Invalid:
    try:
        return Valid(model.model_validate(payload))
    except ValidationError as exc:
        return Invalid(errors=[_format_error(item) for item in exc.errors()])


def parse_json_arguments(raw: str | None) -> Any | Invalid:
    """Decode a serialized argument payload; empty input decodes to ``{}``."""
    if raw is None or not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        return Invalid(errors=[f"arguments are not valid JSON: {exc.msg}"])


def _format_error(item: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in item.get("loc", ())) or "<root>"
    return f"{location}: {item.get('msg', 'invalid value')}"
