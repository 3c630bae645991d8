from __future__ import annotations

from durable_agent.tools.schemas import GetRepoInput, SearchReposInput
from durable_agent.validation import Invalid, Valid, parse_json_arguments, validate


def test_validate_returns_tagged_success() -> None:
    checked = validate(SearchReposInput, {"query": "httpx"})

    assert isinstance(checked, Valid)
    assert checked.ok is True
    assert checked.value.query == "httpx"
    assert checked.value.limit == 5


def test_validate_collects_field_errors() -> None:
    checked = validate(GetRepoInput, {"owner": ""})

    assert isinstance(checked, Invalid)
    assert checked.ok is False
    assert any(message.startswith("owner:") for message in checked.errors)
    assert any(message.startswith("repo:") for message in checked.errors)


def test_validate_rejects_unknown_fields() -> None:
    assert isinstance(validate(SearchReposInput, {"query": "x", "sort": "stars"}), Invalid)


def test_parse_json_arguments_empty_means_no_arguments() -> None:
    assert parse_json_arguments("") == {}
    assert parse_json_arguments("   ") == {}
    assert parse_json_arguments(None) == {}


def test_parse_json_arguments_reports_bad_json() -> None:
    parsed = parse_json_arguments("{not json")

    assert isinstance(parsed, Invalid)
    assert parsed.errors[0].startswith("arguments are not valid JSON")
