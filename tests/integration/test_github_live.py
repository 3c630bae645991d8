from __future__ import annotations

import json

import pytest

from durable_agent.tools import build_registry


@pytest.mark.usefixtures("github_live")
def test_search_repos_against_github() -> None:
    output = build_registry().dispatch("search_repos", '{"query": "fastapi", "limit": 3}')

    results = json.loads(output)
    assert 0 < len(results) <= 3
    assert {"name", "stars"} <= set(results[0])


@pytest.mark.usefixtures("github_live")
def test_get_repo_against_github() -> None:
    output = build_registry().dispatch("get_repo", {"owner": "fastapi", "repo": "fastapi"})

    details = json.loads(output)
    assert details["name"] == "fastapi/fastapi"
    assert details["stars"] > 0
