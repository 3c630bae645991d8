from __future__ import annotations

import io
import json
from urllib import error, request

import pytest

from durable_agent.tools import github
from durable_agent.tools.github import build_get_repo_tool, build_search_repos_tool
from durable_agent.tools.schemas import GetRepoInput, SearchReposInput


class _FakeHTTPResponse:
    def __init__(self, payload: object) -> None:
        self._raw_body = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:
        return self._raw_body

    def __enter__(self) -> _FakeHTTPResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        _ = (exc_type, exc, tb)
        return False


def _http_error(url: str, code: int) -> error.HTTPError:
    return error.HTTPError(url, code, "error", {}, io.BytesIO(b'{"message": "Not Found"}'))


def test_search_repos_maps_items(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_urlopen(req: request.Request, timeout: float):
        captured["url"] = req.full_url
        captured["headers"] = dict(req.header_items())
        captured["timeout"] = timeout
        return _FakeHTTPResponse(
            {
                "items": [
                    {"full_name": "fastapi/fastapi", "stargazers_count": 80000, "id": 1},
                    {"full_name": "encode/starlette", "stargazers_count": 10000},
                ]
            }
        )

    monkeypatch.setattr(github.request, "urlopen", fake_urlopen)
    search = build_search_repos_tool(api_url="https://gh.example/", token="t0k", timeout_s=3.0)

    output = search(SearchReposInput(query="python web", limit=2))

    assert json.loads(output) == [
        {"name": "fastapi/fastapi", "stars": 80000},
        {"name": "encode/starlette", "stars": 10000},
    ]
    assert captured["url"] == (
        "https://gh.example/search/repositories?q=python+web&sort=stars&per_page=2"
    )
    headers = captured["headers"]
    assert isinstance(headers, dict)
    assert headers["User-agent"] == "DurableAgent/1.0"
    assert headers["Accept"] == "application/vnd.github+json"
    assert headers["Authorization"] == "Bearer t0k"
    assert captured["timeout"] == 3.0


def test_search_repos_reports_http_status(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(req: request.Request, timeout: float):
        raise _http_error(req.full_url, 403)

    monkeypatch.setattr(github.request, "urlopen", fake_urlopen)
    search = build_search_repos_tool(api_url="https://gh.example")

    assert search(SearchReposInput(query="x")) == "Search failed: 403"


def test_search_repos_reports_network_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(req: request.Request, timeout: float):
        raise error.URLError("connection refused")

    monkeypatch.setattr(github.request, "urlopen", fake_urlopen)
    search = build_search_repos_tool(api_url="https://gh.example")

    assert search(SearchReposInput(query="x")) == "Search failed: connection refused"


def test_get_repo_maps_details(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, str] = {}

    def fake_urlopen(req: request.Request, timeout: float):
        captured["url"] = req.full_url
        return _FakeHTTPResponse(
            {
                "full_name": "cloudflare/workers-sdk",
                "description": "Home to Wrangler",
                "stargazers_count": 3000,
                "forks_count": 700,
                "open_issues_count": 500,
                "language": "TypeScript",
                "license": {"name": "Apache License 2.0"},
                "updated_at": "2025-01-01T00:00:00Z",
            }
        )

    monkeypatch.setattr(github.request, "urlopen", fake_urlopen)
    get_repo = build_get_repo_tool(api_url="https://gh.example")

    output = json.loads(get_repo(GetRepoInput(owner="cloudflare", repo="workers-sdk")))

    assert captured["url"] == "https://gh.example/repos/cloudflare/workers-sdk"
    assert output == {
        "name": "cloudflare/workers-sdk",
        "description": "Home to Wrangler",
        "stars": 3000,
        "forks": 700,
        "issues": 500,
        "language": "TypeScript",
        "license": "Apache License 2.0",
        "updated": "2025-01-01T00:00:00Z",
    }


def test_get_repo_without_license(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        github.request,
        "urlopen",
        lambda req, timeout: _FakeHTTPResponse({"full_name": "a/b", "license": None}),
    )
    get_repo = build_get_repo_tool(api_url="https://gh.example")

    assert json.loads(get_repo(GetRepoInput(owner="a", repo="b")))["license"] == "None"


def test_get_repo_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(req: request.Request, timeout: float):
        raise _http_error(req.full_url, 404)

    monkeypatch.setattr(github.request, "urlopen", fake_urlopen)
    get_repo = build_get_repo_tool(api_url="https://gh.example")

    result = get_repo(GetRepoInput(owner="nonexistentuser123", repo="nonexistentrepo456"))

    assert result == "Repo not found: nonexistentuser123/nonexistentrepo456"
