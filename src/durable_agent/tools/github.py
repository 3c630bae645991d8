"""GitHub REST tools: repository search and repository details."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any
from urllib import error, parse, request

from durable_agent.tools.schemas import GetRepoInput, SearchReposInput

logger = logging.getLogger(__name__)

USER_AGENT = "DurableAgent/1.0"


class _GitHubRequestError(Exception):
    def __init__(self, reason: str, *, status: int | None = None) -> None:
        self.reason = reason
        self.status = status
        super().__init__(reason)


def build_search_repos_tool(
    *,
    api_url: str,
    token: str = "",
    timeout_s: float = 10.0,
) -> Callable[[SearchReposInput], str]:
    def _search_repos(payload: SearchReposInput) -> str:
        params = {"q": payload.query, "sort": "stars", "per_page": payload.limit}
        try:
            data = _request_json(
                f"{api_url.rstrip('/')}/search/repositories?{parse.urlencode(params)}",
                token=token,
                timeout_s=timeout_s,
            )
        except _GitHubRequestError as exc:
            return f"Search failed: {exc.status if exc.status is not None else exc.reason}"

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return "Search failed: unexpected response"
        return json.dumps(
            [
                {"name": item.get("full_name"), "stars": item.get("stargazers_count")}
                for item in items
                if isinstance(item, dict)
            ]
        )

    return _search_repos


def build_get_repo_tool(
    *,
    api_url: str,
    token: str = "",
    timeout_s: float = 10.0,
) -> Callable[[GetRepoInput], str]:
    def _get_repo(payload: GetRepoInput) -> str:
        owner = parse.quote(payload.owner, safe="")
        repo = parse.quote(payload.repo, safe="")
        try:
            data = _request_json(
                f"{api_url.rstrip('/')}/repos/{owner}/{repo}",
                token=token,
                timeout_s=timeout_s,
            )
        except _GitHubRequestError as exc:
            if exc.status is not None:
                return f"Repo not found: {payload.owner}/{payload.repo}"
            return f"Repo lookup failed: {exc.reason}"

        if not isinstance(data, dict):
            return f"Repo lookup failed: unexpected response for {payload.owner}/{payload.repo}"
        license_info = data.get("license")
        license_name = license_info.get("name") if isinstance(license_info, dict) else None
        return json.dumps(
            {
                "name": data.get("full_name"),
                "description": data.get("description"),
                "stars": data.get("stargazers_count"),
                "forks": data.get("forks_count"),
                "issues": data.get("open_issues_count"),
                "language": data.get("language"),
                "license": license_name or "None",
                "updated": data.get("updated_at"),
            }
        )

    return _get_repo


def _request_json(url: str, *, token: str, timeout_s: float) -> Any:
    headers = {"Accept": "application/vnd.github+json", "User-Agent": USER_AGENT}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    req = request.Request(url=url, method="GET", headers=headers)

    try:
        with request.urlopen(req, timeout=timeout_s) as response:
            body = response.read().decode("utf-8")
    except error.HTTPError as exc:
        logger.info("github tool request failed status=%s url=%s", exc.code, url)
        raise _GitHubRequestError(f"HTTP {exc.code}", status=exc.code) from exc
    except (error.URLError, TimeoutError) as exc:
        reason = getattr(exc, "reason", exc)
        logger.warning("github tool request failed url=%s reason=%s", url, reason)
        raise _GitHubRequestError(str(reason)) from exc

    try:
        return json.loads(body) if body else {}
    except json.JSONDecodeError as exc:
        raise _GitHubRequestError("non-JSON response") from exc
