"""
GitHub fetchers — repositories, assigned issues, open pull requests.

All calls are natively async via httpx; the access token is passed in by
the route (token pass-through, no per-request state).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from integrations.errors import AuthExpiredError, IntegrationError
from integrations.http import http_client, raise_for_provider

logger = logging.getLogger(__name__)

_GH_API = "https://api.github.com"
_PROVIDER = "github"


def _gh_headers(token: str) -> Dict[str, str]:
    """Standard GitHub API headers."""
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }


async def _get(
    client: httpx.AsyncClient, token: str, path: str, params: Dict[str, Any]
) -> Any:
    try:
        resp = await client.get(f"{_GH_API}{path}", headers=_gh_headers(token), params=params)
    except httpx.HTTPError as exc:
        raise IntegrationError(_PROVIDER, f"GitHub request failed: {exc}") from exc
    if resp.is_error:
        logger.error("GitHub %d on %s: %s", resp.status_code, path, resp.text[:300])
    raise_for_provider(resp, _PROVIDER)
    return resp.json()


# ── Reshaping ────────────────────────────────────────────────────────────


def _labels(item: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{"name": l.get("name"), "color": l.get("color")} for l in item.get("labels", [])]


def _person(user: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    user = user or {}
    return {"login": user.get("login"), "avatarUrl": user.get("avatar_url")}


def shape_repo(repo: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": repo.get("id"),
        "name": repo.get("name"),
        "fullName": repo.get("full_name"),
        "description": repo.get("description"),
        "url": repo.get("html_url"),
        "updatedAt": repo.get("updated_at"),
        "isPrivate": repo.get("private", False),
        "language": repo.get("language"),
        "stargazersCount": repo.get("stargazers_count", 0),
        "forksCount": repo.get("forks_count", 0),
    }


def shape_issue(issue: Dict[str, Any]) -> Dict[str, Any]:
    repo = issue.get("repository") or {}
    return {
        "id": issue.get("id"),
        "number": issue.get("number"),
        "title": issue.get("title"),
        "body": issue.get("body"),
        "state": issue.get("state"),
        "url": issue.get("html_url"),
        "repository": {
            "name": repo.get("name"),
            "fullName": repo.get("full_name"),
            "url": repo.get("html_url"),
        },
        "user": _person(issue.get("user")),
        "assignees": [_person(a) for a in issue.get("assignees", [])],
        "labels": _labels(issue),
        "createdAt": issue.get("created_at"),
        "updatedAt": issue.get("updated_at"),
        "commentsCount": issue.get("comments", 0),
    }


def shape_pull_request(pr: Dict[str, Any]) -> Dict[str, Any]:
    # Search results only carry the API URL of the repository
    repo_api_url = pr.get("repository_url", "")
    parts = repo_api_url.rstrip("/").split("/")
    return {
        "id": pr.get("id"),
        "number": pr.get("number"),
        "title": pr.get("title"),
        "body": pr.get("body"),
        "state": pr.get("state"),
        "url": pr.get("html_url"),
        "repository": {
            "name": parts[-1] if parts else "",
            "fullName": "/".join(parts[-2:]),
            "url": repo_api_url.replace("api.github.com/repos", "github.com"),
        },
        "user": _person(pr.get("user")),
        "labels": _labels(pr),
        "createdAt": pr.get("created_at"),
        "updatedAt": pr.get("updated_at"),
        "commentsCount": pr.get("comments", 0),
        "isDraft": pr.get("draft", False),
    }


# ── Fetchers ─────────────────────────────────────────────────────────────


async def list_repos(
    token: str,
    limit: int = 10,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Dict[str, Any]]:
    """Most recently updated repositories the user can see."""
    async with http_client(client) as c:
        data = await _get(
            c, token, "/user/repos",
            {"sort": "updated", "per_page": min(limit, 100), "type": "all"},
        )
    return [shape_repo(r) for r in data]


async def list_assigned_issues(
    token: str,
    limit: int = 20,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Dict[str, Any]]:
    """Open issues assigned to the user across all repositories."""
    async with http_client(client) as c:
        data = await _get(
            c, token, "/issues",
            {"filter": "assigned", "state": "open", "sort": "updated", "per_page": min(limit, 100)},
        )
    return [shape_issue(i) for i in data]


async def list_pull_requests(
    token: str,
    username: str,
    limit: int = 20,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Dict[str, Any]]:
    """
    Open pull requests authored by ``username``.

    Runs an ``author:`` and an ``involves:`` search concurrently.  A failed
    search contributes nothing; only when every search is rejected for an
    expired token does the error propagate.
    """
    queries = [
        f"type:pr author:{username} is:open",
        f"type:pr involves:{username} is:open",
    ]
    async with http_client(client) as c:
        results = await asyncio.gather(
            *[
                _get(
                    c, token, "/search/issues",
                    {"q": q, "sort": "updated", "order": "desc", "per_page": min(limit, 100)},
                )
                for q in queries
            ],
            return_exceptions=True,
        )

    failures = [r for r in results if isinstance(r, Exception)]
    if failures and len(failures) == len(results) and all(
        isinstance(f, AuthExpiredError) for f in failures
    ):
        raise failures[0]

    by_id: Dict[Any, Dict[str, Any]] = {}
    for query, result in zip(queries, results):
        if isinstance(result, Exception):
            logger.warning("GitHub PR search failed (%s): %s", query, result)
            continue
        for pr in result.get("items", []):
            if (pr.get("user") or {}).get("login") == username:
                by_id[pr.get("id")] = pr

    shaped = [shape_pull_request(pr) for pr in by_id.values()]
    shaped.sort(key=lambda p: p.get("updatedAt") or "", reverse=True)
    return shaped
