"""Unit tests for the GitHub API client, backed by httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from decision_bot.schemas.github import GitHubIssue
from decision_bot.services.github_client import (
    GitHubAPIError,
    GitHubClient,
    GitHubNotFoundError,
    GitHubRateLimitError,
    split_team,
)

BASE_URL = "https://api.github.test"


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> GitHubClient:
    client = GitHubClient(token="t0ken", base_url=BASE_URL)
    client._client = httpx.AsyncClient(
        base_url=BASE_URL,
        headers=client._build_headers(),
        transport=httpx.MockTransport(handler),
    )
    return client


def _issue(*, pull_request: bool = True) -> GitHubIssue:
    return GitHubIssue(
        number=12,
        title="Stabilize let-else",
        url=f"{BASE_URL}/repos/rust-lang/rfcs/issues/12",
        repository_url=f"{BASE_URL}/repos/rust-lang/rfcs",
        pull_request={"url": f"{BASE_URL}/repos/rust-lang/rfcs/pulls/12"} if pull_request else None,
    )


def test_split_team() -> None:
    assert split_team("rust-lang/lang") == ("rust-lang", "lang")
    with pytest.raises(ValueError):
        split_team("lang")


@pytest.mark.asyncio
async def test_active_membership() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/orgs/rust-lang/teams/lang/memberships/alan"
        assert request.headers["Authorization"] == "Bearer t0ken"
        return httpx.Response(200, json={"state": "active", "role": "member"})

    async with _client(handler) as github:
        assert await github.is_team_member("alan", "rust-lang/lang")


@pytest.mark.asyncio
async def test_pending_membership_is_not_membership() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"state": "pending"})

    async with _client(handler) as github:
        assert not await github.is_team_member("alan", "rust-lang/lang")


@pytest.mark.asyncio
async def test_unknown_member_is_not_membership() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Not Found"})

    async with _client(handler) as github:
        assert not await github.is_team_member("mallory", "rust-lang/lang")


@pytest.mark.asyncio
async def test_membership_server_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    async with _client(handler) as github:
        with pytest.raises(GitHubAPIError) as exc_info:
            await github.is_team_member("alan", "rust-lang/lang")
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_team_members_follow_pagination() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("page") == "2":
            return httpx.Response(200, json=[{"login": "niklaus"}])
        return httpx.Response(
            200,
            json=[{"login": "alan"}, {"login": "barbara"}],
            headers={
                "Link": f'<{BASE_URL}/orgs/rust-lang/teams/lang/members?per_page=100&page=2>; rel="next"'
            },
        )

    async with _client(handler) as github:
        members = await github.get_team_members("rust-lang/lang")

    assert members == ["alan", "barbara", "niklaus"]


@pytest.mark.asyncio
async def test_rate_limit() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            403,
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
        )

    async with _client(handler) as github:
        with pytest.raises(GitHubRateLimitError, match="1700000000"):
            await github.get_team_members("rust-lang/lang")


@pytest.mark.asyncio
async def test_get_issue_by_url() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == f"{BASE_URL}/repos/rust-lang/rfcs/issues/12"
        return httpx.Response(200, json=_issue().model_dump())

    async with _client(handler) as github:
        issue = await github.get_issue(f"{BASE_URL}/repos/rust-lang/rfcs/issues/12")

    assert issue.issue_id == "rust-lang/rfcs#12"
    assert issue.is_pull_request


@pytest.mark.asyncio
async def test_get_missing_issue() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    async with _client(handler) as github:
        with pytest.raises(GitHubNotFoundError):
            await github.get_issue(f"{BASE_URL}/repos/rust-lang/rfcs/issues/999")


@pytest.mark.asyncio
async def test_post_comment() -> None:
    seen: list[tuple[str, str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(201, json={"id": 5})

    async with _client(handler) as github:
        await github.post_comment(_issue(), "| Team member | State |")

    assert seen == [
        ("POST", "/repos/rust-lang/rfcs/issues/12/comments", {"body": "| Team member | State |"})
    ]


@pytest.mark.asyncio
async def test_merge_pull_request() -> None:
    seen: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        return httpx.Response(200, json={"merged": True})

    async with _client(handler) as github:
        await github.merge_issue(_issue())

    assert seen == [("PUT", "/repos/rust-lang/rfcs/pulls/12/merge")]


@pytest.mark.asyncio
async def test_merge_plain_issue_is_refused() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with _client(handler) as github:
        with pytest.raises(GitHubAPIError, match="not a pull request"):
            await github.merge_issue(_issue(pull_request=False))


@pytest.mark.asyncio
async def test_close_issue() -> None:
    seen: list[tuple[str, str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"state": "closed"})

    async with _client(handler) as github:
        await github.close_issue(_issue(pull_request=False))

    assert seen == [("PATCH", "/repos/rust-lang/rfcs/issues/12", {"state": "closed"})]
