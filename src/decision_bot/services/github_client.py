"""Async GitHub API client for the decision process.

Uses GitHub REST API v3 to:
- Check team membership and list team members
- Fetch issues and post comments
- Merge pull requests and close issues

Reference: https://docs.github.com/en/rest
"""

import logging
from typing import Any

import httpx

from decision_bot.config import get_settings
from decision_bot.schemas.github import GitHubIssue

logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubRateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded."""


class GitHubNotFoundError(GitHubAPIError):
    """Raised when requested resource is not found."""


def split_team(team: str) -> tuple[str, str]:
    """Split an ``org/team-slug`` identifier."""
    org, sep, slug = team.partition("/")
    if not sep or not org or not slug:
        raise ValueError(f"Team must be given as 'org/team-slug', got {team!r}")
    return org, slug


class GitHubClient:
    """
    Async GitHub API client.

    Handles authentication, rate limiting, and error responses. Must be
    used as an async context manager.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub token (defaults to the GITHUB_TOKEN setting)
            base_url: GitHub API base URL (default: https://api.github.com)
        """
        settings = get_settings()
        self.token = token or settings.github_token
        self.base_url = (base_url or settings.github_api_base_url).rstrip("/")

        if not self.token:
            logger.warning("GitHub token not configured - API calls will be rate limited")

        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GitHubClient":
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._build_headers(),
                timeout=httpx.Timeout(30.0, connect=10.0),
            )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "decision-bot",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make an API request with error handling.

        ``path`` may be relative to the base URL or an absolute API URL
        taken from a payload.

        Raises:
            GitHubRateLimitError: If rate limit exceeded
            GitHubNotFoundError: If resource not found
            GitHubAPIError: For other API errors
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        response = await self._client.request(method, path, **kwargs)

        if response.status_code in (403, 429):
            remaining = response.headers.get("X-RateLimit-Remaining")
            if remaining == "0" or response.status_code == 429:
                reset_time = response.headers.get("X-RateLimit-Reset", "unknown")
                raise GitHubRateLimitError(
                    f"GitHub API rate limit exceeded. Resets at {reset_time}",
                    status_code=response.status_code,
                )

        if response.status_code == 404:
            raise GitHubNotFoundError(
                f"Resource not found: {path}",
                status_code=404,
            )

        if response.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        return response

    async def is_team_member(self, username: str, team: str) -> bool:
        """
        Check whether ``username`` is an active member of ``team``.

        Args:
            username: GitHub login
            team: Team in "org/team-slug" format
        """
        org, slug = split_team(team)
        try:
            response = await self._request(
                "GET",
                f"/orgs/{org}/teams/{slug}/memberships/{username}",
            )
        except GitHubNotFoundError:
            return False
        return response.json().get("state") == "active"

    async def get_team_members(self, team: str) -> list[str]:
        """
        List the logins of all members of ``team``, following pagination.

        Args:
            team: Team in "org/team-slug" format
        """
        org, slug = split_team(team)
        logger.debug(f"Fetching members of team {team}")

        members: list[str] = []
        url: str | None = f"/orgs/{org}/teams/{slug}/members"
        params: dict[str, Any] | None = {"per_page": 100}
        while url:
            response = await self._request("GET", url, params=params)
            members.extend(member["login"] for member in response.json())
            url = response.links.get("next", {}).get("url")
            params = None  # the next link already carries the query
        return members

    async def get_issue(self, url: str) -> GitHubIssue:
        """
        Fetch an issue by its API URL.

        Args:
            url: e.g. https://api.github.com/repos/acme/widgets/issues/12
        """
        logger.debug(f"Fetching issue {url}")
        response = await self._request("GET", url)
        return GitHubIssue.model_validate(response.json())

    async def post_comment(self, issue: GitHubIssue, body: str) -> dict[str, Any]:
        """Post a comment on an issue or pull request."""
        logger.info(
            "Posting comment",
            extra={"issue_id": issue.issue_id, "size_bytes": len(body)},
        )
        response = await self._request(
            "POST",
            f"{issue.url}/comments",
            json={"body": body},
        )
        return response.json()

    async def merge_issue(self, issue: GitHubIssue) -> dict[str, Any]:
        """
        Merge the pull request behind ``issue``.

        Raises:
            GitHubAPIError: If the issue is not a pull request or GitHub
                refuses the merge (e.g. 405 not mergeable)
        """
        if not issue.is_pull_request:
            raise GitHubAPIError(f"{issue.issue_id} is not a pull request and cannot be merged")

        logger.info("Merging pull request", extra={"issue_id": issue.issue_id})
        response = await self._request(
            "PUT",
            f"/repos/{issue.repo_full_name}/pulls/{issue.number}/merge",
            json={"commit_title": f"Merge #{issue.number}: {issue.title}"},
        )
        return response.json()

    async def close_issue(self, issue: GitHubIssue) -> dict[str, Any]:
        """Close an issue or pull request without merging."""
        logger.info("Closing issue", extra={"issue_id": issue.issue_id})
        response = await self._request(
            "PATCH",
            issue.url,
            json={"state": "closed"},
        )
        return response.json()
