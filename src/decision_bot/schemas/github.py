"""Pydantic schemas for GitHub webhook payloads and API objects.

Reference: https://docs.github.com/en/webhooks/webhook-events-and-payloads#issue_comment

Only the fields the decision process reads are modelled; everything else
in the payload is ignored.
"""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class GitHubUser(BaseModel):
    """GitHub user (actor) in webhook payload."""

    model_config = ConfigDict(extra="ignore")

    login: str
    id: int | None = None
    type: str = "User"


class GitHubRepository(BaseModel):
    """Repository information from GitHub webhook."""

    model_config = ConfigDict(extra="ignore")

    name: str
    full_name: str
    url: str | None = None
    html_url: str | None = None


class GitHubIssue(BaseModel):
    """An issue or pull request, as returned by the issues API."""

    model_config = ConfigDict(extra="ignore")

    number: int
    title: str = ""
    state: Literal["open", "closed"] = "open"
    url: str
    html_url: str | None = None
    repository_url: str
    user: GitHubUser | None = None
    pull_request: dict[str, Any] | None = None

    @property
    def repo_full_name(self) -> str:
        """``owner/repo`` derived from ``repository_url``."""
        parts = self.repository_url.rstrip("/").split("/")
        return f"{parts[-2]}/{parts[-1]}"

    @property
    def issue_id(self) -> str:
        """Identity of the issue across repositories, e.g. ``acme/widgets#12``."""
        return f"{self.repo_full_name}#{self.number}"

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request is not None


class GitHubComment(BaseModel):
    """An issue comment."""

    model_config = ConfigDict(extra="ignore")

    id: int
    body: str = ""
    user: GitHubUser
    html_url: str | None = None
    created_at: datetime | None = None


class IssueCommentEvent(BaseModel):
    """The ``issue_comment`` webhook event."""

    model_config = ConfigDict(extra="ignore")

    action: Literal["created", "edited", "deleted"]
    issue: GitHubIssue
    comment: GitHubComment
    repository: GitHubRepository
    sender: GitHubUser | None = None

    @property
    def user(self) -> GitHubUser:
        """The user who wrote the comment, i.e. who invoked the bot."""
        return self.comment.user
