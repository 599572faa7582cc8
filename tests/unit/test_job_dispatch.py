"""Unit tests for scheduled job dispatch."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from pydantic import ValidationError

from decision_bot.core.logging import issue_id_ctx
from decision_bot.handlers.decision import (
    DECISION_PROCESS_JOB_NAME,
    build_action_metadata,
)
from decision_bot.handlers.jobs import JobContext, handle_job
from decision_bot.schemas.decision import (
    DecisionProcessActionMetadata,
    IssueDecisionState,
    Resolution,
    Reversibility,
)
from decision_bot.schemas.github import GitHubIssue
from decision_bot.services.github_client import GitHubNotFoundError

ISSUE_URL = "https://api.github.com/repos/rust-lang/rfcs/issues/12"


class FakeGitHub:
    def __init__(self, issue: GitHubIssue | None):
        self.issue = issue
        self.actions: list[tuple[str, str]] = []
        self.context_issue_ids: list[str | None] = []

    async def get_issue(self, url: str) -> GitHubIssue:
        if self.issue is None:
            raise GitHubNotFoundError(f"Not found: {url}", status_code=404)
        return self.issue

    async def merge_issue(self, issue: GitHubIssue) -> None:
        self.context_issue_ids.append(issue_id_ctx.get())
        self.actions.append(("merge", issue.issue_id))

    async def close_issue(self, issue: GitHubIssue) -> None:
        self.actions.append(("close", issue.issue_id))


def _state(version: int) -> IssueDecisionState:
    start = datetime(2026, 10, 1, tzinfo=timezone.utc)
    return IssueDecisionState(
        issue_id="rust-lang/rfcs#12",
        initiator="alan",
        team="rust-lang/lang",
        period_start=start,
        period_end=start + timedelta(days=10),
        current_statuses={"alan": None},
        reversibility=Reversibility.REVERSIBLE,
        resolution=Resolution.MERGE,
        version=version,
    )


@pytest.fixture
def issue(sample_issue_payload: dict[str, Any]) -> GitHubIssue:
    return GitHubIssue.model_validate(sample_issue_payload)


def _metadata(status: str, **extra: Any) -> dict[str, Any]:
    return {
        "message": f"Decision on rust-lang/rfcs#12 reached: {status}",
        "issue_url": ISSUE_URL,
        "status": status,
        **extra,
    }


@pytest.mark.asyncio
async def test_unknown_job_name_is_ignored(issue: GitHubIssue) -> None:
    github = FakeGitHub(issue)

    await handle_job(JobContext(github=github), "rebuild_index", {"anything": 1})

    assert github.actions == []


@pytest.mark.asyncio
async def test_merge_resolution_merges(issue: GitHubIssue) -> None:
    github = FakeGitHub(issue)

    await handle_job(JobContext(github=github), DECISION_PROCESS_JOB_NAME, _metadata("merge"))

    assert github.actions == [("merge", "rust-lang/rfcs#12")]


@pytest.mark.asyncio
async def test_hold_resolution_closes(issue: GitHubIssue) -> None:
    github = FakeGitHub(issue)

    await handle_job(JobContext(github=github), DECISION_PROCESS_JOB_NAME, _metadata("hold"))

    assert github.actions == [("close", "rust-lang/rfcs#12")]


@pytest.mark.asyncio
async def test_invalid_metadata_raises(issue: GitHubIssue) -> None:
    github = FakeGitHub(issue)

    with pytest.raises(ValidationError):
        await handle_job(
            JobContext(github=github),
            DECISION_PROCESS_JOB_NAME,
            {"message": "x", "issue_url": ISSUE_URL, "status": "postpone"},
        )

    assert github.actions == []


@pytest.mark.asyncio
async def test_issue_fetch_failure_takes_no_action() -> None:
    github = FakeGitHub(None)

    await handle_job(JobContext(github=github), DECISION_PROCESS_JOB_NAME, _metadata("merge"))

    assert github.actions == []


@pytest.mark.asyncio
async def test_superseded_job_is_skipped(issue: GitHubIssue) -> None:
    github = FakeGitHub(issue)

    async def lookup(issue_id: str) -> IssueDecisionState:
        assert issue_id == "rust-lang/rfcs#12"
        return _state(version=3)

    ctx = JobContext(github=github, get_decision_state=lookup)
    await handle_job(
        ctx,
        DECISION_PROCESS_JOB_NAME,
        _metadata("merge", issue_id="rust-lang/rfcs#12", decision_version=2),
    )

    assert github.actions == []


@pytest.mark.asyncio
async def test_current_job_runs(issue: GitHubIssue) -> None:
    github = FakeGitHub(issue)

    async def lookup(issue_id: str) -> IssueDecisionState:
        return _state(version=3)

    ctx = JobContext(github=github, get_decision_state=lookup)
    await handle_job(
        ctx,
        DECISION_PROCESS_JOB_NAME,
        _metadata("hold", issue_id="rust-lang/rfcs#12", decision_version=3),
    )

    assert github.actions == [("close", "rust-lang/rfcs#12")]


@pytest.mark.asyncio
async def test_job_without_version_always_runs(issue: GitHubIssue) -> None:
    github = FakeGitHub(issue)
    lookups: list[str] = []

    async def lookup(issue_id: str) -> None:
        lookups.append(issue_id)
        return None

    ctx = JobContext(github=github, get_decision_state=lookup)
    await handle_job(ctx, DECISION_PROCESS_JOB_NAME, _metadata("merge"))

    assert lookups == []
    assert github.actions == [("merge", "rust-lang/rfcs#12")]


def test_action_metadata_wire_format(issue: GitHubIssue) -> None:
    metadata = build_action_metadata(issue, _state(version=2))
    payload = metadata.model_dump(mode="json", exclude_none=True)

    assert payload == {
        "message": "Decision on rust-lang/rfcs#12 reached: merge",
        "issue_url": ISSUE_URL,
        "status": "merge",
        "issue_id": "rust-lang/rfcs#12",
        "decision_version": 2,
    }
    assert DecisionProcessActionMetadata.model_validate(payload) == metadata


def test_legacy_payload_is_accepted() -> None:
    metadata = DecisionProcessActionMetadata.model_validate(_metadata("hold"))

    assert metadata.status == Resolution.HOLD
    assert metadata.issue_id is None
    assert metadata.decision_version is None


@pytest.mark.asyncio
async def test_finalize_logs_carry_the_issue_id(issue: GitHubIssue) -> None:
    github = FakeGitHub(issue)

    await handle_job(
        JobContext(github=github),
        DECISION_PROCESS_JOB_NAME,
        _metadata("merge", issue_id="rust-lang/rfcs#12", decision_version=1),
    )

    assert github.context_issue_ids == ["rust-lang/rfcs#12"]
    assert issue_id_ctx.get() is None
