"""Routing of scheduled jobs to their handlers.

To add a job kind, write an ``async def handler(ctx, metadata)`` and
register it in ``JOB_HANDLERS`` under the job name.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from decision_bot.core.logging import issue_id_ctx
from decision_bot.handlers.decision import DECISION_PROCESS_JOB_NAME
from decision_bot.observability.metrics import METRICS
from decision_bot.schemas.decision import (
    DecisionProcessActionMetadata,
    IssueDecisionState,
    Resolution,
)
from decision_bot.services.github_client import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)

StateLookup = Callable[[str], Awaitable[IssueDecisionState | None]]


@dataclass
class JobContext:
    github: GitHubClient
    # Without a lookup, versioned jobs cannot be checked for staleness and run as-is
    get_decision_state: StateLookup | None = None


async def handle_job(ctx: JobContext, name: str, metadata: dict[str, Any]) -> None:
    """Run the handler registered for ``name``; unknown names are a no-op."""
    handler = JOB_HANDLERS.get(name)
    if handler is None:
        logger.info(
            "No handler for scheduled job; ignoring",
            extra={"job_name": name, "job_metadata": metadata},
        )
        return
    await handler(ctx, metadata)


async def decision_process_handler(ctx: JobContext, metadata: dict[str, Any]) -> None:
    """
    Apply the terminal action of a decision.

    Raises:
        pydantic.ValidationError: If ``metadata`` is not a valid payload;
            dropping it would leave the issue undecided forever
    """
    logger.debug("Handling decision process job", extra={"job_metadata": metadata})
    action = DecisionProcessActionMetadata.model_validate(metadata)

    token = issue_id_ctx.set(action.issue_id)
    try:
        await _finalize(ctx, action)
    finally:
        issue_id_ctx.reset(token)


async def _finalize(ctx: JobContext, action: DecisionProcessActionMetadata) -> None:
    if await _is_stale(ctx, action):
        METRICS.finalize_jobs_total.labels(outcome="stale").inc()
        return

    try:
        issue = await ctx.github.get_issue(action.issue_url)
    except GitHubAPIError as e:
        METRICS.finalize_jobs_total.labels(outcome="fetch_failed").inc()
        logger.error(
            "Failed to get issue for decision",
            extra={"issue_url": action.issue_url, "error": str(e)},
        )
        return

    if action.status == Resolution.MERGE:
        await ctx.github.merge_issue(issue)
    else:
        await ctx.github.close_issue(issue)

    METRICS.finalize_jobs_total.labels(outcome=action.status.value).inc()
    logger.info(
        action.message,
        extra={"issue_id": issue.issue_id, "resolution": action.status.value},
    )


async def _is_stale(ctx: JobContext, action: DecisionProcessActionMetadata) -> bool:
    if (
        ctx.get_decision_state is None
        or action.issue_id is None
        or action.decision_version is None
    ):
        return False

    state = await ctx.get_decision_state(action.issue_id)
    if state is not None and state.version == action.decision_version:
        return False

    logger.info(
        "Skipping superseded decision job",
        extra={
            "issue_id": action.issue_id,
            "job_version": action.decision_version,
            "current_version": state.version if state else None,
        },
    )
    return True


JOB_HANDLERS: dict[str, Callable[[JobContext, dict[str, Any]], Awaitable[None]]] = {
    DECISION_PROCESS_JOB_NAME: decision_process_handler,
}
