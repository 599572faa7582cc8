"""Celery tasks for scheduled jobs.

Celery beat triggers ``run_scheduled_jobs`` periodically; the task claims
every job whose due time has passed and routes it through
``decision_bot.handlers.jobs.handle_job``.
"""

import asyncio
import logging
from typing import Any

from celery import Task

from decision_bot.celery_app import celery_app
from decision_bot.config import get_settings
from decision_bot.database import async_session_factory, close_database
from decision_bot.handlers.jobs import JobContext, handle_job
from decision_bot.schemas.decision import IssueDecisionState
from decision_bot.services.decision_state_store import DecisionStateStore
from decision_bot.services.github_client import GitHubClient
from decision_bot.services.job_store import run_due_jobs

logger = logging.getLogger(__name__)


class BaseTask(Task):
    """Base task class with common error handling."""

    abstract = True

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        from decision_bot.observability.metrics import METRICS

        METRICS.celery_tasks_total.labels(task=str(self.name), status="fail").inc()
        logger.error(
            "Task failed",
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "error": str(exc),
            },
            exc_info=exc,
        )

    def on_success(
        self,
        retval: Any,
        task_id: str,
        args: tuple,
        kwargs: dict,
    ) -> None:
        from decision_bot.observability.metrics import METRICS

        METRICS.celery_tasks_total.labels(task=str(self.name), status="success").inc()
        logger.debug(
            "Task completed successfully",
            extra={"task_id": task_id, "task_name": self.name, "result": retval},
        )


async def _get_decision_state(issue_id: str) -> IssueDecisionState | None:
    async with async_session_factory() as session:
        return await DecisionStateStore(session).get(issue_id)


async def _run_scheduled_jobs() -> dict[str, Any]:
    settings = get_settings()
    try:
        async with GitHubClient() as github:
            ctx = JobContext(github=github, get_decision_state=_get_decision_state)

            async def dispatch(name: str, metadata: dict[str, Any]) -> None:
                await handle_job(ctx, name, metadata)

            summary = await run_due_jobs(
                async_session_factory,
                dispatch,
                limit=settings.job_batch_size,
            )
    finally:
        # Pooled connections belong to this event loop
        await close_database()
    return summary.as_dict()


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="decision_bot.tasks.jobs.run_scheduled_jobs",
    # A poll still queued after a minute is superseded by the next beat tick
    expires=60,
)
def run_scheduled_jobs(self) -> dict:
    """
    Dispatch all scheduled jobs that have come due.

    Returns:
        Dict with the number of claimed, succeeded and failed jobs
    """
    logger.debug("Polling scheduled jobs", extra={"task_id": self.request.id})
    return asyncio.run(_run_scheduled_jobs())
