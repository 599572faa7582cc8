"""Durable delayed jobs.

Jobs are generic ``{name, due_at, metadata}`` rows. The store knows nothing
about what a job does; ``run_due_jobs`` claims the rows that have come due
and hands each one to a dispatcher callable.

Delivery is at-most-once per row: a job is stamped ``executed_at`` and the
claim committed before it is dispatched, and a failing job keeps its error
on the row rather than being retried.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decision_bot.core.logging import job_id_ctx
from decision_bot.models.decision import ScheduledJob
from decision_bot.observability.metrics import METRICS

logger = logging.getLogger(__name__)

JobDispatcher = Callable[[str, dict[str, Any]], Awaitable[None]]


class JobStore:
    """Data access for ``ScheduledJob`` rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, name: str, due_at: datetime, metadata: dict[str, Any]) -> ScheduledJob:
        """Schedule ``name`` to run at ``due_at`` with ``metadata``."""
        job = ScheduledJob(name=name, due_at=due_at, metadata_json=metadata)
        self.session.add(job)
        await self.session.flush()
        logger.info(
            "Scheduled job",
            extra={"job_id": str(job.id), "job_name": name, "due_at": due_at.isoformat()},
        )
        return job

    async def claim_due(self, now: datetime, limit: int = 50) -> list[ScheduledJob]:
        """
        Lock and mark as executed up to ``limit`` jobs due at ``now``.

        Rows locked by another worker are skipped, so concurrent workers
        never claim the same job.
        """
        stmt = (
            select(ScheduledJob)
            .where(ScheduledJob.executed_at.is_(None), ScheduledJob.due_at <= now)
            .order_by(ScheduledJob.due_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await self.session.execute(stmt)
        jobs = list(result.scalars().all())
        for job in jobs:
            job.executed_at = now
        await self.session.flush()
        return jobs

    async def record_error(self, job_id: UUID, message: str) -> None:
        await self.session.execute(
            update(ScheduledJob).where(ScheduledJob.id == job_id).values(error_message=message)
        )


@dataclass
class JobRunSummary:
    claimed: int = 0
    succeeded: int = 0
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {"claimed": self.claimed, "succeeded": self.succeeded, "failed": self.failed}


async def run_due_jobs(
    session_factory: async_sessionmaker[AsyncSession],
    dispatch: JobDispatcher,
    *,
    now: datetime | None = None,
    limit: int = 50,
) -> JobRunSummary:
    """
    Claim every due job and dispatch it.

    A failing job is logged and its error recorded; the rest of the batch
    still runs.
    """
    now = now or datetime.now(timezone.utc)
    summary = JobRunSummary()

    async with session_factory() as session:
        jobs = await JobStore(session).claim_due(now, limit=limit)
        claimed = [(job.id, job.name, dict(job.metadata_json)) for job in jobs]
        await session.commit()

    summary.claimed = len(claimed)
    if claimed:
        logger.info("Claimed due jobs", extra={"count": len(claimed)})

    for job_id, name, metadata in claimed:
        token = job_id_ctx.set(str(job_id))
        try:
            await dispatch(name, metadata)
        except Exception as e:
            METRICS.scheduled_jobs_total.labels(name=name, status="fail").inc()
            logger.error(
                "Scheduled job failed",
                extra={"job_id": str(job_id), "job_name": name, "error": str(e)},
                exc_info=e,
            )
            summary.failed.append(str(job_id))
            async with session_factory() as session:
                await JobStore(session).record_error(job_id, f"{type(e).__name__}: {e}")
                await session.commit()
        else:
            METRICS.scheduled_jobs_total.labels(name=name, status="success").inc()
            summary.succeeded += 1
        finally:
            job_id_ctx.reset(token)

    return summary
