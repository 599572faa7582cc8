"""Persistence of issue decision states.

A state is written once by ``insert`` when a decision opens and afterwards
only through ``update``, a compare-and-swap on ``version``. Both turn a
concurrent writer into a ``DecisionConflictError`` instead of a silent
overwrite.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from decision_bot.models.decision import IssueDecisionStateRecord
from decision_bot.schemas.decision import IssueDecisionState

logger = logging.getLogger(__name__)


class DecisionConflictError(Exception):
    """Raised when a decision write loses a race with another writer."""

    def __init__(self, issue_id: str, message: str):
        super().__init__(message)
        self.issue_id = issue_id


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _dump_statuses(state: IssueDecisionState) -> dict[str, Any]:
    return state.model_dump(mode="json", include={"current_statuses", "status_history"})


def to_domain(record: IssueDecisionStateRecord) -> IssueDecisionState:
    return IssueDecisionState.model_validate(
        {
            "issue_id": record.issue_id,
            "initiator": record.initiator,
            "team": record.team,
            "period_start": _as_utc(record.period_start),
            "period_end": _as_utc(record.period_end),
            "current_statuses": record.current_statuses,
            "status_history": record.status_history,
            "reversibility": record.reversibility,
            "resolution": record.resolution,
            "version": record.version,
        }
    )


class DecisionStateStore:
    """Data access for ``IssueDecisionState``; holds no policy."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, issue_id: str) -> IssueDecisionState | None:
        """Return the live decision for ``issue_id``, or ``None``."""
        result = await self.session.execute(
            select(IssueDecisionStateRecord).where(IssueDecisionStateRecord.issue_id == issue_id)
        )
        record = result.scalar_one_or_none()
        return to_domain(record) if record is not None else None

    async def insert(self, state: IssueDecisionState) -> None:
        """
        Persist a newly opened decision.

        Raises:
            DecisionConflictError: If a decision already exists for the issue.
                The session is rolled back.
        """
        statuses = _dump_statuses(state)
        record = IssueDecisionStateRecord(
            issue_id=state.issue_id,
            initiator=state.initiator,
            team=state.team,
            period_start=state.period_start,
            period_end=state.period_end,
            current_statuses=statuses["current_statuses"],
            status_history=statuses["status_history"],
            reversibility=state.reversibility.value,
            resolution=state.resolution.value,
            version=state.version,
        )
        self.session.add(record)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info(
                "Decision already exists",
                extra={"issue_id": state.issue_id},
            )
            raise DecisionConflictError(
                state.issue_id, f"A decision is already open for {state.issue_id}"
            ) from e

        logger.info(
            "Opened decision",
            extra={
                "issue_id": state.issue_id,
                "initiator": state.initiator,
                "resolution": state.resolution.value,
                "period_end": state.period_end.isoformat(),
            },
        )

    async def update(
        self,
        state: IssueDecisionState,
        *,
        expected_version: int,
    ) -> IssueDecisionState:
        """
        Replace the stored decision if it is still at ``expected_version``.

        Returns:
            ``state`` with its version bumped to ``expected_version + 1``.

        Raises:
            DecisionConflictError: If the stored version moved on (or the
                decision vanished) since it was read.
        """
        new_version = expected_version + 1
        statuses = _dump_statuses(state)
        result = await self.session.execute(
            update(IssueDecisionStateRecord)
            .where(
                IssueDecisionStateRecord.issue_id == state.issue_id,
                IssueDecisionStateRecord.version == expected_version,
            )
            .values(
                period_start=state.period_start,
                period_end=state.period_end,
                current_statuses=statuses["current_statuses"],
                status_history=statuses["status_history"],
                reversibility=state.reversibility.value,
                resolution=state.resolution.value,
                version=new_version,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Concurrent decision update detected",
                extra={"issue_id": state.issue_id, "expected_version": expected_version},
            )
            raise DecisionConflictError(
                state.issue_id,
                f"Decision for {state.issue_id} changed concurrently; retry the command",
            )

        logger.debug(
            "Updated decision",
            extra={"issue_id": state.issue_id, "version": new_version},
        )
        return state.model_copy(update={"version": new_version})
