"""SQLAlchemy models for decision states and scheduled jobs."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from decision_bot.models.base import Base


class IssueDecisionStateRecord(Base):
    """
    The live decision for one issue.

    ``issue_id`` is unique: it is the only guard against two concurrent
    requests both opening a decision on the same issue. ``version`` is
    bumped by every update and compared on write.
    """

    __tablename__ = "issue_decision_states"

    issue_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    initiator: Mapped[str] = mapped_column(String(255), nullable=False)
    team: Mapped[str] = mapped_column(String(255), nullable=False)

    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # {login: UserStatus | null} and {login: [UserStatus, ...]}
    current_statuses: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    status_history: Mapped[dict[str, Any]] = mapped_column(nullable=False)

    reversibility: Mapped[str] = mapped_column(String(32), nullable=False)
    resolution: Mapped[str] = mapped_column(String(32), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<IssueDecisionStateRecord(issue_id={self.issue_id}, "
            f"resolution={self.resolution}, version={self.version})>"
        )


class ScheduledJob(Base):
    """A generic delayed job, routed by ``name`` when ``due_at`` has passed."""

    __tablename__ = "scheduled_jobs"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", nullable=False)

    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (Index("ix_scheduled_jobs_pending_due", "executed_at", "due_at"),)

    def __repr__(self) -> str:
        return f"<ScheduledJob(id={self.id}, name={self.name}, due_at={self.due_at})>"
