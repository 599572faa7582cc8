"""Pydantic schemas for the decision process.

The enum values are the storage and wire representation: they are written
into the database and into scheduled job payloads, so they must not change.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Resolution(str, Enum):
    """Outcome a team member votes for."""

    MERGE = "merge"
    HOLD = "hold"


class Reversibility(str, Enum):
    """Whether the effect of a decision can be undone."""

    REVERSIBLE = "reversible"
    IRREVERSIBLE = "irreversible"


class UserStatus(BaseModel):
    """One team member's vote, as cast by a single comment."""

    model_config = ConfigDict(frozen=True)

    comment_id: str
    text: str
    resolution: Resolution
    reversibility: Reversibility


class IssueDecisionState(BaseModel):
    """The live decision for one issue.

    ``current_statuses`` has an entry for every member of the governing team
    (``None`` until they vote). ``status_history`` holds superseded votes in
    the order they were cast and never contains the member's current vote.
    """

    issue_id: str
    initiator: str
    team: str
    period_start: datetime
    period_end: datetime
    current_statuses: dict[str, UserStatus | None]
    status_history: dict[str, list[UserStatus]] = Field(default_factory=dict)
    reversibility: Reversibility
    resolution: Resolution
    version: int = 1


class DecisionProcessActionMetadata(BaseModel):
    """Payload of the scheduled job that finalizes a decision.

    ``issue_id`` and ``decision_version`` are absent from payloads written
    before jobs were versioned; such jobs are never treated as stale.
    """

    message: str
    issue_url: str
    status: Resolution
    issue_id: str | None = None
    decision_version: int | None = None
