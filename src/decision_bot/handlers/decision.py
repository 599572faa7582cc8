"""Decision process engine.

Handles ``@bot merge`` / ``@bot hold`` votes from team members:

1. Non-members get a denial comment and nothing else happens.
2. The first vote on an issue opens a decision: every member of the
   governing team is listed without a vote, the voter's vote is recorded,
   and a finalize job is scheduled for the end of the deliberation period.
3. Later votes move the voter's previous vote into their history and
   record the new one. The period is never extended: the replacement
   finalize job is due at the original ``period_end`` (or immediately, if
   that has already passed) and carries the new decision version, which
   makes every earlier job for the issue stale.

All state and job writes are committed before the status comment is posted,
so a failed write never leaves a comment describing a state that does not
exist.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from decision_bot.config import Settings
from decision_bot.core.logging import issue_id_ctx
from decision_bot.handlers.comments import error_comment
from decision_bot.observability.metrics import METRICS
from decision_bot.parser.decision import DecisionCommand
from decision_bot.schemas.decision import (
    DecisionProcessActionMetadata,
    IssueDecisionState,
    Resolution,
    Reversibility,
    UserStatus,
)
from decision_bot.schemas.github import GitHubIssue, IssueCommentEvent
from decision_bot.services.decision_state_store import DecisionStateStore
from decision_bot.services.github_client import GitHubClient
from decision_bot.services.job_store import JobStore

logger = logging.getLogger(__name__)

DECISION_PROCESS_JOB_NAME = "decision_process_action"
DECISION_PERIOD = timedelta(days=10)
NOT_A_MEMBER_MESSAGE = "Only team members can be part of the decision process."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DecisionContext:
    """Collaborators for one command invocation."""

    github: GitHubClient
    session: AsyncSession
    team: str
    period: timedelta = DECISION_PERIOD
    clock: Callable[[], datetime] = _utcnow
    states: DecisionStateStore = field(init=False)
    jobs: JobStore = field(init=False)

    def __post_init__(self) -> None:
        self.states = DecisionStateStore(self.session)
        self.jobs = JobStore(self.session)

    @classmethod
    def from_settings(
        cls,
        github: GitHubClient,
        session: AsyncSession,
        settings: Settings,
    ) -> DecisionContext:
        return cls(
            github=github,
            session=session,
            team=settings.decision_team,
            period=timedelta(days=settings.decision_period_days),
        )


# ---------------------------------------------------------------------------
# Pure state transitions
# ---------------------------------------------------------------------------


def aggregate_resolution(current: Mapping[str, UserStatus | None]) -> Resolution:
    """A single outstanding hold holds the whole decision."""
    if any(s is not None and s.resolution == Resolution.HOLD for s in current.values()):
        return Resolution.HOLD
    return Resolution.MERGE


def aggregate_reversibility(current: Mapping[str, UserStatus | None]) -> Reversibility:
    if any(
        s is not None and s.reversibility == Reversibility.IRREVERSIBLE
        for s in current.values()
    ):
        return Reversibility.IRREVERSIBLE
    return Reversibility.REVERSIBLE


def new_decision_state(
    *,
    issue_id: str,
    initiator: str,
    team: str,
    members: Sequence[str],
    vote: UserStatus,
    now: datetime,
    period: timedelta = DECISION_PERIOD,
) -> IssueDecisionState:
    """Open a decision with ``initiator``'s vote and everyone else undecided."""
    # Elapsed-time arithmetic: a local-time clock must not shift the window across DST
    start = now.astimezone(timezone.utc)
    current: dict[str, UserStatus | None] = {member: None for member in members}
    current[initiator] = vote
    current = dict(sorted(current.items()))

    return IssueDecisionState(
        issue_id=issue_id,
        initiator=initiator,
        team=team,
        period_start=start,
        period_end=start + period,
        current_statuses=current,
        status_history={},
        reversibility=aggregate_reversibility(current),
        resolution=aggregate_resolution(current),
    )


def apply_vote(state: IssueDecisionState, user: str, vote: UserStatus) -> IssueDecisionState:
    """
    Return ``state`` with ``vote`` as ``user``'s current vote.

    A previous current vote is appended to the user's history. The input
    state is not modified.
    """
    current = dict(state.current_statuses)
    history = {member: list(votes) for member, votes in state.status_history.items()}

    previous = current.get(user)
    if previous is not None:
        history[user] = [*history.get(user, []), previous]
    current[user] = vote

    current = dict(sorted(current.items()))
    return state.model_copy(
        update={
            "current_statuses": current,
            "status_history": dict(sorted(history.items())),
            "resolution": aggregate_resolution(current),
            "reversibility": aggregate_reversibility(current),
        }
    )


def votes_from_comment(state: IssueDecisionState, user: str, comment_id: str) -> int:
    """Number of ``user``'s votes, past and current, cast by comment ``comment_id``."""
    votes = [*state.status_history.get(user, ()), state.current_statuses.get(user)]
    return sum(1 for vote in votes if vote is not None and vote.comment_id == comment_id)


def finalize_due_at(state: IssueDecisionState, now: datetime) -> datetime:
    return max(state.period_end, now)


def build_action_metadata(
    issue: GitHubIssue,
    state: IssueDecisionState,
) -> DecisionProcessActionMetadata:
    return DecisionProcessActionMetadata(
        message=f"Decision on {state.issue_id} reached: {state.resolution.value}",
        issue_url=issue.url,
        status=state.resolution,
        issue_id=state.issue_id,
        decision_version=state.version,
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def build_status_comment(
    history: Mapping[str, Sequence[UserStatus]],
    current: Mapping[str, UserStatus | None],
) -> str:
    """
    Render the vote table.

    One row per member in either mapping, sorted by login: superseded votes
    struck through in the order they were cast, then the current vote in
    bold, or an empty cell for a member who has not voted.
    """
    comment = "| Team member | State |\n|-------------|-------|"
    for user in sorted(set(history) | set(current)):
        row = f"\n| {user} |"
        for past in history.get(user, ()):
            row += f" ~~{past.resolution.value}~~ "
        vote = current.get(user)
        if vote is not None:
            row += f" **{vote.resolution.value}** |"
        else:
            row += " |"
        comment += row
    return comment


def render_decision(state: IssueDecisionState) -> str:
    table = build_status_comment(state.status_history, state.current_statuses)
    return (
        f"{table}\n\n"
        f"Current resolution: **{state.resolution.value}** ({state.reversibility.value}). "
        f"The decision is finalized at {state.period_end:%Y-%m-%d %H:%M} UTC."
    )


# ---------------------------------------------------------------------------
# Command handling
# ---------------------------------------------------------------------------


async def handle_command(
    ctx: DecisionContext,
    event: IssueCommentEvent,
    cmd: DecisionCommand,
    *,
    occurrence: int = 0,
) -> None:
    """
    Apply a decision command from ``event``.

    ``occurrence`` is the index of ``cmd`` among the decision commands of
    the comment. A redelivered comment whose first votes were already
    recorded on an earlier attempt only applies the remaining ones.

    Raises:
        DecisionConflictError: If another request opened or changed the
            decision concurrently
        GitHubAPIError: If GitHub fails after authorization succeeded
        SQLAlchemyError: If persistence fails
    """
    issue = event.issue
    user = event.user.login
    issue_id_ctx.set(issue.issue_id)

    if not await _is_team_member(ctx, user):
        METRICS.decision_commands_total.labels(
            resolution=cmd.resolution.value, outcome="denied"
        ).inc()
        await ctx.github.post_comment(issue, error_comment(NOT_A_MEMBER_MESSAGE))
        return

    vote = UserStatus(
        comment_id=str(event.comment.id),
        text=event.comment.body,
        resolution=cmd.resolution,
        reversibility=cmd.reversibility,
    )

    state = await ctx.states.get(issue.issue_id)
    if state is not None and occurrence < votes_from_comment(state, user, vote.comment_id):
        METRICS.decision_commands_total.labels(
            resolution=cmd.resolution.value, outcome="already_recorded"
        ).inc()
        logger.info(
            "Vote already recorded for this comment; skipping",
            extra={"user": user, "comment_id": vote.comment_id, "occurrence": occurrence},
        )
        return

    if state is None:
        state = await _open_decision(ctx, issue, user, vote)
        outcome = "opened"
    else:
        state = await _record_vote(ctx, issue, state, user, vote)
        outcome = "voted"

    METRICS.decision_commands_total.labels(resolution=cmd.resolution.value, outcome=outcome).inc()
    await ctx.github.post_comment(issue, render_decision(state))


async def _is_team_member(ctx: DecisionContext, user: str) -> bool:
    try:
        return await ctx.github.is_team_member(user, ctx.team)
    except Exception as e:
        logger.warning(
            "Team membership check failed; treating user as non-member",
            extra={"user": user, "team": ctx.team, "error": str(e)},
        )
        return False


async def _open_decision(
    ctx: DecisionContext,
    issue: GitHubIssue,
    user: str,
    vote: UserStatus,
) -> IssueDecisionState:
    members = await ctx.github.get_team_members(ctx.team)
    state = new_decision_state(
        issue_id=issue.issue_id,
        initiator=user,
        team=ctx.team,
        members=members,
        vote=vote,
        now=ctx.clock(),
        period=ctx.period,
    )

    try:
        await ctx.states.insert(state)
        await _schedule_finalize(ctx, issue, state, due_at=state.period_end)
        await ctx.session.commit()
    except Exception:
        await ctx.session.rollback()
        raise

    METRICS.decisions_opened_total.labels(resolution=state.resolution.value).inc()
    return state


async def _record_vote(
    ctx: DecisionContext,
    issue: GitHubIssue,
    state: IssueDecisionState,
    user: str,
    vote: UserStatus,
) -> IssueDecisionState:
    updated = apply_vote(state, user, vote)

    try:
        saved = await ctx.states.update(updated, expected_version=state.version)
        await _schedule_finalize(ctx, issue, saved, due_at=finalize_due_at(saved, ctx.clock()))
        await ctx.session.commit()
    except Exception:
        await ctx.session.rollback()
        raise

    logger.info(
        "Recorded vote",
        extra={
            "issue_id": saved.issue_id,
            "user": user,
            "vote": vote.resolution.value,
            "resolution": saved.resolution.value,
            "version": saved.version,
        },
    )
    return saved


async def _schedule_finalize(
    ctx: DecisionContext,
    issue: GitHubIssue,
    state: IssueDecisionState,
    *,
    due_at: datetime,
) -> None:
    metadata = build_action_metadata(issue, state)
    await ctx.jobs.insert(
        DECISION_PROCESS_JOB_NAME,
        due_at,
        metadata.model_dump(mode="json", exclude_none=True),
    )
