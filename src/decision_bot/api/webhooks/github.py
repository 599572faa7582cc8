"""GitHub webhook handler.

Receives ``issue_comment`` events, validates signatures, extracts ``@bot``
commands from new comments and runs them through the decision process.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from decision_bot.config import get_settings
from decision_bot.core.logging import delivery_id_ctx
from decision_bot.core.security import VerifiedDelivery, get_verified_delivery
from decision_bot.database import get_async_session, get_db_session
from decision_bot.handlers.comments import parse_error_comment
from decision_bot.handlers.decision import DecisionContext, handle_command
from decision_bot.observability.metrics import METRICS
from decision_bot.parser.command import parse_commands
from decision_bot.parser.tokenizer import ParseError
from decision_bot.schemas.github import IssueCommentEvent
from decision_bot.schemas.webhook import WebhookResponse
from decision_bot.services.decision_state_store import DecisionConflictError
from decision_bot.services.github_client import GitHubAPIError, GitHubClient
from decision_bot.services.webhook_delivery_store import WebhookDeliveryStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _ignored(event_type: str, message: str, delivery_id: str) -> WebhookResponse:
    METRICS.webhook_deliveries_total.labels(event=event_type, status="ignored").inc()
    return WebhookResponse(status="ignored", message=message, delivery_id=delivery_id)


@router.post("/github", response_model=WebhookResponse)
async def github_webhook(
    delivery: VerifiedDelivery = Depends(get_verified_delivery),
    session: AsyncSession = Depends(get_db_session),
) -> WebhookResponse:
    """
    GitHub webhook handler for issue comments.

    Flow:
    1. Verify webhook signature (done in dependency)
    2. Filter for newly created issue comments that mention the bot
    3. Record the delivery so redeliveries are ignored; the record commits
       with the request, so a failed request can be redelivered
    4. Run each command; malformed commands get an error reply. Votes this
       comment already cast on an earlier attempt are not applied twice

    Returns:
        - 200: Commands handled, or event ignored
        - 400: Invalid payload
        - 401: Invalid signature (handled by dependency)
        - 503: The decision changed concurrently, or GitHub or the database
          failed; nothing of this delivery is recorded, so a redelivery is
          processed again
    """
    event_type, delivery_id = delivery.event_type, delivery.delivery_id
    delivery_id_ctx.set(delivery_id)

    logger.info("Received GitHub webhook", extra={"event_type": event_type})

    try:
        payload = json.loads(delivery.body)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON payload", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        )

    if event_type != "issue_comment":
        return _ignored(event_type, f"Event type '{event_type}' is not processed", delivery_id)

    action = payload.get("action") if isinstance(payload, dict) else None
    if action != "created":
        return _ignored(
            event_type, f"Comment action '{action}' is not processed (only 'created')", delivery_id
        )

    try:
        event = IssueCommentEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning("Invalid issue_comment payload", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid issue_comment payload",
        )

    settings = get_settings()
    if event.user.login.lower() == settings.bot_username.lower():
        return _ignored(event_type, "Comment written by the bot itself", delivery_id)

    results = parse_commands(event.comment.body, settings.bot_username)
    if not results:
        return _ignored(event_type, "No bot commands in comment", delivery_id)

    is_new_delivery = await WebhookDeliveryStore(session).record_delivery(
        delivery_id=delivery_id,
        event_type=event_type,
        repository=event.repository.full_name,
    )
    if not is_new_delivery:
        METRICS.webhook_deliveries_total.labels(event=event_type, status="duplicate").inc()
        return WebhookResponse(
            status="duplicate_ignored",
            message="Duplicate webhook delivery ignored",
            delivery_id=delivery_id,
        )

    handled: list[str] = []
    votes_seen = 0
    try:
        async with GitHubClient() as github:
            for result in results:
                if isinstance(result, ParseError):
                    await github.post_comment(
                        event.issue, parse_error_comment(event.comment.body, result)
                    )
                    handled.append("parse_error")
                    continue

                async with get_async_session() as command_session:
                    ctx = DecisionContext.from_settings(github, command_session, settings)
                    await handle_command(ctx, event, result, occurrence=votes_seen)
                votes_seen += 1
                handled.append(result.resolution.value)
    except DecisionConflictError as e:
        METRICS.webhook_deliveries_total.labels(event=event_type, status="conflict").inc()
        logger.warning("Decision conflict", extra={"issue_id": e.issue_id, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
            headers={"Retry-After": "5"},
        )
    except (GitHubAPIError, SQLAlchemyError) as e:
        METRICS.webhook_deliveries_total.labels(event=event_type, status="error").inc()
        logger.error(
            "Failed to handle bot command",
            extra={"issue_id": event.issue.issue_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GitHub or database temporarily unavailable",
            headers={"Retry-After": "60"},
        )

    METRICS.webhook_deliveries_total.labels(event=event_type, status="accepted").inc()
    logger.info(
        "Handled bot commands",
        extra={"issue_id": event.issue.issue_id, "commands": handled},
    )
    return WebhookResponse(
        status="accepted",
        message=f"Handled {len(handled)} command(s)",
        commands=handled,
        delivery_id=delivery_id,
    )
