"""Webhook signature verification for GitHub deliveries.

GitHub signs every delivery with HMAC-SHA256 over the raw body.
Reference: https://docs.github.com/en/webhooks/using-webhooks/validating-webhook-deliveries
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from decision_bot.config import Settings, get_settings

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails."""


@dataclass(frozen=True)
class VerifiedDelivery:
    """A webhook body whose origin has been checked."""

    body: bytes
    event_type: str
    delivery_id: str


def verify_github_signature(
    payload: bytes,
    signature_header: str | None,
    secret: str,
) -> bool:
    """
    Check an ``X-Hub-Signature-256`` header against the payload.

    Raises:
        WebhookSignatureError: If the header is missing, malformed, or wrong
    """
    if not signature_header:
        raise WebhookSignatureError("Missing X-Hub-Signature-256 header")
    if not signature_header.startswith(SIGNATURE_PREFIX):
        raise WebhookSignatureError("Invalid signature format")

    received = signature_header[len(SIGNATURE_PREFIX):]
    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

    if not hmac.compare_digest(received, expected):
        raise WebhookSignatureError("Signature mismatch")
    return True


async def get_verified_delivery(
    request: Request,
    x_hub_signature_256: Annotated[str | None, Header()] = None,
    x_github_event: Annotated[str | None, Header()] = None,
    x_github_delivery: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> VerifiedDelivery:
    """
    FastAPI dependency returning a verified GitHub delivery.

    Raises:
        HTTPException 400: If the event or delivery header is missing
        HTTPException 401: If the signature does not verify
    """
    for header_name, value in (
        ("X-GitHub-Event", x_github_event),
        ("X-GitHub-Delivery", x_github_delivery),
    ):
        if not value:
            logger.warning("Missing webhook header", extra={"header": header_name})
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Missing {header_name} header",
            )

    body = await request.body()
    delivery = VerifiedDelivery(
        body=body,
        event_type=x_github_event,
        delivery_id=x_github_delivery,
    )

    if not settings.github_webhook_secret:
        if settings.is_production:
            logger.error("Webhook secret not configured in production")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server configuration error",
            )
        logger.warning("Webhook signature verification skipped (no secret configured)")
        return delivery

    try:
        verify_github_signature(body, x_hub_signature_256, settings.github_webhook_secret)
    except WebhookSignatureError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"delivery_id": x_github_delivery, "error": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Signature verification failed: {e}",
        )
    return delivery
