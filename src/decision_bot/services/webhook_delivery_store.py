from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from decision_bot.models.webhook_deliveries import WebhookDelivery

logger = logging.getLogger(__name__)


class WebhookDeliveryStore:
    """Remembers processed GitHub deliveries so redeliveries do not vote twice."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record_delivery(
        self,
        *,
        delivery_id: str,
        event_type: str,
        repository: str | None,
    ) -> bool:
        """
        Record a delivery; returns False if it was seen before.

        The row is only flushed. It commits with the request session, so a
        request that fails leaves no record and a redelivery is processed.
        """
        self.session.add(
            WebhookDelivery(
                delivery_id=delivery_id,
                event_type=event_type,
                repository=repository,
            )
        )
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            logger.info(
                "Webhook delivery duplicate ignored",
                extra={
                    "delivery_id": delivery_id,
                    "event_type": event_type,
                    "repository": repository,
                },
            )
            return False
        return True
