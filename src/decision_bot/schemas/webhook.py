"""Response schema for the webhook endpoint."""

from typing import Literal

from pydantic import BaseModel, Field


class WebhookResponse(BaseModel):
    """Standard webhook response."""

    status: Literal["accepted", "ignored", "duplicate_ignored"]
    message: str
    commands: list[str] = Field(default_factory=list)
    delivery_id: str | None = None
