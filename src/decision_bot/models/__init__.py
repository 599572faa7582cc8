from decision_bot.models.base import Base
from decision_bot.models.decision import IssueDecisionStateRecord, ScheduledJob
from decision_bot.models.webhook_deliveries import WebhookDelivery

__all__ = ["Base", "IssueDecisionStateRecord", "ScheduledJob", "WebhookDelivery"]
