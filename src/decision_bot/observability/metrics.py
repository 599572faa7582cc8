from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter
from prometheus_client.exposition import generate_latest


@dataclass(frozen=True)
class PrometheusMetrics:
    registry: CollectorRegistry
    webhook_deliveries_total: Counter
    decision_commands_total: Counter
    decisions_opened_total: Counter
    finalize_jobs_total: Counter
    scheduled_jobs_total: Counter
    celery_tasks_total: Counter


_REGISTRY = CollectorRegistry(auto_describe=True)

METRICS = PrometheusMetrics(
    registry=_REGISTRY,
    webhook_deliveries_total=Counter(
        "decision_bot_webhook_deliveries_total",
        "Webhook deliveries by event type and outcome",
        labelnames=("event", "status"),
        registry=_REGISTRY,
    ),
    decision_commands_total=Counter(
        "decision_bot_decision_commands_total",
        "Decision commands handled by resolution and outcome",
        labelnames=("resolution", "outcome"),
        registry=_REGISTRY,
    ),
    decisions_opened_total=Counter(
        "decision_bot_decisions_opened_total",
        "Decisions opened by initial resolution",
        labelnames=("resolution",),
        registry=_REGISTRY,
    ),
    finalize_jobs_total=Counter(
        "decision_bot_finalize_jobs_total",
        "Decision finalize jobs by outcome",
        labelnames=("outcome",),
        registry=_REGISTRY,
    ),
    scheduled_jobs_total=Counter(
        "decision_bot_scheduled_jobs_total",
        "Scheduled jobs run by name and status",
        labelnames=("name", "status"),
        registry=_REGISTRY,
    ),
    celery_tasks_total=Counter(
        "decision_bot_celery_tasks_total",
        "Celery task outcomes",
        labelnames=("task", "status"),
        registry=_REGISTRY,
    ),
)


def render_prometheus() -> tuple[bytes, str]:
    return generate_latest(METRICS.registry), CONTENT_TYPE_LATEST
