from __future__ import annotations

from fastapi.testclient import TestClient

from decision_bot.main import create_app


def test_health_endpoints() -> None:
    client = TestClient(create_app())

    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"

    assert client.get("/health/live").json() == {"alive": True}


def test_metrics_endpoint_returns_prometheus_text() -> None:
    client = TestClient(create_app())

    res = client.get("/metrics")
    assert res.status_code == 200
    assert "text/plain" in (res.headers.get("content-type") or "")
    assert "decision_bot_webhook_deliveries_total" in res.text
    assert "decision_bot_decision_commands_total" in res.text
