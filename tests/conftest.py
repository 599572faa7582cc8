"""Test configuration and fixtures."""

from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from decision_bot.config import get_settings
from decision_bot.main import create_app


@pytest.fixture(autouse=True)
def _settings_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", "")
    monkeypatch.setenv("BOT_USERNAME", "rustbot")
    monkeypatch.setenv("DECISION_TEAM", "rust-lang/lang")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create test client for API tests."""
    app = create_app()
    with TestClient(app) as c:
        yield c


@pytest.fixture
def sample_issue_payload() -> dict[str, Any]:
    """Issue object for a pull request as embedded in webhook payloads."""
    return {
        "number": 12,
        "title": "Stabilize let-else",
        "state": "open",
        "url": "https://api.github.com/repos/rust-lang/rfcs/issues/12",
        "html_url": "https://github.com/rust-lang/rfcs/pull/12",
        "repository_url": "https://api.github.com/repos/rust-lang/rfcs",
        "user": {"login": "grace", "id": 3},
        "pull_request": {"url": "https://api.github.com/repos/rust-lang/rfcs/pulls/12"},
    }


@pytest.fixture
def sample_issue_comment_payload(sample_issue_payload: dict[str, Any]) -> dict[str, Any]:
    """Sample GitHub issue_comment webhook payload invoking the bot."""
    return {
        "action": "created",
        "issue": sample_issue_payload,
        "comment": {
            "id": 1001,
            "body": "Looks good to me.\n\n@rustbot merge",
            "user": {"login": "alan", "id": 1},
            "html_url": "https://github.com/rust-lang/rfcs/pull/12#issuecomment-1001",
        },
        "repository": {
            "name": "rfcs",
            "full_name": "rust-lang/rfcs",
            "url": "https://api.github.com/repos/rust-lang/rfcs",
        },
        "sender": {"login": "alan", "id": 1},
    }
