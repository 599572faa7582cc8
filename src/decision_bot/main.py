"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from decision_bot import __version__
from decision_bot.api.health import router as health_router
from decision_bot.api.metrics import router as metrics_router
from decision_bot.api.webhooks.github import router as github_router
from decision_bot.config import get_settings
from decision_bot.core.logging import setup_logging
from decision_bot.database import close_database

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup/shutdown events."""
    setup_logging()
    settings = get_settings()
    logger.info(
        "Decision bot starting",
        extra={
            "version": __version__,
            "environment": settings.environment,
            "bot_username": settings.bot_username,
            "decision_team": settings.decision_team,
        },
    )

    yield

    logger.info("Decision bot shutting down")
    await close_database()


def create_app() -> FastAPI:
    """
    Application factory for creating the FastAPI app.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="Decision Bot",
        description="Team decision process for GitHub issues and pull requests",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(github_router)

    @app.get("/")
    async def root() -> dict:
        return {"name": "Decision Bot", "version": __version__}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "decision_bot.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
