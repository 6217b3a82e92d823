"""FastAPI dependencies."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.alert_state import AlertStateStore
from src.db.session import get_db
from src.db.subscriptions import PushSubscriptionStore
from src.ingest.scraper_client import ScrapeRequestClient
from src.worker.tasks import AlertEvaluationRunner


async def get_database() -> AsyncSession:
    """Dependency for database session."""
    async for session in get_db():
        yield session
        break  # Only yield once, as FastAPI handles the session lifecycle


# Long-lived services are built once in the app lifespan and kept on app.state.

def get_evaluation_runner(request: Request) -> AlertEvaluationRunner:
    return request.app.state.evaluation_runner


def get_alert_state_store(request: Request) -> AlertStateStore:
    return request.app.state.alert_state_store


def get_subscription_store(request: Request) -> PushSubscriptionStore:
    return request.app.state.subscription_store


def get_scrape_client(request: Request) -> ScrapeRequestClient:
    return request.app.state.scrape_client
