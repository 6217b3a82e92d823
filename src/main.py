"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from src.config import settings
from src.db.alert_state import AlertStateStore
from src.db.models import Base
from src.db.session import AsyncSessionLocal, engine
from src.db.subscriptions import PushSubscriptionStore
from src.detect.alert_matcher import AlertMatcher, TriggerComparison
from src.ingest.scraper_client import ScrapeRequestClient
from src.notify.dispatcher import NotificationDispatcher
from src.notify.emailer import EmailNotifier
from src.notify.push import PushNotifier
from src.worker.tasks import AlertEvaluationRunner
from src.api.routes import alerts, price_updates, products, push_subscriptions, scrape_requests

# Configure structured logging
from src.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting price alert service...")

    # Initialize database
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Transport clients are built once and shared by every evaluation
    email_notifier = EmailNotifier.from_settings(settings)
    push_notifier = PushNotifier.from_settings(settings)
    if not email_notifier.configured:
        logger.warning("SMTP not configured; email notifications will fail")
    if not push_notifier.configured:
        logger.warning("VAPID keys not configured; push notifications are disabled")

    subscription_store = PushSubscriptionStore(AsyncSessionLocal)
    alert_state_store = AlertStateStore(AsyncSessionLocal)
    comparison = TriggerComparison(settings.alert_trigger_comparison)
    logger.info(f"Alert trigger comparison: {comparison.value}")

    app.state.subscription_store = subscription_store
    app.state.alert_state_store = alert_state_store
    app.state.scrape_client = ScrapeRequestClient.from_settings(settings)
    app.state.evaluation_runner = AlertEvaluationRunner(
        matcher=AlertMatcher(AsyncSessionLocal, comparison),
        dispatcher=NotificationDispatcher(email_notifier, push_notifier, subscription_store),
        state_store=alert_state_store,
        claim_before_dispatch=settings.alert_claim_before_dispatch,
    )

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.evaluation_runner.close()
    await app.state.scrape_client.close()
    await engine.dispose()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Price Alert Service",
    description="Track product prices and notify users when a target is reached",
    version="0.1.0",
    lifespan=lifespan,
)

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", "/health"],
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

# Include API routes
app.include_router(products.router)
app.include_router(price_updates.router)
app.include_router(push_subscriptions.router)
app.include_router(scrape_requests.router)
app.include_router(alerts.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
