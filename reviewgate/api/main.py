from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from reviewgate.api.routes import app as app_endpoints
from reviewgate.api.routes import reviews as review_endpoints
from reviewgate.api.routes import webhooks as webhook_endpoints
from reviewgate.api.handlers.exception_handlers import (
    review_gate_exception_handler,
    unprocessable_entity_exception_handler,
)

from reviewgate.config.db import create_db_and_tables
from reviewgate.config.settings import DATABASE_URL, NOTIFY_WEBHOOK_URL
from reviewgate.core.exceptions import ReviewGateError
from reviewgate.core.orchestrator import get_orchestrator
from reviewgate.events.dispatcher import get_dispatcher
from reviewgate.events.notifier import get_notifier
from reviewgate.integrations.notification_webhook import WebhookNotificationSink
from reviewgate.scheduler.discovery_poller import DiscoveryPoller
from reviewgate.utils.logger import logger, setup_logger

setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    On startup it builds the orchestrator (and with it the AI client, the
    dispatcher and the circuit breaker), registers notification sinks and
    starts the discovery poller. On shutdown it stops the poller and drains
    the in-process workers.
    """
    logger.info("Starting up...")
    if DATABASE_URL.startswith("sqlite"):
        create_db_and_tables()

    orchestrator = get_orchestrator()

    sink = None
    if NOTIFY_WEBHOOK_URL:
        sink = WebhookNotificationSink(NOTIFY_WEBHOOK_URL)
        get_notifier().subscribe(sink)

    poller = DiscoveryPoller(orchestrator=orchestrator, source=orchestrator.source)
    if poller.enabled:
        await poller.start()

    yield

    logger.info("Shutting down...")
    await poller.stop()
    if sink is not None:
        get_notifier().unsubscribe(sink)
    get_dispatcher().shutdown(wait=True)


app = FastAPI(
    title="ReviewGate",
    description="Merge request review orchestration for GitLab",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_exception_handler(RequestValidationError, unprocessable_entity_exception_handler)
app.add_exception_handler(ReviewGateError, review_gate_exception_handler)

app.include_router(app_endpoints.router, tags=["general"])
app.include_router(review_endpoints.router, prefix="/api/reviews", tags=["reviews"])
app.include_router(webhook_endpoints.router, prefix="/api/webhook", tags=["webhooks"])
