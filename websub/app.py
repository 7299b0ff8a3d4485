"""FastAPI application for the WebSub subscriber."""

# init dotenv
from dotenv import load_dotenv
load_dotenv(override=True)

from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Response
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel

from websub import __version__
from websub.core.fastapi import global_exception_handler, validation_exception_handler
from websub.discovery.service import DiscoveryService
from websub.metrics import metrics
from websub.subscriptions.config import SubscriberSettings, load_subscriber_settings
from websub.subscriptions.content import ContentAuthenticator, ContentConsumer, LoggingContentConsumer
from websub.subscriptions.database import DatabaseService
from websub.subscriptions.hub import HubClient
from websub.subscriptions.routes import router as subscriber_router
from websub.subscriptions.service import CallbackURLBuilder, SubscriptionService
from websub.subscriptions.verification import VerificationHandler

logger = structlog.get_logger("websub")


def configure_logging() -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


def create_app(
    settings: SubscriberSettings | None = None,
    database: DatabaseService | None = None,
    http_client: httpx.AsyncClient | None = None,
    consumer: ContentConsumer | None = None,
) -> FastAPI:
    """
    Build the subscriber application.

    Args:
        settings: immutable settings; loaded from the environment when omitted
        database: subscription store; built from ``settings.database_dsn`` when omitted
        http_client: client for topic and hub requests; owned by the app when omitted
        consumer: receiver of authenticated notification bodies

    Returns:
        FastAPI: the application with every collaborator wired onto ``app.state``
    """
    settings = settings or load_subscriber_settings()
    database = database or DatabaseService(settings.database_dsn)
    owns_client = http_client is None
    http_client = http_client or httpx.AsyncClient(
        timeout=settings.http_timeout,
        headers={"User-Agent": settings.user_agent},
    )
    consumer = consumer or LoggingContentConsumer()

    @asynccontextmanager
    async def lifespan(app):
        """FastAPI lifespan context manager."""
        # Startup
        configure_logging()

        logger = structlog.get_logger("websub")
        logger.info("Starting WebSub Subscriber", version=__version__, host=settings.host)

        database.create_tables()

        yield

        # Shutdown
        logger.info("Shutting down WebSub Subscriber")
        if owns_client:
            await http_client.aclose()

    app = FastAPI(
        title="WebSub Subscriber",
        description="Discovers hubs, subscribes to topics and receives their content",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    callbacks = CallbackURLBuilder(settings)
    app.state.settings = settings
    app.state.database = database
    app.state.http_client = http_client
    app.state.callbacks = callbacks
    app.state.subscription_service = SubscriptionService(
        database=database,
        discovery=DiscoveryService(http_client),
        hub_client=HubClient(http_client),
        callbacks=callbacks,
    )
    app.state.verification_handler = VerificationHandler(database)
    app.state.content_authenticator = ContentAuthenticator(database, consumer)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(subscriber_router, prefix=settings.path_prefix.rstrip("/"))

    @app.get("/health/", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint for readiness probes."""
        return HealthResponse(status="up", version=__version__)

    @app.get("/metrics")
    async def get_prometheus_metrics():
        """Get Prometheus-style metrics for monitoring."""
        return Response(content=metrics.get_metrics_text(), media_type="text/plain")

    return app


app = create_app()
