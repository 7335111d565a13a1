"""FastAPI application entry point with lifespan management."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api import (
    admin_router,
    bookings_router,
    clients_router,
    health_router,
    payments_router,
)
from src.api.middleware import RequestContextMiddleware
from src.core.config import settings
from src.core.database import create_engine, create_session_factory
from src.core.logging import configure_logging, get_logger
from src.core.redis import create_breaker_redis, create_redis_pool
from src.core.sentry import init_sentry
from src.notifications import Notifier, SmtpMailer
from src.payments import CircuitBreaker, StripeGateway
from src.payments.gateway import CLIENT_ERRORS

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle resources.

    Startup:
        - Configure structured logging and Sentry
        - Create database engine and session factory
        - Establish Redis connections (health pool, breaker state)
        - Build the SMTP notifier and, when a key is set, the Stripe gateway

    Shutdown:
        - Drain in-flight notifications
        - Close Redis connections
        - Dispose database engine
    """
    configure_logging()
    logger.info("Starting application", environment=settings.environment)

    init_sentry()

    app.state.db_engine = create_engine()
    app.state.async_session = create_session_factory(app.state.db_engine)
    logger.info("Database engine created")

    app.state.redis = await create_redis_pool()
    app.state.breaker_redis = create_breaker_redis()
    logger.info("Redis pool created")

    mailer = SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        from_name=settings.email_from_name or settings.studio_name,
        secure=settings.smtp_secure,
        timeout=settings.smtp_timeout,
        breaker=CircuitBreaker("smtp", app.state.breaker_redis),
    )
    await mailer.verify()
    app.state.notifier = Notifier(mailer, studio_name=settings.studio_name)

    app.state.payment_gateway = None
    if settings.stripe_secret_key:
        app.state.payment_gateway = StripeGateway(
            settings.stripe_secret_key,
            currency=settings.stripe_currency,
            breaker=CircuitBreaker(
                "stripe",
                app.state.breaker_redis,
                excluded_exceptions=CLIENT_ERRORS,
            ),
        )
        logger.info("Stripe gateway configured", currency=settings.stripe_currency)
    else:
        logger.warning("stripe_not_configured")

    yield

    logger.info("Shutting down application")

    await app.state.notifier.aclose()

    await app.state.redis.aclose()
    app.state.breaker_redis.close()
    logger.info("Redis pool closed")

    await app.state.db_engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title="Cocoa Code Bookings",
    description="Booking, approval and payment backend for a web studio",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestContextMiddleware)

app.include_router(health_router)
app.include_router(bookings_router)
app.include_router(clients_router)
app.include_router(payments_router)
app.include_router(admin_router)
