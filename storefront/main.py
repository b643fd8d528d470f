import logging
from contextlib import asynccontextmanager

import httpx
from aiokafka import AIOKafkaProducer
from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import make_asgi_app

from gateways.registry import build_registry
from shared.tracing import setup_tracing
from storefront import models  # noqa: F401  (registers tables on Base.metadata)
from storefront.config import settings
from storefront.database import AsyncSessionLocal, Base, engine
from storefront.errors import register_exception_handlers
from storefront.middleware.metrics import MetricsMiddleware
from storefront.middleware.request_id import RequestIDMiddleware
from storefront.routers import payments
from storefront.services.affiliates import AffiliateCommissions
from storefront.services.notifications import KafkaNotificationSink, LoggingNotificationSink
from storefront.services.orchestrator import PaymentOrchestrator
from storefront.utils.logging import setup_logging

setup_logging(settings.log_level, "storefront", settings.environment)
logger = logging.getLogger(__name__)

setup_tracing("storefront", settings.otlp_endpoint, settings.environment)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up, creating database tables")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

    http_client = httpx.AsyncClient(timeout=settings.gateway_http_timeout)
    registry = build_registry(http_client, settings.gateway_settings())

    producer = None
    if settings.kafka_bootstrap_servers:
        producer = AIOKafkaProducer(
            bootstrap_servers=settings.kafka_bootstrap_servers,
            enable_idempotence=True,
        )
        await producer.start()
        notifier = KafkaNotificationSink(producer, settings.payment_completed_topic)
    else:
        notifier = LoggingNotificationSink()

    app.state.orchestrator = PaymentOrchestrator(
        registry,
        AsyncSessionLocal,
        notifier,
        affiliates=AffiliateCommissions(AsyncSessionLocal),
        default_country=settings.default_country,
    )
    logger.info(
        "Startup complete",
        extra={"environment": settings.environment, "payment_methods": [a.method_id for a in registry]},
    )

    yield

    if producer is not None:
        await producer.stop()
    await http_client.aclose()
    await engine.dispose()
    logger.info("Shutting down")


app = FastAPI(
    title="Storefront Payments",
    description="Multi-gateway payment initialisation and webhook reconciliation",
    version="1.0.0",
    lifespan=lifespan,
)

FastAPIInstrumentor.instrument_app(app)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)
register_exception_handlers(app)
app.include_router(payments.router, prefix="/payments", tags=["payments"])

# Expose Prometheus metrics at /metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
