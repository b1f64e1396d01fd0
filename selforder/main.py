import asyncio
import logging
from contextlib import asynccontextmanager

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from selforder import models  # noqa: F401  registers tables with Base.metadata
from selforder.config import settings
from selforder.database import AsyncSessionLocal, Base, engine
from selforder.middleware.metrics import MetricsMiddleware
from selforder.middleware.request_id import RequestIDMiddleware
from selforder.routers import menu, orders, table
from selforder.routers.deps import http_error_with_cookies
from selforder.services.catalog import seed_catalog
from selforder.services.kafka import OrderEventPublisher, run_consumer, stop_consumer_task
from selforder.services.order_stream import OrderStreamHub
from selforder.store import BackingStore
from selforder.tracing import setup_tracing
from selforder.utils.logging import setup_logging

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

setup_tracing("selforder", settings.otlp_endpoint)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up, creating database tables")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

    if settings.seed_catalog:
        await seed_catalog(AsyncSessionLocal)

    store = BackingStore(AsyncSessionLocal)
    hub = OrderStreamHub(store)
    store.add_listener(hub.handle_event)
    app.state.store = store
    app.state.hub = hub
    app.state.submissions_in_flight = set()

    producer = consumer = consumer_task = None
    if settings.kafka_bootstrap_servers:
        producer = AIOKafkaProducer(
            bootstrap_servers=settings.kafka_bootstrap_servers,
            enable_idempotence=True,
        )
        await producer.start()
        store.add_listener(OrderEventPublisher(producer, settings.order_events_topic).publish)

        consumer = AIOKafkaConsumer(
            settings.order_status_topic,
            bootstrap_servers=settings.kafka_bootstrap_servers,
            group_id=settings.kafka_consumer_group,
            enable_auto_commit=True,
            auto_offset_reset="latest",
        )
        await consumer.start()
        consumer_task = asyncio.create_task(run_consumer(consumer, hub))
        logger.info(
            "Kafka order events enabled",
            extra={
                "bootstrap_servers": settings.kafka_bootstrap_servers,
                "consumer_group": settings.kafka_consumer_group,
            },
        )
    logger.info("Startup complete")

    yield

    if consumer_task is not None:
        await stop_consumer_task(consumer_task)
    if consumer is not None:
        await consumer.stop()
    if producer is not None:
        await producer.stop()
    await engine.dispose()
    logger.info("Shutting down")


app = FastAPI(
    title="Table Self-Ordering",
    description="Menu, cart submission, live order history and table assignment",
    version="1.0.0",
    lifespan=lifespan,
)

FastAPIInstrumentor.instrument_app(app)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_exception_handler(StarletteHTTPException, http_error_with_cookies)
app.include_router(menu.router, prefix="/menu", tags=["menu"])
app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(table.router, prefix="/table", tags=["table"])

# Expose Prometheus metrics at /metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
