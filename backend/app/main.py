import logging
import os
import platform
import socket
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Depends, Query, Request

from backend.app import crud, load, schemas
from backend.app.generator import BulkEvents, EventGenerator
from backend.app.metrics import MetricsMiddleware, metrics
from backend.app.publisher import EventPublisher
from shared.config import settings
from shared.errors import PersistenceError
from shared.log import setup_logging
from shared.sink import EventSink

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    metrics.reset()

    sink = EventSink.from_url(settings.DATABASE_URL)
    if sink.is_configured:
        try:
            sink.ensure_table()
        except PersistenceError as e:
            logger.warning(f"Could not prepare the events table at startup: {e}. Retrying on first use.")

    app.state.sink = sink
    app.state.publisher = await EventPublisher.connect(settings.NATS_URL, settings.NATS_SUBJECT)
    app.state.generator = EventGenerator()

    yield

    await app.state.publisher.close()
    sink.dispose()


app = FastAPI(
    title="E-Commerce Event Pipeline API",
    description="Receives and generates e-commerce events and forwards them to the processing pipeline",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(MetricsMiddleware)


def get_sink(request: Request) -> EventSink:
    return request.app.state.sink


def get_publisher(request: Request) -> EventPublisher:
    return request.app.state.publisher


def get_generator(request: Request) -> EventGenerator:
    return request.app.state.generator


@app.get("/")
def root():
    return {
        "message": "E-Commerce Real-Time Data Processing System",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "ready": "/health/ready",
            "stats": "/stats",
            "generate_load": "/generate-load",
            "events": "/events",
            "store_event": "/events/store",
            "recent_events": "/events/recent",
            "simulate_pageview": "/simulate/pageview",
            "simulate_bulk": "/simulate/bulk",
            "stress_test": "/stress-test",
        },
    }


@app.get("/health", response_model=schemas.HealthResponse)
def health_check():
    return schemas.HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        service=settings.SERVICE_NAME,
        requests_processed=metrics.total_requests,
    )


@app.get("/health/ready", response_model=schemas.ReadinessResponse)
async def readiness_check(
        sink: EventSink = Depends(get_sink),
        publisher: EventPublisher = Depends(get_publisher)
):
    """
    Check the database and the broker.

    An unconfigured dependency is reported as such; the service keeps
    running in degraded mode either way.
    """
    def describe(configured: bool, reachable: bool) -> str:
        if not configured:
            return "unconfigured"
        return "healthy" if reachable else "degraded"

    checks = {
        "database": describe(sink.is_configured, sink.test_connection()),
        "broker": describe(publisher.is_configured, await publisher.test_connection()),
    }
    overall = "healthy" if all(value == "healthy" for value in checks.values()) else "degraded"
    return schemas.ReadinessResponse(status=overall, checks=checks)


@app.get("/stats", response_model=schemas.StatsResponse)
def get_stats():
    return schemas.StatsResponse(
        total_requests=metrics.total_requests,
        uptime=metrics.uptime(),
        started_at=metrics.started_at,
        system_info=schemas.SystemInfo(
            processor_count=os.cpu_count() or 1,
            os_version=platform.platform(),
            machine_name=socket.gethostname(),
            python_version=platform.python_version(),
        ),
    )


@app.get("/generate-load", response_model=schemas.LoadResponse)
def generate_load(intensity: int = Query(5, ge=0, le=100)):
    """
    Run a CPU-intensive loop to trigger autoscaling.

    The loop performs ``intensity`` million floating point iterations.
    """
    logger.info(f"Generating load with intensity: {intensity}")

    request_number = metrics.increment()

    start_time = time.perf_counter()
    result = load.burn_cpu(intensity)
    duration = (time.perf_counter() - start_time) * 1000

    return schemas.LoadResponse(
        message="Load generated successfully",
        intensity=intensity,
        duration_ms=duration,
        result=f"{result:.2f}",
        timestamp=datetime.now(timezone.utc),
        request_number=request_number,
    )


@app.get("/stress-test", response_model=schemas.StressTestResponse)
async def stress_test(duration: int = Query(10, ge=0, le=300)):
    logger.info(f"Starting stress test for {duration} seconds")

    request_number = metrics.increment()
    iterations = await load.stress(duration)

    return schemas.StressTestResponse(
        message="Stress test completed",
        duration_seconds=duration,
        iterations=iterations,
        timestamp=datetime.now(timezone.utc),
        request_number=request_number,
    )


@app.post("/events", response_model=schemas.EventAcceptedResponse)
async def post_event(
        event: schemas.ECommerceEvent,
        publisher: EventPublisher = Depends(get_publisher)
):
    """
    Receive an e-commerce event and forward it to the stream.

    Missing fields are defaulted; contents are not validated.
    """
    logger.info(f"Received event: {event.event_type} from user {event.user_id}")
    return await crud.ingest_event(event, publisher)


@app.post("/events/store", response_model=schemas.EventStoredResponse)
def store_event(
        event: schemas.ECommerceEvent,
        sink: EventSink = Depends(get_sink)
):
    """Persist an event straight into the database, bypassing the stream."""
    return crud.store_event(event, sink)


@app.get("/events/recent", response_model=schemas.RecentEventsResponse)
def recent_events(
        limit: int = Query(10, ge=1, le=100),
        sink: EventSink = Depends(get_sink)
):
    return crud.get_recent_events(sink, limit)


@app.get("/simulate/pageview", response_model=schemas.ECommerceEvent)
async def simulate_page_view(
        publisher: EventPublisher = Depends(get_publisher),
        generator: EventGenerator = Depends(get_generator)
):
    metrics.increment()

    event = generator.generate_page_view()
    await crud.publish_event(event, publisher)
    logger.info("Simulated PageView event")

    return event


@app.get("/simulate/bulk", response_model=schemas.BulkSimulationResponse)
async def simulate_bulk(
        count: int = Query(100, ge=1, le=1000),
        publisher: EventPublisher = Depends(get_publisher),
        generator: EventGenerator = Depends(get_generator)
):
    request_number = metrics.increment()
    sent = await crud.publish_bulk(BulkEvents(count, generator), publisher)
    logger.info(f"Simulated {sent} events")

    return schemas.BulkSimulationResponse(
        message="Bulk events generated",
        requested=count,
        sent=sent,
        published=publisher.is_configured,
        request_number=request_number,
    )


if __name__ == "__main__":
    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=8000)
