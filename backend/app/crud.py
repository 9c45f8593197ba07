from datetime import datetime, timezone
from typing import Iterable

from fastapi import HTTPException, status

from backend.app import schemas
from backend.app.metrics import metrics
from backend.app.publisher import EventPublisher
from shared.errors import PayloadTooLarge, TransportError
from shared.sink import EventSink


async def publish_event(event: schemas.ECommerceEvent, publisher: EventPublisher) -> None:
    try:
        await publisher.send(event)
    except PayloadTooLarge as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=str(exc)
        )
    except TransportError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc)
        )


async def ingest_event(
    event: schemas.ECommerceEvent,
    publisher: EventPublisher
) -> schemas.EventAcceptedResponse:
    request_number = metrics.increment()

    await publish_event(event, publisher)

    return schemas.EventAcceptedResponse(
        event_id=event.event_id,
        event_type=event.event_type,
        user_id=event.user_id,
        processed_at=datetime.now(timezone.utc),
        status="Accepted" if publisher.is_configured else "Processed",
        published=publisher.is_configured,
        request_number=request_number
    )


async def publish_bulk(
    events: Iterable[schemas.ECommerceEvent],
    publisher: EventPublisher
) -> int:
    sent = 0
    for event in events:
        await publish_event(event, publisher)
        sent += 1
    return sent


def store_event(event: schemas.ECommerceEvent, sink: EventSink) -> schemas.EventStoredResponse:
    request_number = metrics.increment()
    saved = sink.save(event)
    return schemas.EventStoredResponse(
        event_id=event.event_id,
        event_type=event.event_type,
        saved=saved,
        request_number=request_number
    )


def get_recent_events(sink: EventSink, limit: int) -> schemas.RecentEventsResponse:
    rows = sink.get_recent(limit)
    return schemas.RecentEventsResponse(
        data=[schemas.StoredEvent(**row) for row in rows]
    )
