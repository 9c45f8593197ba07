import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import nats
from nats.aio.msg import Msg
from nats.aio.subscription import Subscription
from nats.errors import TimeoutError as NatsTimeoutError

from shared.config import require, settings
from shared.errors import ParseError
from shared.log import setup_logging
from shared.payload import (
    Payload,
    decode_payload,
    extract_event_type,
    extract_timestamp,
    parse_payload,
)
from shared.sink import EventSink

logger = logging.getLogger(__name__)

STORED = "stored"
SKIPPED = "skipped"


@dataclass(frozen=True)
class MessageResult:
    index: int
    status: str
    event_type: Optional[str] = None
    timestamp: Optional[str] = None
    row_id: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class BatchReport:
    results: List[MessageResult] = field(default_factory=list)

    @property
    def stored(self) -> int:
        return sum(1 for r in self.results if r.status == STORED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == SKIPPED)

    def skipped_with(self, reason: str) -> List[MessageResult]:
        return [r for r in self.results if r.status == SKIPPED and r.reason == reason]


def _printable(payload: Payload) -> str:
    try:
        return decode_payload(payload)
    except ParseError:
        return repr(payload)


def process_message(index: int, payload: Payload, sink: EventSink) -> MessageResult:
    logger.info(f"Processing event: {_printable(payload)}")

    try:
        raw = decode_payload(payload)
        document = parse_payload(raw)
    except ParseError as e:
        logger.error(f"Error parsing event {_printable(payload)}: {e}")
        return MessageResult(index=index, status=SKIPPED, reason="parse_error")

    try:
        event_type = extract_event_type(document)
        timestamp = extract_timestamp(document)
        sink.ensure_table()
        row_id = sink.insert(event_type, document, raw)
    except Exception as e:
        logger.error(f"Error processing event {raw}: {e}")
        return MessageResult(index=index, status=SKIPPED, reason="persistence_error")

    logger.info("Event processed successfully")
    return MessageResult(
        index=index,
        status=STORED,
        event_type=event_type,
        timestamp=timestamp,
        row_id=row_id,
    )


def process_batch(messages: Sequence[Payload], sink: EventSink) -> BatchReport:
    """Persist a batch of raw stream messages, one row per valid message.

    Messages are handled one after another. A message that cannot be parsed
    or stored is logged and reported as skipped; the rest of the batch still
    runs, and nothing is retried.
    """
    logger.info(f"Processing {len(messages)} events from the stream")

    report = BatchReport()
    for index, payload in enumerate(messages):
        report.results.append(process_message(index, payload, sink))

    logger.info(f"Batch done: {report.stored} stored, {report.skipped} skipped")
    return report


async def handle_batch(batch: Sequence[Msg], sink: EventSink) -> BatchReport:
    payloads = [msg.data for msg in batch]
    return await asyncio.to_thread(process_batch, payloads, sink)


async def collect_batch(sub: Subscription, max_size: int, wait: float) -> List[Msg]:
    """Wait for one message, then keep reading until the batch is full or
    no message arrives for ``wait`` seconds."""
    batch = [await sub.next_msg(timeout=None)]
    while len(batch) < max_size:
        try:
            batch.append(await sub.next_msg(timeout=wait))
        except NatsTimeoutError:
            break
    return batch


async def main():
    setup_logging(settings.LOG_LEVEL)
    logger.info("Starting NATS worker...")

    database_url = require(settings.DATABASE_URL, "DATABASE_URL")
    nats_url = require(settings.NATS_URL, "NATS_URL")

    sink = EventSink.from_url(database_url)
    sink.ensure_table()

    nc = await nats.connect(nats_url)
    logger.info("Connected to NATS")

    sub = await nc.subscribe(settings.NATS_SUBJECT)
    logger.info(f"Subscribed to {settings.NATS_SUBJECT}")

    try:
        while True:
            batch = await collect_batch(sub, settings.WORKER_BATCH_SIZE, settings.WORKER_BATCH_WAIT)
            await handle_batch(batch, sink)
    except Exception as e:
        logger.error(f"Error in main loop: {e}")
    finally:
        await nc.close()
        sink.dispose()


if __name__ == "__main__":
    asyncio.run(main())
