import logging
from dataclasses import dataclass
from typing import Optional, Union

import nats
from nats.aio.client import Client as NATS
from nats.errors import MaxPayloadError

from backend.app.schemas import ECommerceEvent
from shared.errors import PayloadTooLarge, TransportError

logger = logging.getLogger(__name__)

HEALTH_CHECK_TIMEOUT = 2


@dataclass(frozen=True)
class Configured:
    client: NATS
    subject: str


@dataclass(frozen=True)
class Unconfigured:
    reason: str


class EventPublisher:
    """Puts events on the NATS subject the worker listens to.

    Without broker settings (or when the broker is unreachable at startup)
    the publisher runs in degraded mode: ``send`` only logs a warning.
    """

    def __init__(self, connection: Union[Configured, Unconfigured]):
        self._connection = connection

    @classmethod
    async def connect(cls, url: Optional[str], subject: Optional[str]) -> "EventPublisher":
        if not url or not subject:
            logger.warning("NATS not configured. Publisher will run in degraded mode.")
            return cls(Unconfigured("NATS_URL or NATS_SUBJECT is not set"))

        try:
            client = await nats.connect(url)
        except Exception as e:
            logger.warning(f"Failed to connect to NATS at startup: {e}. Publisher will run in degraded mode.")
            return cls(Unconfigured(str(e)))

        logger.info(f"NATS publisher initialized for subject: {subject}")
        return cls(Configured(client, subject))

    @property
    def is_configured(self) -> bool:
        return isinstance(self._connection, Configured)

    async def send(self, event: ECommerceEvent) -> None:
        if isinstance(self._connection, Unconfigured):
            logger.warning("NATS not configured. Event not sent.")
            return

        payload = event.to_json().encode("utf-8")
        try:
            await self._connection.client.publish(self._connection.subject, payload)
        except MaxPayloadError as e:
            logger.error(f"Event {event.event_id} is too large for the broker: {len(payload)} bytes")
            raise PayloadTooLarge(f"Event of {len(payload)} bytes exceeds the broker limit") from e
        except Exception as e:
            logger.error(f"Error sending event to NATS: {e}")
            raise TransportError(f"NATS publish failed: {e}") from e

        logger.info(f"Event sent to NATS successfully: {len(payload)} bytes")

    async def test_connection(self) -> bool:
        if isinstance(self._connection, Unconfigured):
            return False

        try:
            await self._connection.client.flush(timeout=HEALTH_CHECK_TIMEOUT)
        except Exception as e:
            logger.error(f"NATS connection failed: {e}")
            return False

        logger.info(f"NATS connection successful. Subject: {self._connection.subject}")
        return True

    async def close(self) -> None:
        if isinstance(self._connection, Configured):
            await self._connection.client.drain()
