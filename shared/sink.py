import logging
import threading
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from shared.database import Base, make_engine, make_session_factory
from shared.errors import ConfigurationError, PersistenceError
from shared.models import ProcessedEvent
from shared.payload import to_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Configured:
    engine: Engine
    session_factory: sessionmaker


@dataclass(frozen=True)
class Unconfigured:
    reason: str


class EventSink:
    """Appends events to the ProcessedEvents table and reads them back.

    ``store`` and ``insert`` raise on failure so a batch handler can isolate
    the bad message; ``save``, ``get_recent`` and ``test_connection`` log and
    return a falsy value instead.
    """

    def __init__(self, state: Union[Configured, Unconfigured]):
        self._state = state
        self._table_lock = threading.Lock()
        self._table_ready = False

    @classmethod
    def from_url(cls, database_url: Optional[str]) -> "EventSink":
        if not database_url:
            logger.warning("Database connection string not configured. Sink will run in degraded mode.")
            return cls(Unconfigured("DATABASE_URL is not set"))

        try:
            engine = make_engine(database_url)
        except (ArgumentError, ImportError) as e:
            logger.warning(f"Failed to create database engine: {e}. Sink will run in degraded mode.")
            return cls(Unconfigured(str(e)))

        logger.info("Database sink initialized. Table will be created on first use.")
        return cls(Configured(engine, make_session_factory(engine)))

    @property
    def is_configured(self) -> bool:
        return isinstance(self._state, Configured)

    def _configured(self) -> Configured:
        if isinstance(self._state, Unconfigured):
            raise ConfigurationError(f"Database sink is not configured: {self._state.reason}")
        return self._state

    def ensure_table(self) -> None:
        if self._table_ready:
            return

        state = self._configured()
        with self._table_lock:
            if self._table_ready:
                return
            try:
                Base.metadata.create_all(
                    state.engine, tables=[ProcessedEvent.__table__], checkfirst=True
                )
            except SQLAlchemyError as e:
                logger.error(f"Error creating {ProcessedEvent.__tablename__} table: {e}")
                raise PersistenceError(str(e)) from e
            self._table_ready = True
            logger.info(f"{ProcessedEvent.__tablename__} table ensured")

    def insert(self, event_type: str, document: Any, raw_data: str) -> int:
        state = self._configured()
        self.ensure_table()

        db = state.session_factory()
        try:
            row = ProcessedEvent(
                event_type=event_type,
                event_data=document,
                raw_data=raw_data,
            )
            db.add(row)
            db.commit()
            logger.info(f"Saved event to database: {event_type}")
            return row.id
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error saving event to database: {e}")
            raise PersistenceError(str(e)) from e
        finally:
            db.close()

    def store(self, event_or_blob: Any, event_type: Optional[str] = None) -> int:
        """Insert one event; ``event_type`` overrides the type read from the payload."""
        record = to_record(event_or_blob)
        return self.insert(event_type or record.event_type, record.document, record.raw)

    def save(self, event_or_blob: Any) -> bool:
        if isinstance(self._state, Unconfigured):
            logger.warning("Database not configured. Event not saved.")
            return False

        try:
            self.store(event_or_blob)
        except Exception as e:
            logger.error(f"Error saving data to database: {e}")
            return False
        return True

    def get_recent(self, n: int = 10) -> List[dict]:
        if isinstance(self._state, Unconfigured):
            logger.warning("Database not configured. No events to read.")
            return []

        db = self._state.session_factory()
        try:
            rows = db.execute(
                select(ProcessedEvent)
                .order_by(ProcessedEvent.processed_at.desc(), ProcessedEvent.id.desc())
                .limit(max(n, 0))
            ).scalars().all()
            logger.info(f"Retrieved {len(rows)} records from database")
            return [row.to_dict() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving data from database: {e}")
            return []
        finally:
            db.close()

    def test_connection(self) -> bool:
        if isinstance(self._state, Unconfigured):
            return False

        try:
            with self._state.engine.connect():
                pass
        except SQLAlchemyError as e:
            logger.error(f"Database connection failed: {e}")
            return False
        logger.info("Database connection successful")
        return True

    def dispose(self) -> None:
        if isinstance(self._state, Configured):
            self._state.engine.dispose()
