from datetime import datetime, timezone

from sqlalchemy import Column, String, JSON, DateTime, Integer, Text, func
from shared.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessedEvent(Base):
    __tablename__ = "ProcessedEvents"

    id = Column("Id", Integer, primary_key=True, autoincrement=True)
    event_type = Column("EventType", String(100), index=True)
    event_data = Column("EventData", JSON)
    processed_at = Column(
        "ProcessedAt",
        DateTime(timezone=True),
        nullable=False,
        index=True,
        default=utcnow,
        server_default=func.now(),
    )
    raw_data = Column("RawData", Text)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "event_data": self.event_data,
            "processed_at": self.processed_at,
            "raw_data": self.raw_data,
        }
