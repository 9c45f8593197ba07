from pydantic import AfterValidator, BaseModel, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from uuid import uuid4
from typing import Annotated, Any, Dict, List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


Price = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

Metadata = Annotated[
    Dict[str, Any],
    AfterValidator(lambda value: MappingProxyType(dict(value))),
    PlainSerializer(dict, return_type=Dict[str, Any]),
]


class ECommerceEvent(BaseModel):
    """One e-commerce occurrence: a page view, a purchase, a search...

    Contents are never validated; unknown event types are kept as sent.
    A missing or unparsable timestamp falls back to the ingestion time.
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str = ""
    user_id: str = ""
    session_id: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)
    product_id: str = ""
    category_id: str = ""
    price: Price = Decimal("0")
    quantity: int = 0
    currency: str = "USD"
    source: str = ""
    metadata: Metadata = Field(default_factory=lambda: MappingProxyType({}))

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True

    @field_validator("timestamp", mode="before")
    @classmethod
    def timestamp_or_now(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return v if v.tzinfo else v.replace(tzinfo=timezone.utc)
        if isinstance(v, str) and v.strip():
            try:
                parsed = datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
            except ValueError:
                return _utcnow()
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        return _utcnow()

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class EventAcceptedResponse(BaseModel):
    event_id: str
    event_type: str
    user_id: str
    processed_at: datetime
    status: str
    published: bool
    request_number: int


class EventStoredResponse(BaseModel):
    event_id: str
    event_type: str
    saved: bool
    request_number: int


class StoredEvent(BaseModel):
    id: int
    event_type: Optional[str]
    event_data: Any
    processed_at: datetime
    raw_data: Optional[str]


class RecentEventsResponse(BaseModel):
    data: List[StoredEvent]


class BulkSimulationResponse(BaseModel):
    message: str
    requested: int
    sent: int
    published: bool
    request_number: int


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    service: str
    requests_processed: int


class ReadinessResponse(BaseModel):
    status: str
    checks: Dict[str, str]


class SystemInfo(BaseModel):
    processor_count: int
    os_version: str
    machine_name: str
    python_version: str


class StatsResponse(BaseModel):
    total_requests: int
    uptime: str
    started_at: datetime
    system_info: SystemInfo


class LoadResponse(BaseModel):
    message: str
    intensity: int
    duration_ms: float
    result: str
    timestamp: datetime
    request_number: int


class StressTestResponse(BaseModel):
    message: str
    duration_seconds: int
    iterations: int
    timestamp: datetime
    request_number: int
