import random
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator, Optional

from backend.app.schemas import ECommerceEvent

EVENT_TYPES = ["PageView", "AddToCart", "Purchase", "Search", "Review"]
CATEGORIES = ["Electronics", "Clothing", "Books", "Home", "Sports"]
SOURCES = ["Web", "Mobile", "API"]


class EventGenerator:
    """Produces realistic-looking synthetic e-commerce events."""

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)

    def generate_event(self) -> ECommerceEvent:
        return ECommerceEvent(
            event_id=str(uuid.uuid4()),
            event_type=self._random.choice(EVENT_TYPES),
            user_id=f"user_{self._random.randint(1, 999)}",
            session_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            product_id=f"product_{self._random.randint(1, 499)}",
            category_id=self._random.choice(CATEGORIES),
            price=Decimal(str(round(self._random.uniform(10, 510), 2))),
            quantity=self._random.randint(1, 4),
            currency="USD",
            source=self._random.choice(SOURCES),
        )

    def generate_page_view(self) -> ECommerceEvent:
        return ECommerceEvent(
            event_id=str(uuid.uuid4()),
            event_type="PageView",
            user_id=f"user_{self._random.randint(1, 999)}",
            product_id=f"product_{self._random.randint(1, 99)}",
            timestamp=datetime.now(timezone.utc),
            session_id=str(uuid.uuid4()),
        )


class BulkEvents:
    """A finite batch of synthetic events, generated lazily.

    Every iteration starts over and yields ``count`` fresh events, so the
    same object can drive several load-test runs.
    """

    def __init__(self, count: int, generator: Optional[EventGenerator] = None):
        if count < 0:
            raise ValueError("count must not be negative")
        self.count = count
        self._generator = generator or EventGenerator()

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[ECommerceEvent]:
        for _ in range(self.count):
            yield self._generator.generate_event()
