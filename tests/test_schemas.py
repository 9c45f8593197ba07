import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from backend.app.generator import CATEGORIES, EVENT_TYPES, SOURCES, BulkEvents, EventGenerator
from backend.app.schemas import ECommerceEvent


def just_now(value: datetime) -> bool:
    return abs(datetime.now(timezone.utc) - value) < timedelta(seconds=5)


class TestECommerceEvent:

    def test_defaults(self):
        event = ECommerceEvent()

        assert event.event_id
        assert event.event_type == ""
        assert event.currency == "USD"
        assert event.price == Decimal("0")
        assert event.quantity == 0
        assert event.metadata == {}
        assert just_now(event.timestamp)

    def test_every_event_gets_its_own_id(self):
        assert ECommerceEvent().event_id != ECommerceEvent().event_id

    def test_accepts_camel_case_wire_format(self):
        event = ECommerceEvent.model_validate({
            "eventId": "evt-1",
            "eventType": "Purchase",
            "userId": "u1",
            "sessionId": "s1",
            "productId": "product_7",
            "categoryId": "Books",
            "price": 19.99,
            "quantity": 2,
            "source": "Mobile",
            "metadata": {"coupon": "SPRING"},
        })

        assert event.event_id == "evt-1"
        assert event.event_type == "Purchase"
        assert event.session_id == "s1"
        assert event.category_id == "Books"
        assert float(event.price) == 19.99
        assert event.metadata == {"coupon": "SPRING"}

    def test_accepts_snake_case_field_names(self):
        event = ECommerceEvent(event_type="Search", user_id="u3")
        assert event.event_type == "Search"
        assert event.user_id == "u3"

    def test_unknown_event_type_is_kept(self):
        event = ECommerceEvent.model_validate({"eventType": "Teleport"})
        assert event.event_type == "Teleport"

    def test_contents_are_not_validated(self):
        event = ECommerceEvent.model_validate({"price": -5, "quantity": -1, "currency": "???"})
        assert event.price == Decimal("-5")
        assert event.quantity == -1
        assert event.currency == "???"

    def test_timestamp_is_parsed(self):
        event = ECommerceEvent.model_validate({"timestamp": "2024-05-01T10:00:00Z"})
        assert event.timestamp == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_is_treated_as_utc(self):
        event = ECommerceEvent(timestamp=datetime(2024, 5, 1, 10, 0))
        assert event.timestamp.tzinfo == timezone.utc

    @pytest.mark.parametrize("value", ["yesterday-ish", "", None, 12.5])
    def test_unparsable_timestamp_falls_back_to_now(self, value):
        event = ECommerceEvent.model_validate({"timestamp": value})
        assert just_now(event.timestamp)

    def test_event_is_immutable(self):
        event = ECommerceEvent(event_type="PageView")
        with pytest.raises(ValidationError):
            event.event_type = "Purchase"

    def test_metadata_is_read_only(self):
        event = ECommerceEvent.model_validate({"metadata": {"coupon": "SPRING"}})

        with pytest.raises(TypeError):
            event.metadata["coupon"] = "WINTER"
        with pytest.raises(TypeError):
            ECommerceEvent().metadata["k"] = "v"

        assert event.metadata == {"coupon": "SPRING"}
        assert json.loads(event.to_json())["metadata"] == {"coupon": "SPRING"}
        assert event.model_dump()["metadata"] == {"coupon": "SPRING"}

    def test_to_json_uses_wire_names_and_numeric_price(self):
        event = ECommerceEvent(event_type="Purchase", price=Decimal("19.99"), quantity=2)

        document = json.loads(event.to_json())

        assert document["eventType"] == "Purchase"
        assert document["price"] == 19.99
        assert "event_type" not in document


class TestEventGenerator:

    def test_generated_event_uses_known_values(self):
        event = EventGenerator(seed=7).generate_event()

        assert event.event_type in EVENT_TYPES
        assert event.category_id in CATEGORIES
        assert event.source in SOURCES
        assert event.user_id.startswith("user_")
        assert event.product_id.startswith("product_")
        assert Decimal("10") <= event.price <= Decimal("510")
        assert 1 <= event.quantity <= 4
        assert event.currency == "USD"

    def test_seed_makes_generation_repeatable(self):
        first, second = EventGenerator(seed=42), EventGenerator(seed=42)
        for _ in range(5):
            a, b = first.generate_event(), second.generate_event()
            assert (a.event_type, a.user_id, a.price) == (b.event_type, b.user_id, b.price)

    def test_page_view(self):
        event = EventGenerator().generate_page_view()
        assert event.event_type == "PageView"
        assert 1 <= int(event.product_id.split("_")[1]) <= 99


class TestBulkEvents:

    def test_yields_exactly_count_events(self):
        bulk = BulkEvents(25, EventGenerator(seed=1))
        assert len(bulk) == 25
        assert len(list(bulk)) == 25

    def test_is_restartable(self):
        bulk = BulkEvents(3)

        first_run = [event.event_id for event in bulk]
        second_run = [event.event_id for event in bulk]

        assert len(first_run) == len(second_run) == 3
        assert set(first_run).isdisjoint(second_run)

    def test_is_lazy(self):
        generator = MagicMock()
        generator.generate_event.side_effect = lambda: ECommerceEvent()

        iterator = iter(BulkEvents(1_000_000, generator))
        next(iterator)
        next(iterator)

        assert generator.generate_event.call_count == 2

    def test_rejects_negative_count(self):
        with pytest.raises(ValueError):
            BulkEvents(-1)
