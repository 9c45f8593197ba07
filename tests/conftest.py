import pytest

from shared.sink import EventSink


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'events.db'}"


@pytest.fixture
def sink(database_url):
    event_sink = EventSink.from_url(database_url)
    yield event_sink
    event_sink.dispose()
