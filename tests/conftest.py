"""Shared test fixtures."""

import json

import httpx
import pytest

from config import Settings, configure_logging
from storage.kv_store import MemoryStore
from tracker.clock import FakeClock
from tracker.errors import TransportError
from tracker.probe import Environment

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.6099.109 Safari/537.36"
)


@pytest.fixture(scope="session", autouse=True)
def _logging():
    # Configure once so capture_logs() inside a test is not overridden.
    configure_logging("tests", "INFO")


@pytest.fixture
def settings():
    """Test settings pointing at a local collector."""
    return Settings(
        api_url="http://collector.test/api",
        redis_url="redis://localhost:6379/1",
        flush_interval_sec=5.0,
        max_queue_size=50,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def environment():
    return Environment(
        user_agent=CHROME_UA,
        platform="Windows",
        url="https://shop.test/products/42",
        referrer="",
        screen_width=1920,
        screen_height=1080,
    )


@pytest.fixture
def session_store():
    return MemoryStore()


@pytest.fixture
def local_store():
    return MemoryStore()


class RecordingTransport:
    """Stands in for TrackingTransport; records what would have been sent."""

    def __init__(self):
        self.batches: list[list] = []
        self.events: list = []
        self.beacons: list[list] = []
        self.fail = False
        self.on_send = None

    def send_event(self, event, session):
        if self.fail:
            raise TransportError("collector down", status_code=503)
        self.events.append(event)

    def send_batch(self, events, session):
        if self.on_send is not None:
            self.on_send()
        if self.fail:
            raise TransportError("collector down", status_code=503)
        self.batches.append(list(events))

    def beacon(self, events, session):
        self.beacons.append(list(events))
        return True

    def close(self):
        pass


@pytest.fixture
def transport():
    return RecordingTransport()


class Collector:
    """Programmable httpx handler that records every request it serves."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}

    def reply(self, method: str, path: str, status: int = 200, body=None):
        self.routes[(method, path)] = httpx.Response(status, json=body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(200, json={"success": True})
        return response

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def collector():
    return Collector()


@pytest.fixture
def http_client(collector, settings):
    return httpx.Client(base_url=settings.api_url, transport=httpx.MockTransport(collector))
