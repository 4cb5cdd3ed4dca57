"""Tests for the collector HTTP transport."""

from datetime import datetime, timezone

import httpx
import pytest

from tracker.errors import TransportError
from tracker.schemas import EnrichedEvent, EventType
from tracker.transport import TrackingTransport

SESSION = {"sessionId": "s-1", "pageViews": 1}


def make_event(event_id="evt-1") -> EnrichedEvent:
    return EnrichedEvent(
        event_id=event_id,
        type=EventType.PURCHASE,
        product_id="p-1",
        metadata={"revenue": 20},
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def tracking_transport(settings, http_client):
    return TrackingTransport(settings, client=http_client)


class TestSend:
    def test_send_event_body(self, tracking_transport, collector):
        tracking_transport.send_event(make_event(), SESSION)
        req = collector.requests[0]
        assert req.method == "POST"
        assert req.url.path == "/api/analytics/track"
        body = collector.body()
        assert body["sessionInfo"] == SESSION
        assert body["event"]["productId"] == "p-1"
        assert body["event"]["eventId"] == "evt-1"

    def test_send_batch_body(self, tracking_transport, collector):
        tracking_transport.send_batch([make_event("a"), make_event("b")], SESSION)
        assert collector.requests[0].url.path == "/api/analytics/batch-track"
        assert [e["eventId"] for e in collector.body()["events"]] == ["a", "b"]

    def test_non_2xx_raises(self, tracking_transport, collector):
        collector.reply("POST", "/api/analytics/batch-track", status=500, body={"success": False})
        with pytest.raises(TransportError) as exc:
            tracking_transport.send_batch([make_event()], SESSION)
        assert exc.value.status_code == 500

    def test_network_error_raises(self, settings):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(base_url=settings.api_url, transport=httpx.MockTransport(refuse))
        with pytest.raises(TransportError):
            TrackingTransport(settings, client=client).send_event(make_event(), SESSION)


class TestBeacon:
    def test_beacon_posts_batch(self, tracking_transport, collector):
        assert tracking_transport.beacon([make_event()], SESSION) is True
        assert collector.requests[0].url.path == "/api/analytics/batch-track"

    def test_beacon_ignores_error_status(self, tracking_transport, collector):
        collector.reply("POST", "/api/analytics/batch-track", status=503)
        assert tracking_transport.beacon([make_event()], SESSION) is True

    def test_beacon_never_raises(self, settings):
        def timeout(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = httpx.Client(base_url=settings.api_url, transport=httpx.MockTransport(timeout))
        assert TrackingTransport(settings, client=client).beacon([make_event()], SESSION) is False
