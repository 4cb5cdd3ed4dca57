"""Tests for event and session schemas."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from tracker.schemas import (
    EnrichedEvent,
    EventType,
    PRODUCT_ID_REQUIRED,
    SessionInfo,
    TrackEvent,
)


class TestTrackEvent:
    def test_valid_event(self):
        e = TrackEvent(type=EventType.PRODUCT_CLICK, product_id="p-1", metadata={"productName": "Mug"})
        assert e.type == EventType.PRODUCT_CLICK
        assert e.timestamp is None

    @pytest.mark.parametrize("event_type", sorted(PRODUCT_ID_REQUIRED, key=lambda t: t.value))
    def test_product_id_required(self, event_type):
        with pytest.raises(ValidationError):
            TrackEvent(type=event_type)

    def test_category_id_required(self):
        with pytest.raises(ValidationError):
            TrackEvent(type=EventType.CATEGORY_VIEW, metadata={"categoryName": "Shoes"})

    def test_empty_product_id_rejected(self):
        with pytest.raises(ValidationError):
            TrackEvent(type=EventType.PURCHASE, product_id="")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            TrackEvent.model_validate({"type": "teleport"})

    def test_accepts_camel_case_input(self):
        e = TrackEvent.model_validate({"type": "add_to_cart", "productId": "p-9"})
        assert e.product_id == "p-9"

    def test_wire_form_is_camel_case(self):
        e = TrackEvent(type=EventType.SEARCH, metadata={"searchQuery": "boots"})
        wire = e.to_wire()
        assert wire["type"] == "search"
        assert "productId" in wire and "categoryId" in wire


class TestEnrichedEvent:
    def test_frozen(self):
        e = EnrichedEvent(
            event_id="abc",
            type=EventType.SEARCH,
            timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        with pytest.raises(ValidationError):
            e.product_id = "p-1"

    def test_wire_carries_event_id(self):
        e = EnrichedEvent(
            event_id="abc",
            type=EventType.SEARCH,
            timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        wire = e.to_wire()
        assert wire["eventId"] == "abc"
        assert wire["timestamp"].startswith("2024-01-01T00:00:00")


class TestSessionInfo:
    def test_negative_page_views_rejected(self):
        with pytest.raises(ValidationError):
            SessionInfo(session_id="s", start_time=datetime.now(timezone.utc), page_views=-1)

    def test_wire_form(self):
        s = SessionInfo(session_id="s", start_time=datetime(2024, 1, 1, tzinfo=timezone.utc))
        wire = s.to_wire()
        assert wire["sessionId"] == "s"
        assert wire["pageViews"] == 0
        assert wire["isReturningUser"] is False
        assert wire["deviceInfo"] == {"userAgent": "", "platform": "", "isMobile": False}
