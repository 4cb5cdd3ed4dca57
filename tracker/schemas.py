"""Canonical telemetry schemas: single source of truth for event and session shapes on the wire."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class EventType(str, Enum):
    PRODUCT_CLICK = "product_click"
    CATEGORY_VIEW = "category_view"
    PAGE_TIME = "page_time"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"
    WISHLIST_ADD = "wishlist_add"
    SHARE = "share"
    SEARCH = "search"
    FILTER_APPLY = "filter_apply"
    CHECKOUT_START = "checkout_start"
    CHECKOUT_COMPLETE = "checkout_complete"
    CART_ABANDON = "cart_abandon"


class DeviceType(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


class TrafficSource(str, Enum):
    DIRECT = "direct"
    SEARCH = "search"
    SOCIAL = "social"
    EMAIL = "email"
    REFERRAL = "referral"
    PAID = "paid"


PRODUCT_ID_REQUIRED = frozenset({
    EventType.PRODUCT_CLICK,
    EventType.ADD_TO_CART,
    EventType.PURCHASE,
    EventType.WISHLIST_ADD,
})
CATEGORY_ID_REQUIRED = frozenset({EventType.CATEGORY_VIEW})

# Metadata is an open bag; these are the keys each event type is expected to carry.
WELL_KNOWN_METADATA: dict[EventType, tuple[str, ...]] = {
    EventType.PRODUCT_CLICK: ("productName",),
    EventType.ADD_TO_CART: ("productName",),
    EventType.WISHLIST_ADD: ("productName",),
    EventType.PURCHASE: ("productName", "revenue"),
    EventType.CATEGORY_VIEW: ("categoryName",),
    EventType.PAGE_TIME: ("productName", "pageName", "timeSpent", "scrollDepth", "interactionCount", "milestone"),
    EventType.SEARCH: ("searchQuery", "resultsCount"),
    EventType.FILTER_APPLY: ("filterCriteria",),
    EventType.SHARE: ("productName",),
    EventType.CHECKOUT_START: ("revenue",),
    EventType.CHECKOUT_COMPLETE: ("revenue",),
    EventType.CART_ABANDON: ("revenue",),
}

# Keys stamped onto every event at enqueue time.
ENRICHMENT_KEYS = (
    "pageUrl",
    "referrer",
    "scrollDepth",
    "interactionCount",
    "deviceType",
    "browserInfo",
    "screenResolution",
    "trafficSource",
    "campaignData",
)


class WireModel(BaseModel):
    """Python attribute names, camelCase on the wire (the collector is a JS service)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class BrowserInfo(WireModel):
    name: str = "Unknown"
    version: str = "Unknown"


class CampaignData(WireModel):
    """All five UTM fields, always present; missing parameters are None."""

    source: str | None = None
    medium: str | None = None
    campaign: str | None = None
    term: str | None = None
    content: str | None = None


class TrafficInfo(WireModel):
    source: TrafficSource
    campaign_data: CampaignData | None = None


class DeviceInfo(WireModel):
    user_agent: str = ""
    platform: str = ""
    is_mobile: bool = False


class SessionInfo(WireModel):
    session_id: str
    start_time: datetime
    page_views: int = Field(default=0, ge=0)
    is_returning_user: bool = False
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)


class PageMetrics(WireModel):
    """Engagement counters of the page currently being viewed."""

    time_spent: int = 0
    scroll_depth: int = 0
    interaction_count: int = 0
    tracked_scroll_thresholds: list[int] = Field(default_factory=list)


class TrackEvent(WireModel):
    """A raw semantic event as handed to the tracker by UI code."""

    type: EventType
    product_id: str | None = None
    category_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime | None = None

    @model_validator(mode="after")
    def _check_correlation_ids(self):
        if self.type in PRODUCT_ID_REQUIRED and not self.product_id:
            raise ValueError(f"{self.type.value} requires productId")
        if self.type in CATEGORY_ID_REQUIRED and not self.category_id:
            raise ValueError(f"{self.type.value} requires categoryId")
        return self


class EnrichedEvent(TrackEvent):
    """An event after enrichment. Built once at enqueue time and never mutated."""

    model_config = ConfigDict(frozen=True)

    # Correlation key: the same event may reach the collector more than once
    # (critical send + batch, or a retried batch) and is deduped on this id.
    event_id: str
    timestamp: datetime
