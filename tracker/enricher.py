"""Event validation, enrichment and enqueueing, plus the page-scoped engagement counters."""

import threading
import uuid
from typing import Any
from urllib.parse import urljoin

from pydantic import ValidationError

from config import Settings, configure_logging
from tracker.clock import Clock, SystemClock
from tracker.errors import TransportError
from tracker.probe import Environment, browser_info, device_type, screen_resolution, traffic_source
from tracker.scheduler import PendingQueue
from tracker.schemas import EnrichedEvent, EventType, PageMetrics, TrackEvent
from tracker.session import SessionManager
from tracker.transport import TrackingTransport

INTERACTION_KINDS = frozenset({"click", "keydown", "touchstart"})


class EventTracker:
    """
    Accepts raw semantic events, stamps them with environment and session
    context, and appends them to the pending queue.

    Scroll depth and interaction count are page-scoped: both restart from zero
    on every recorded page view. Critical event types are additionally sent
    straight to the single-event endpoint; they stay queued either way.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        environment: Environment,
        queue: PendingQueue,
        transport: TrackingTransport,
        settings: Settings,
        clock: Clock | None = None,
        log=None,
    ):
        self.log = log or configure_logging("tracker", settings.log_level)
        self._sessions = session_manager
        self._env = environment
        self._queue = queue
        self._transport = transport
        self._clock = clock or SystemClock()
        self._critical = frozenset(settings.critical_event_types)
        self._thresholds = tuple(sorted(settings.scroll_thresholds))
        self._lock = threading.Lock()
        self._scroll_depth = 0
        self._interactions = 0
        self._milestones: set[int] = set()
        self._page_started = self._clock.monotonic()

    # ─── Tracking ───────────────────────────────────────────────────

    def track(self, event: TrackEvent | dict[str, Any]) -> EnrichedEvent | None:
        """Validate, enrich and enqueue. Invalid events are logged and dropped."""
        try:
            raw = event if isinstance(event, TrackEvent) else TrackEvent.model_validate(event)
        except ValidationError as e:
            self.log.warning(
                "event_rejected",
                event_type=event.get("type") if isinstance(event, dict) else None,
                reasons=[err["msg"] for err in e.errors()],
            )
            return None

        session = self._sessions.get_or_create_session()
        enriched = self._enrich(raw)
        self._queue.append(enriched)

        if raw.type.value in self._critical:
            self._send_now(enriched)

        self.log.debug(
            "event_enqueued",
            event_type=raw.type.value,
            session_id=session.session_id,
            queued=len(self._queue),
        )
        return enriched

    def _enrich(self, raw: TrackEvent) -> EnrichedEvent:
        env = self._env
        traffic = traffic_source(env.url, env.referrer)
        with self._lock:
            scroll_depth, interactions = self._scroll_depth, self._interactions

        metadata = {
            **raw.metadata,
            "pageUrl": env.url,
            "referrer": env.referrer,
            "scrollDepth": scroll_depth,
            "interactionCount": interactions,
            "deviceType": device_type(env.user_agent).value,
            "browserInfo": browser_info(env.user_agent).to_wire(),
            "screenResolution": screen_resolution(env.screen_width, env.screen_height),
            "trafficSource": traffic.source.value,
            "campaignData": traffic.campaign_data.to_wire() if traffic.campaign_data else None,
        }
        return EnrichedEvent(
            event_id=uuid.uuid4().hex,
            type=raw.type,
            product_id=raw.product_id,
            category_id=raw.category_id,
            metadata=metadata,
            timestamp=raw.timestamp or self._clock.now(),
        )

    def _send_now(self, event: EnrichedEvent):
        try:
            self._transport.send_event(event, self._sessions.snapshot())
        except TransportError as e:
            # The queued copy is the fallback delivery path.
            self.log.warning(
                "critical_send_failed",
                event_type=event.type.value,
                event_id=event.event_id,
                status_code=e.status_code,
                error=str(e),
            )

    # ─── Page lifecycle ─────────────────────────────────────────────

    def enter_page(self, path: str):
        """Point the environment at a client-side route so later events carry its URL."""
        self._env.url = urljoin(self._env.url, path)

    def record_page_view(self, page_name: str | None = None) -> EnrichedEvent | None:
        """Count a navigation, reset the page counters and report the view."""
        self._sessions.record_page_view()
        self.reset_page_counters()
        return self.track(
            TrackEvent(
                type=EventType.PAGE_TIME,
                metadata={"productName": page_name, "pageName": page_name, "timeSpent": 0},
            )
        )

    def track_time_spent(
        self,
        product_id: str | None = None,
        product_name: str | None = None,
        page_name: str | None = None,
    ) -> EnrichedEvent | None:
        metadata = {"productName": product_name, **self._counters()}
        if page_name is not None:
            metadata["pageName"] = page_name
        return self.track(TrackEvent(type=EventType.PAGE_TIME, product_id=product_id, metadata=metadata))

    def track_custom_event(
        self, event_type: str, page_name: str | None = None, metadata: dict[str, Any] | None = None
    ) -> EnrichedEvent | None:
        """Report an app-defined event as page_time tagged with ``customEventType``."""
        return self.track(
            TrackEvent(
                type=EventType.PAGE_TIME,
                metadata={
                    "customEventType": event_type,
                    "pageName": page_name,
                    **self._counters(),
                    **(metadata or {}),
                },
            )
        )

    def current_metrics(self) -> PageMetrics:
        with self._lock:
            return PageMetrics(
                time_spent=self.time_on_page(),
                scroll_depth=self._scroll_depth,
                interaction_count=self._interactions,
                tracked_scroll_thresholds=sorted(self._milestones),
            )

    def _counters(self) -> dict[str, int]:
        with self._lock:
            scroll_depth, interactions = self._scroll_depth, self._interactions
        return {
            "timeSpent": self.time_on_page(),
            "scrollDepth": scroll_depth,
            "interactionCount": interactions,
        }

    def reset_page_counters(self):
        with self._lock:
            self._scroll_depth = 0
            self._interactions = 0
            self._milestones.clear()
            self._page_started = self._clock.monotonic()

    def time_on_page(self) -> int:
        return round(self._clock.monotonic() - self._page_started)

    # ─── Engagement counters ────────────────────────────────────────

    def record_scroll(self, percent: float) -> int:
        """
        Raise the scroll high-water mark (clamped to [0, 100]) and report each
        configured milestone the first time it is reached on this page.
        """
        depth = max(0, min(100, round(percent)))
        with self._lock:
            if depth > self._scroll_depth:
                self._scroll_depth = depth
            crossed = [t for t in self._thresholds if depth >= t and t not in self._milestones]
            self._milestones.update(crossed)
            high_water = self._scroll_depth

        for threshold in crossed:
            self.track(
                TrackEvent(
                    type=EventType.PAGE_TIME,
                    metadata={"milestone": f"scroll_{threshold}%", "timeSpent": self.time_on_page()},
                )
            )
        return high_water

    def record_interaction(self, kind: str = "click") -> int:
        with self._lock:
            if kind in INTERACTION_KINDS:
                self._interactions += 1
            return self._interactions

    @property
    def scroll_depth(self) -> int:
        return self._scroll_depth

    @property
    def interaction_count(self) -> int:
        return self._interactions
