"""Tracking facade, the single call surface handed to UI code."""

import functools
import threading
from typing import Any

from config import Settings, configure_logging
from storage.kv_store import KeyValueStore
from tracker.clock import Clock, SystemClock
from tracker.enricher import EventTracker
from tracker.probe import Environment
from tracker.scheduler import FlushScheduler, PendingQueue
from tracker.schemas import EventType, PageMetrics, TrackEvent
from tracker.session import CONSENT_KEY, SessionManager
from tracker.transport import TrackingTransport


def should_track(environment: Environment | None, local_store: KeyValueStore | None) -> bool:
    """
    Tracking is off under Do-Not-Track, after an explicit consent opt-out, or
    when there is no client-side storage (server-side rendering). Anything
    that goes wrong while deciding means off.
    """
    try:
        if environment is None or not environment.client_side or local_store is None:
            return False
        if environment.do_not_track == "1":
            return False
        if local_store.get(CONSENT_KEY) == "false":
            return False
        return True
    except Exception:
        return False


def _never_raises(method):
    """Tracking calls run inside UI handlers: log failures, never propagate them."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except Exception as e:
            self.log.error(
                "tracking_call_failed",
                method=method.__name__,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    return wrapper


class NoOpTrackingContext:
    """Returned when tracking is disabled. Every call returns immediately."""

    enabled = False
    session_id = None

    def track_event(self, event: TrackEvent | dict[str, Any]):
        return None

    def track_product_click(self, product_id: str, product_name: str):
        return None

    def track_category_view(self, category_id: str, category_name: str):
        return None

    def track_add_to_cart(self, product_id: str, product_name: str):
        return None

    def track_wishlist_add(self, product_id: str, product_name: str):
        return None

    def track_purchase(self, product_id: str, product_name: str, revenue: float | None = None):
        return None

    def track_search(self, query: str, results_count: int | None = None):
        return None

    def track_filter(self, criteria: Any):
        return None

    def track_share(self, product_id: str | None = None, channel: str | None = None):
        return None

    def track_checkout_start(self, revenue: float | None = None):
        return None

    def track_checkout_complete(self, revenue: float | None = None):
        return None

    def track_cart_abandon(self, revenue: float | None = None):
        return None

    def track_page_view(self, page_name: str | None = None):
        return None

    def navigate(self, path: str):
        return None

    def track_time_spent(self, product_id: str | None = None, product_name: str | None = None):
        return None

    def track_custom_event(self, event_type: str, metadata: dict[str, Any] | None = None):
        return None

    def current_metrics(self):
        return None

    def record_scroll(self, percent: float):
        return None

    def record_interaction(self, kind: str = "click"):
        return None

    def flush(self):
        return None

    def close(self):
        return None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class TrackingContext:
    """
    Named semantic tracking methods over one EventTracker. Each method only
    picks the event type and packs its arguments into metadata.

    Build it with ``TrackingContext.create``, which decides once whether
    tracking is enabled and returns a NoOpTrackingContext if not.
    """

    enabled = True

    def __init__(
        self,
        tracker: EventTracker,
        scheduler: FlushScheduler,
        session_manager: SessionManager,
        transport: TrackingTransport | None = None,
        log=None,
    ):
        self.log = log or configure_logging("tracking-context")
        self._tracker = tracker
        self._scheduler = scheduler
        self._sessions = session_manager
        self._owned_transport = transport
        self._active_path: str | None = None
        self._nav_lock = threading.Lock()
        self._closed = False

    @classmethod
    def create(
        cls,
        settings: Settings,
        environment: Environment,
        session_store: KeyValueStore | None,
        local_store: KeyValueStore | None,
        transport: TrackingTransport | None = None,
        clock: Clock | None = None,
        start: bool = True,
    ) -> "TrackingContext | NoOpTrackingContext":
        log = configure_logging("tracking-context", settings.log_level)
        if not should_track(environment, local_store):
            log.info("tracking_disabled", do_not_track=getattr(environment, "do_not_track", None))
            return NoOpTrackingContext()

        clock = clock or SystemClock()
        owned = None
        if transport is None:
            transport = owned = TrackingTransport(settings)
        sessions = SessionManager(session_store, local_store, environment, clock)
        queue = PendingQueue(max_size=settings.max_queue_size)
        tracker = EventTracker(sessions, environment, queue, transport, settings, clock=clock)
        scheduler = FlushScheduler(
            queue,
            transport,
            sessions,
            clock=clock,
            interval_sec=settings.flush_interval_sec,
            # httpx applies the timeout per phase, so one send can exceed it.
            join_timeout=settings.request_timeout_sec * 2,
        )
        ctx = cls(tracker, scheduler, sessions, transport=owned, log=log)
        if start:
            scheduler.start()
        return ctx

    @property
    def session_id(self) -> str | None:
        try:
            return self._sessions.get_or_create_session().session_id
        except Exception:
            return None

    @property
    def tracker(self) -> EventTracker:
        return self._tracker

    @property
    def scheduler(self) -> FlushScheduler:
        return self._scheduler

    # ─── Semantic events ────────────────────────────────────────────

    @_never_raises
    def track_event(self, event: TrackEvent | dict[str, Any]):
        return self._tracker.track(event)

    @_never_raises
    def track_product_click(self, product_id: str, product_name: str):
        return self._emit(EventType.PRODUCT_CLICK, product_id=product_id, productName=product_name)

    @_never_raises
    def track_category_view(self, category_id: str, category_name: str):
        return self._emit(EventType.CATEGORY_VIEW, category_id=category_id, categoryName=category_name)

    @_never_raises
    def track_add_to_cart(self, product_id: str, product_name: str):
        return self._emit(EventType.ADD_TO_CART, product_id=product_id, productName=product_name)

    @_never_raises
    def track_wishlist_add(self, product_id: str, product_name: str):
        return self._emit(EventType.WISHLIST_ADD, product_id=product_id, productName=product_name)

    @_never_raises
    def track_purchase(self, product_id: str, product_name: str, revenue: float | None = None):
        extra = {"revenue": revenue} if revenue else {}
        return self._emit(EventType.PURCHASE, product_id=product_id, productName=product_name, **extra)

    @_never_raises
    def track_search(self, query: str, results_count: int | None = None):
        extra = {"resultsCount": results_count} if results_count else {}
        return self._emit(EventType.SEARCH, searchQuery=query, **extra)

    @_never_raises
    def track_filter(self, criteria: Any):
        return self._emit(EventType.FILTER_APPLY, filterCriteria=criteria)

    @_never_raises
    def track_share(self, product_id: str | None = None, channel: str | None = None):
        extra = {"channel": channel} if channel else {}
        return self._emit(EventType.SHARE, product_id=product_id, **extra)

    @_never_raises
    def track_checkout_start(self, revenue: float | None = None):
        return self._emit(EventType.CHECKOUT_START, **({"revenue": revenue} if revenue else {}))

    @_never_raises
    def track_checkout_complete(self, revenue: float | None = None):
        return self._emit(EventType.CHECKOUT_COMPLETE, **({"revenue": revenue} if revenue else {}))

    @_never_raises
    def track_cart_abandon(self, revenue: float | None = None):
        return self._emit(EventType.CART_ABANDON, **({"revenue": revenue} if revenue else {}))

    @_never_raises
    def track_page_view(self, page_name: str | None = None):
        return self._tracker.record_page_view(page_name)

    def _emit(
        self,
        event_type: EventType,
        product_id: str | None = None,
        category_id: str | None = None,
        **metadata,
    ):
        return self._tracker.track(
            {
                "type": event_type,
                "product_id": product_id,
                "category_id": category_id,
                "metadata": metadata,
            }
        )

    # ─── Navigation & engagement ────────────────────────────────────

    @_never_raises
    def navigate(self, path: str):
        """
        Route change: report time spent on the page being left, move the
        environment to the entering page, then report its view. Re-announcing
        the active path is ignored.
        """
        with self._nav_lock:
            previous = self._active_path
            if previous == path:
                return None
            if previous is not None:
                self._tracker.track_time_spent(page_name=previous)
            self._active_path = path
            self._tracker.enter_page(path)
            return self._tracker.record_page_view(path)

    @_never_raises
    def track_time_spent(self, product_id: str | None = None, product_name: str | None = None):
        return self._tracker.track_time_spent(product_id, product_name)

    @_never_raises
    def track_custom_event(self, event_type: str, metadata: dict[str, Any] | None = None):
        """App-defined event, attributed to the active page."""
        return self._tracker.track_custom_event(event_type, self._active_path, metadata)

    @_never_raises
    def current_metrics(self) -> PageMetrics:
        return self._tracker.current_metrics()

    @_never_raises
    def record_scroll(self, percent: float):
        return self._tracker.record_scroll(percent)

    @_never_raises
    def record_interaction(self, kind: str = "click"):
        return self._tracker.record_interaction(kind)

    @_never_raises
    def flush(self):
        """Opportunistic flush outside the timer."""
        return self._scheduler.tick()

    @_never_raises
    def close(self):
        """Teardown: report the last page, cancel the timer, beacon what is left."""
        if self._closed:
            return None
        self._closed = True
        if self._active_path is not None:
            self._tracker.track_time_spent(page_name=self._active_path)
        self._scheduler.stop()
        self._scheduler.flush_on_unload()
        if self._owned_transport is not None:
            self._owned_transport.close()
        return None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
