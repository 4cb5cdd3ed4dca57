from .clock import Clock, FakeClock, SystemClock
from .context import NoOpTrackingContext, TrackingContext, should_track
from .enricher import EventTracker
from .errors import TrackingError, TransportError
from .probe import Environment
from .scheduler import FlushResult, FlushScheduler, PendingQueue
from .schemas import EnrichedEvent, EventType, PageMetrics, SessionInfo, TrackEvent
from .session import SessionManager
from .transport import TrackingTransport

__all__ = [
    "Clock",
    "FakeClock",
    "SystemClock",
    "NoOpTrackingContext",
    "TrackingContext",
    "should_track",
    "EventTracker",
    "TrackingError",
    "TransportError",
    "Environment",
    "FlushResult",
    "FlushScheduler",
    "PendingQueue",
    "EnrichedEvent",
    "EventType",
    "PageMetrics",
    "SessionInfo",
    "TrackEvent",
    "SessionManager",
    "TrackingTransport",
]
