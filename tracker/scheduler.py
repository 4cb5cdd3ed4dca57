"""Pending event queue and the flush scheduler that drains it to the collector."""

import threading
from dataclasses import dataclass

from config import configure_logging
from tracker.clock import Clock, SystemClock
from tracker.errors import TransportError
from tracker.schemas import EnrichedEvent
from tracker.session import SessionManager
from tracker.transport import TrackingTransport


class PendingQueue:
    """
    Ordered, bounded queue of enriched events awaiting transmission.

    Appended to by the tracker, drained only by the scheduler. ``drain`` swaps
    the whole list out under the lock, so two flush paths can never send the
    same events. When the bound is exceeded the oldest events are dropped.
    """

    def __init__(self, max_size: int = 1000, log=None):
        self.max_size = max_size
        self.log = log or configure_logging("queue")
        self._items: list[EnrichedEvent] = []
        self._lock = threading.Lock()
        self.dropped = 0

    def append(self, event: EnrichedEvent):
        with self._lock:
            self._items.append(event)
            self._enforce_bound()

    def drain(self) -> list[EnrichedEvent]:
        with self._lock:
            batch, self._items = self._items, []
        return batch

    def requeue_front(self, batch: list[EnrichedEvent]):
        """Put a failed batch back ahead of anything enqueued since it was drained."""
        if not batch:
            return
        with self._lock:
            self._items = batch + self._items
            self._enforce_bound()

    def snapshot(self) -> list[EnrichedEvent]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def _enforce_bound(self):
        overflow = len(self._items) - self.max_size
        if overflow > 0:
            del self._items[:overflow]
            self.dropped += overflow
            self.log.warning("queue_overflow", dropped=overflow, max_size=self.max_size)


@dataclass
class FlushResult:
    sent: int = 0
    requeued: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FlushScheduler:
    """
    Drains the pending queue every ``interval_sec`` on a background thread.

    ``tick`` is the unit of work and can be called directly (tests, or an
    opportunistic flush). A failed batch is requeued at the front, so delivery
    is at-least-once. ``flush_on_unload`` is the one-shot teardown path.
    """

    def __init__(
        self,
        queue: PendingQueue,
        transport: TrackingTransport,
        session_manager: SessionManager,
        clock: Clock | None = None,
        interval_sec: float = 5.0,
        join_timeout: float = 15.0,
        log=None,
    ):
        self.log = log or configure_logging("flush-scheduler")
        self._queue = queue
        self._transport = transport
        self._sessions = session_manager
        self._clock = clock or SystemClock()
        self.interval_sec = interval_sec
        # Must outlast one in-flight send_batch, or its requeue lands after teardown.
        self.join_timeout = join_timeout
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._flushed_total = 0
        self._failed_total = 0

    @property
    def queue(self) -> PendingQueue:
        return self._queue

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> FlushResult:
        if not len(self._queue):
            return FlushResult()
        session = self._sessions.snapshot()
        batch = self._queue.drain()
        if not batch:
            return FlushResult()

        try:
            self._transport.send_batch(batch, session)
        except TransportError as e:
            self._queue.requeue_front(batch)
            self._failed_total += 1
            self.log.warning(
                "batch_requeued",
                events=len(batch),
                status_code=e.status_code,
                error=str(e),
                queued=len(self._queue),
            )
            return FlushResult(requeued=len(batch), error=str(e))
        except Exception:
            # Not a delivery failure, but the drained events must not be lost.
            self._queue.requeue_front(batch)
            raise

        self._flushed_total += len(batch)
        self.log.info("batch_flushed", events=len(batch), total_flushed=self._flushed_total)
        return FlushResult(sent=len(batch))

    def flush_on_unload(self) -> int:
        """Hand whatever is queued to the beacon transport. No retry, no requeue."""
        if not len(self._queue):
            return 0
        session = self._sessions.snapshot()
        batch = self._queue.drain()
        if not batch:
            return 0
        self._transport.beacon(batch, session)
        self.log.info("unload_flush", events=len(batch))
        return len(batch)

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._flush_loop, name="telemetry-flush", daemon=True)
        self._thread.start()
        self.log.info("flush_scheduler_started", interval_sec=self.interval_sec)

    def stop(self, timeout: float | None = None):
        """Cancel the timer and wait for an in-flight tick. Safe to call more than once."""
        self._stop.set()
        if self._thread is None:
            return
        timeout = self.join_timeout if timeout is None else timeout
        self._thread.join(timeout)
        if self._thread.is_alive():
            self.log.warning(
                "flush_thread_still_running",
                join_timeout=timeout,
                queued=len(self._queue),
            )
            return
        self._thread = None
        self.log.info(
            "flush_scheduler_stopped",
            total_flushed=self._flushed_total,
            failed_flushes=self._failed_total,
        )

    def _flush_loop(self):
        while not self._clock.wait(self._stop, self.interval_sec):
            try:
                self.tick()
            except Exception as e:
                # The loop must survive anything a session snapshot or transport throws.
                self.log.error("flush_error", error_type=type(e).__name__, error=str(e))

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()
