"""Injectable clocks. The scheduler and session manager never read wall time directly."""

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Current UTC time (timezone-aware)."""
        ...

    def monotonic(self) -> float:
        ...

    def wait(self, stop: threading.Event, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; return True if ``stop`` was set."""
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    def wait(self, stop: threading.Event, timeout: float) -> bool:
        return stop.wait(timeout)


class FakeClock:
    """Manually advanced clock. ``wait`` advances time instead of sleeping."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._mono = 0.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float):
        self._now += timedelta(seconds=seconds)
        self._mono += seconds

    def wait(self, stop: threading.Event, timeout: float) -> bool:
        if stop.is_set():
            return True
        self.advance(timeout)
        # Yield so a stop() from another thread can land between ticks.
        return stop.wait(0.001)
