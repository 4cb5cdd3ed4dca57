"""Session lifecycle. One session record per browsing session, persisted across page loads."""

import secrets
import string
import threading
from datetime import datetime, timezone

from config import configure_logging
from storage.kv_store import KeyValueStore, SafeStore
from tracker.clock import Clock, SystemClock
from tracker.probe import Environment, device_info
from tracker.schemas import SessionInfo

# Per-session store
SESSION_ID_KEY = "analytics_session_id"
SESSION_START_KEY = "analytics_session_start"
PAGE_VIEWS_KEY = "analytics_page_views"
# Long-lived store
RETURNING_USER_KEY = "analytics_returning_user"
CONSENT_KEY = "analytics_consent"

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_session_id(now: datetime) -> str:
    """Time-ordered prefix plus 9 random base36 chars (~46 bits of entropy per millisecond)."""
    prefix = _to_base36(int(now.timestamp() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{prefix}-{suffix}"


def _parse_start(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_count(raw: str | None) -> int:
    try:
        return max(0, int(raw or 0))
    except ValueError:
        return 0


class SessionManager:
    """
    Owns the session record for one page context.

    The session id, start time and page-view count live in the per-session
    store (cleared when the browsing session ends). The returning-user flag
    lives in the long-lived store and survives sessions. Both stores are
    wrapped in SafeStore, so a disabled store degrades to in-memory state.
    """

    def __init__(
        self,
        session_store: KeyValueStore | None,
        local_store: KeyValueStore | None,
        environment: Environment,
        clock: Clock | None = None,
        log=None,
    ):
        self.log = log or configure_logging("session")
        self._session_store = _safe(session_store, "session", self.log)
        self._local_store = _safe(local_store, "local", self.log)
        self._env = environment
        self._clock = clock or SystemClock()
        self._session: SessionInfo | None = None
        self._lock = threading.Lock()

    @property
    def current(self) -> SessionInfo | None:
        return self._session

    def get_or_create_session(self) -> SessionInfo:
        with self._lock:
            if self._session is None:
                self._session = self._rehydrate() or self._create()
            return self._session

    def _rehydrate(self) -> SessionInfo | None:
        session_id = self._session_store.get(SESSION_ID_KEY)
        start_time = _parse_start(self._session_store.get(SESSION_START_KEY))
        if not session_id or start_time is None:
            return None

        session = SessionInfo(
            session_id=session_id,
            start_time=start_time,
            page_views=_parse_count(self._session_store.get(PAGE_VIEWS_KEY)),
            is_returning_user=self._local_store.get(RETURNING_USER_KEY) == "true",
            device_info=device_info(self._env),
        )
        self.log.debug("session_resumed", session_id=session_id, page_views=session.page_views)
        return session

    def _create(self) -> SessionInfo:
        now = self._clock.now()
        session = SessionInfo(
            session_id=generate_session_id(now),
            start_time=now,
            page_views=0,
            is_returning_user=self._local_store.get(RETURNING_USER_KEY) == "true",
            device_info=device_info(self._env),
        )
        self._session_store.set(SESSION_ID_KEY, session.session_id)
        self._session_store.set(SESSION_START_KEY, now.isoformat())
        # Every later session on this device is a returning one.
        self._local_store.set(RETURNING_USER_KEY, "true")
        self.log.info(
            "session_created",
            session_id=session.session_id,
            returning=session.is_returning_user,
        )
        return session

    def record_page_view(self) -> int:
        """Count one logical navigation and persist the new total."""
        session = self.get_or_create_session()
        with self._lock:
            session.page_views += 1
            count = session.page_views
        self._session_store.set(PAGE_VIEWS_KEY, str(count))
        return count

    def session_duration(self, now: datetime | None = None) -> int:
        session = self.get_or_create_session()
        end = now or self._clock.now()
        return round((end - session.start_time).total_seconds())

    def snapshot(self) -> dict:
        """Wire form of the session as sent alongside events, with the current duration."""
        session = self.get_or_create_session()
        payload = session.to_wire()
        payload["duration"] = self.session_duration()
        return payload

    def clear(self):
        """End the browsing session. The returning-user flag is kept."""
        with self._lock:
            for key in (SESSION_ID_KEY, SESSION_START_KEY, PAGE_VIEWS_KEY):
                self._session_store.delete(key)
            self._session = None


def _safe(store: KeyValueStore | None, name: str, log) -> SafeStore:
    if isinstance(store, SafeStore):
        return store
    return SafeStore(store, name, log=log)
