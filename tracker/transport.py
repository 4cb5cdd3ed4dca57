"""HTTP transport to the analytics collector (single-event, batch and beacon sends)."""

import httpx

from config import Settings, configure_logging
from tracker.errors import TransportError
from tracker.schemas import EnrichedEvent

TRACK_PATH = "/analytics/track"
BATCH_TRACK_PATH = "/analytics/batch-track"


class TrackingTransport:
    """
    Thin httpx wrapper around the collector endpoints.

    ``send_event`` and ``send_batch`` raise TransportError on any network
    error, timeout or non-2xx answer so the caller can decide to requeue.
    ``beacon`` is fire-and-forget: it never raises and never reads the body.
    """

    def __init__(self, settings: Settings, client: httpx.Client | None = None, log=None):
        self.log = log or configure_logging("transport", settings.log_level)
        self._beacon_timeout = settings.beacon_timeout_sec
        self._client = client or httpx.Client(
            base_url=settings.api_url,
            timeout=settings.request_timeout_sec,
            headers={"Content-Type": "application/json"},
        )

    def send_event(self, event: EnrichedEvent, session: dict) -> None:
        self._post(TRACK_PATH, {"event": event.to_wire(), "sessionInfo": session})

    def send_batch(self, events: list[EnrichedEvent], session: dict) -> None:
        self._post(
            BATCH_TRACK_PATH,
            {
                "events": [e.to_wire() for e in events],
                "sessionInfo": session,
            },
        )

    def beacon(self, events: list[EnrichedEvent], session: dict) -> bool:
        """Best-effort send during teardown. Returns whether the request went out."""
        payload = {
            "events": [e.to_wire() for e in events],
            "sessionInfo": session,
        }
        try:
            self._client.post(BATCH_TRACK_PATH, json=payload, timeout=self._beacon_timeout)
        except httpx.HTTPError as e:
            self.log.warning("beacon_failed", events=len(events), error=str(e))
            return False
        return True

    def _post(self, path: str, payload: dict) -> None:
        try:
            response = self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"POST {path} failed: {e}") from e
        if response.is_error:
            raise TransportError(
                f"POST {path} returned {response.status_code}",
                status_code=response.status_code,
            )

    def close(self):
        self._client.close()
