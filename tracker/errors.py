"""Tracking pipeline error types. None of these escape the TrackingContext facade."""


class TrackingError(Exception):
    pass


class TransportError(TrackingError):
    """The collector could not be reached or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
