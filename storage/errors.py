"""Storage error types."""


class StorageUnavailable(Exception):
    """The backing store cannot be read or written (disabled, full, unreachable)."""
