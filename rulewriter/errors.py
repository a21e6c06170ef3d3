"""Error types raised by the writer pipeline."""
from typing import Optional


class WriterError(Exception):
    """Base class for all writer errors."""


class ConfigError(WriterError, ValueError):
    """Invalid writer settings. Raised once, at construction."""


class TransportError(WriterError):
    """The HTTP transport or remote-write client could not be built."""


class ExtractionError(WriterError, ValueError):
    """Frames could not be read as a numeric collection."""


class WriteError(WriterError):
    """A remote-write call failed.

    ``status_code`` is None when no HTTP response was received
    (connection refused, timeout, ...).
    """

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class RemoteWriteError(WriterError):
    """A write that was not tolerated, wrapped with context."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
