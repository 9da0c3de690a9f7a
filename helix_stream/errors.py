"""Error taxonomy for streamed result ingestion."""


class HelixStreamError(Exception):
    """Base class for all client-side streaming errors."""

    pass


class TransportError(HelixStreamError):
    """Raised when the network or HTTP layer fails before or during a stream.

    Attributes:
        status_code: HTTP status code when the server answered, else None.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(HelixStreamError):
    """Raised for a single malformed line. Never fatal to the stream."""

    pass


class ProtocolError(HelixStreamError):
    """Raised when the server sends an explicit error record or event."""

    pass


class ConcurrencyError(HelixStreamError):
    """Raised when a second load is requested while one is in flight."""

    pass
