"""Exception types raised while fetching devices and writing the note."""
from typing import Optional


class TailscaleNoteError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(TailscaleNoteError, RuntimeError):
    """Invalid runtime configuration (fatal at start-up)."""


class FetchError(TailscaleNoteError):
    """The device inventory could not be retrieved or understood."""


class TransportError(FetchError):
    """Network, DNS or connection failure while talking to the API."""


class HttpStatusError(FetchError):
    """The API answered with something other than 200 OK."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"Failed to fetch nodes: {status_code}")


class ParseError(FetchError):
    """The API response was not JSON or did not have the expected shape."""


class DocumentError(TailscaleNoteError):
    """Base class for failures touching the target note."""


class DocumentCreateError(DocumentError):
    pass


class DocumentTypeError(DocumentError):
    pass


class DocumentReadError(DocumentError):
    pass


class DocumentWriteError(DocumentError):
    pass
