"""Exception hierarchy for the book AI bridge.

    BridgeError
    +-- ValidationError     (malformed document / front-matter)
    +-- ProviderError       (embedding or completion call failed)
    +-- StoreError          (relational or vector store operation failed)
    +-- NotFoundError       (nothing to answer from, e.g. no user message)
    +-- ConfigurationError  (feature requested without its configuration)

Ingestion catches these at the per-document boundary; the API maps them to
JSON error payloads (see server/errors.py).
"""


class BridgeError(Exception):
    """Base class for every error raised by the bridge."""

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        self.message = message
        super().__init__(message)


class ValidationError(BridgeError):
    """Raised when a document cannot be parsed or its front-matter is invalid."""


class RequestError(BridgeError):
    """Base for errors caused by a call to an external backend.

    Attributes:
        status_code: HTTP status of the failed response, None for transport errors.
        body: Raw response body (possibly truncated), None for transport errors.
    """

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code})"
        return self.message


class ProviderError(RequestError):
    """Raised when the embedding/completion provider returns a non-success response."""


class StoreError(RequestError):
    """Raised when the metadata store or the vector index fails."""


class NotFoundError(BridgeError):
    """Raised when a request has nothing to work on (e.g. no user message)."""


class ConfigurationError(BridgeError):
    """Raised when an operation needs configuration that is not set."""
