"""Error taxonomy for place lookups.

Every error carries an HTTP-style ``code``, a canonical ``status`` token and
a ``message``. None of them are retried: they are reported to the caller
as-is.
"""

from .core import NormalizedError


class PlacesProxyError(Exception):
    """Base class for errors surfaced to API callers."""

    default_status = "ERROR"

    def __init__(self, code: int, message: str, status: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status or self.default_status

    @property
    def http_status(self) -> int:
        """Status code used when the error is written to an HTTP response."""
        return self.code

    def to_error(self) -> NormalizedError:
        return NormalizedError(code=self.code, status=self.status, message=self.message)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlacesProxyError):
            return NotImplemented
        return type(self) is type(other) and self.to_error() == other.to_error()

    def __hash__(self) -> int:
        return hash((type(self), self.code, self.status, self.message))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"status={self.status!r}, message={self.message!r})"
        )


class ClientError(PlacesProxyError):
    """The caller sent an unusable request (e.g. no tenant key)."""

    default_status = "INVALID_REQUEST"

    def __init__(self, message: str) -> None:
        super().__init__(400, message)


class UpstreamTransportError(PlacesProxyError):
    """The upstream answered with a non-success HTTP status or could not be reached."""

    default_status = "UPSTREAM_ERROR"


class UpstreamLogicalError(PlacesProxyError):
    """The upstream answered 2xx but embedded a failure status in the body."""

    default_status = "UNKNOWN_ERROR"

    @property
    def http_status(self) -> int:
        # Tokens such as ZERO_RESULTS map below 400 and cannot carry an error body.
        return self.code if self.code >= 400 else 502


class UpstreamParseError(PlacesProxyError):
    """The upstream answered 2xx with a body that is not usable JSON."""

    default_status = "PARSE_ERROR"

    @property
    def http_status(self) -> int:
        return 500
