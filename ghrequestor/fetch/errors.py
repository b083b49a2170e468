"""Error types for the fetch layer.

Every terminal error carries the activity accumulated by its session up to
and including the failing attempt, so callers can see how many attempts and
which delays preceded the failure.
"""

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from ghrequestor.fetch.models import Activity, FailureClass, PageResponse


class RequestorError(Exception):
    """Base exception for fetch, pagination and flatten failures."""

    def __init__(
        self,
        message: str,
        *,
        response: "PageResponse | None" = None,
        activity: "tuple[Activity, ...]" = (),
        failure_class: "FailureClass | None" = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            response: Response that triggered the failure, if any.
            activity: Activity records accumulated so far.
            failure_class: Classification of the failure.
        """
        super().__init__(message)
        self.message = message
        self.response = response
        self.activity = tuple(activity)
        self.failure_class = failure_class

    @property
    def status_code(self) -> int | None:
        """Status code of the triggering response, if any."""
        return self.response.status_code if self.response else None

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error": type(self).__name__,
            "message": self.message,
            "status_code": self.status_code,
            "failure_class": self.failure_class.value if self.failure_class else None,
            "activity": [record.to_dict() for record in self.activity],
        }


class FetchFailedError(RequestorError):
    """A page fetch ended in a terminal failure.

    Raised when the transport never produced a response, or when a
    retryable response (5xx, 403) was still returned on the last attempt.
    """


class UnexpectedStatusError(RequestorError):
    """A caller that required success received a non-2xx response."""


class SessionReusedError(RequestorError):
    """A single-use session or paginator was asked to run twice."""


class MalformedLinkHeaderError(RequestorError, ValueError):
    """The ``link`` response header is empty or cannot be parsed."""

    def __init__(
        self,
        message: str,
        header: str | None = None,
        *,
        response: "PageResponse | None" = None,
        activity: "tuple[Activity, ...]" = (),
    ) -> None:
        """Initialize the error.

        Args:
            message: Description of the parse failure.
            header: Offending header value.
            response: Response that carried the header, if known.
            activity: Activity records accumulated so far.
        """
        super().__init__(message, response=response, activity=activity)
        self.header = header


class FlattenError(RequestorError):
    """Page responses could not be reduced to a flat item sequence."""


class MissingSupplierError(FlattenError):
    """A 304 page was met but no supplier was given to resolve it."""


class UnexpectedPageStatusError(FlattenError):
    """A page with a status other than 2xx or 304 reached the flattener."""


class TransportError(Exception):
    """The transport could not obtain a response.

    Raised by transports for connection failures, timeouts and other
    network faults. The session treats it as retryable.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        """Initialize the transport error.

        Args:
            message: Description of the failure.
            url: URL that was being fetched.
        """
        super().__init__(message)
        self.message = message
        self.url = url
