"""Data models for the fetch layer."""

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ghrequestor.fetch.constants import (
    HEADER_ETAG,
    HEADER_LINK,
    HEADER_RATELIMIT_REMAINING,
    HEADER_RATELIMIT_RESET,
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
)
from ghrequestor.fetch.links import parse_link_header


class FailureClass(str, Enum):
    """Classification of unsuccessful attempts.

    - TRANSPORT: No response was obtained (connection, timeout, ...)
    - SERVER_OVERLOAD: 5xx response, retried with the ordinary delay
    - SECONDARY_LOCKOUT: 403 response, retried with the forbidden delay
    - CLIENT_ERROR: Other 4xx response, never retried
    - REDIRECT: 3xx response other than 304, never retried
    - NOT_MODIFIED: 304 response to a conditional request
    """

    TRANSPORT = "TRANSPORT"
    SERVER_OVERLOAD = "SERVER_OVERLOAD"
    SECONDARY_LOCKOUT = "SECONDARY_LOCKOUT"
    CLIENT_ERROR = "CLIENT_ERROR"
    REDIRECT = "REDIRECT"
    NOT_MODIFIED = "NOT_MODIFIED"


class DelayKind(str, Enum):
    """Why a retry waited."""

    RETRY = "retry"
    FORBIDDEN = "forbidden"


class DelayEntry(BaseModel):
    """One wait taken before a retry attempt."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: DelayKind
    duration_ms: Annotated[int, Field(ge=0)]

    def to_dict(self) -> dict[str, int]:
        """Return the tagged form, e.g. ``{"retry": 500}``."""
        return {self.kind.value: self.duration_ms}


class Activity(BaseModel):
    """Immutable audit record of one logical page fetch.

    ``attempts`` is None when no response was ever received. ``delays`` is
    empty when no retry happened. ``rate_limit_delay`` is set only when
    proactive throttling was computed for the page.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    attempts: int | None = None
    delays: tuple[DelayEntry, ...] = ()
    rate_limit_delay: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary, omitting absent fields."""
        data: dict[str, Any] = {}
        if self.attempts is not None:
            data["attempts"] = self.attempts
        if self.delays:
            data["delays"] = [delay.to_dict() for delay in self.delays]
        if self.rate_limit_delay is not None:
            data["rateLimitDelay"] = self.rate_limit_delay
        return data


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class PageResponse(BaseModel):
    """Response envelope for one HTTP exchange.

    Header names are stored lower-cased.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    url: Annotated[str, Field(min_length=1, description="Requested URL")]
    status_code: int = Field(ge=100, le=599, description="HTTP status code")
    reason: str = Field(default="", description="Reason phrase")
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None

    @field_validator("headers", mode="before")
    @classmethod
    def lower_header_names(cls, v: Any) -> Any:
        """Normalize header names to lower case."""
        if isinstance(v, dict):
            return {str(key).lower(): str(value) for key, value in v.items()}
        return v

    @property
    def is_success(self) -> bool:
        """Check for a 2xx status."""
        return HTTP_STATUS_OK_MIN <= self.status_code < HTTP_STATUS_OK_MAX

    @property
    def is_not_modified(self) -> bool:
        """Check for a 304 status."""
        return self.status_code == HTTP_STATUS_NOT_MODIFIED

    @property
    def links(self) -> dict[str, str]:
        """Parsed ``link`` header, empty when the header is absent.

        Raises:
            MalformedLinkHeaderError: If the header is present but invalid.
        """
        header = self.headers.get(HEADER_LINK)
        if header is None:
            return {}
        return parse_link_header(header)

    @property
    def next_url(self) -> str | None:
        """URL of the ``next`` relation, if any."""
        return self.links.get("next")

    @property
    def etag(self) -> str | None:
        """Entity tag of the response, if any."""
        return self.headers.get(HEADER_ETAG)

    @property
    def rate_limit_remaining(self) -> int | None:
        """Remaining request quota, None if absent or unparseable."""
        return _parse_int(self.headers.get(HEADER_RATELIMIT_REMAINING))

    @property
    def rate_limit_reset(self) -> int | None:
        """Quota reset instant in epoch seconds, None if absent or unparseable."""
        return _parse_int(self.headers.get(HEADER_RATELIMIT_RESET))


class FetchResult(BaseModel):
    """Result of a single fetch, paired with its session's activity."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    response: PageResponse
    activity: tuple[Activity, ...] = ()

    @property
    def status_code(self) -> int:
        """Status code of the response."""
        return self.response.status_code

    @property
    def body(self) -> Any:
        """Decoded body of the response."""
        return self.response.body


class PageSequence(BaseModel):
    """Raw pagination result.

    ``completed`` is False when pagination stopped early on a page whose
    status was neither 2xx nor 304; that page is the last entry of
    ``pages`` and is also exposed as ``stopped_by``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pages: tuple[PageResponse, ...] = ()
    activity: tuple[Activity, ...] = ()
    completed: bool = True
    stopped_by: PageResponse | None = None

    def __len__(self) -> int:
        return len(self.pages)


class ItemsResult(BaseModel):
    """Flattened pagination result."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    items: list[Any] = Field(default_factory=list)
    activity: tuple[Activity, ...] = ()

    def __len__(self) -> int:
        return len(self.items)
