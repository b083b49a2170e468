"""Configuration model for fetch sessions."""

from collections.abc import Mapping
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ghrequestor.fetch.constants import (
    DEFAULT_FORBIDDEN_DELAY_MS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_TOKEN_LOWER_BOUND,
    DEFAULT_USER_AGENT,
    HEADER_IF_NONE_MATCH,
    HEADER_USER_AGENT,
    MAX_PER_PAGE,
)


# Option names accepted from callers used to GitHub-style camel case
_OPTION_ALIASES = {
    "maxAttempts": "max_attempts",
    "retryDelay": "retry_delay_ms",
    "retryDelayMs": "retry_delay_ms",
    "forbiddenDelay": "forbidden_delay_ms",
    "forbiddenDelayMs": "forbidden_delay_ms",
    "tokenLowerBound": "token_lower_bound",
    "delayOnThrottle": "delay_on_throttle",
    "testMode": "test_mode",
    "perPage": "per_page",
    "timeout": "timeout_seconds",
}

_TEST_MODE = "test"


def _default_headers() -> dict[str, str]:
    return {HEADER_USER_AGENT: DEFAULT_USER_AGENT}


def _normalize_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Translate alias keys and ``mode="test"`` to field names."""
    values: dict[str, Any] = {}
    for key, value in options.items():
        if key == "mode":
            values["test_mode"] = value == _TEST_MODE
            continue
        values[_OPTION_ALIASES.get(key, key)] = value
    return values


class FetchConfig(BaseModel):
    """Options for one fetch session and the pagination run it serves.

    Immutable once built. Per-page conditional headers are derived with
    ``headers_for_page`` instead of changing the configuration.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=100)] = DEFAULT_MAX_ATTEMPTS
    retry_delay_ms: Annotated[int, Field(ge=0)] = DEFAULT_RETRY_DELAY_MS
    forbidden_delay_ms: Annotated[int, Field(ge=0)] = DEFAULT_FORBIDDEN_DELAY_MS
    token_lower_bound: Annotated[int, Field(ge=0)] = DEFAULT_TOKEN_LOWER_BOUND
    delay_on_throttle: bool = Field(
        default=True, description="Sleep ahead of quota exhaustion"
    )
    test_mode: bool = Field(
        default=False,
        description="Record every delay but never actually wait",
    )
    etags: tuple[str | None, ...] = Field(
        default=(), description="If-None-Match values, indexed by page number"
    )
    headers: dict[str, str] = Field(default_factory=_default_headers)
    timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = (
        DEFAULT_TIMEOUT_SECONDS
    )
    per_page: Annotated[int, Field(ge=1, le=MAX_PER_PAGE)] = MAX_PER_PAGE

    @field_validator("headers")
    @classmethod
    def validate_header_names(cls, v: dict[str, str]) -> dict[str, str]:
        """Reject blank header names."""
        for key in v:
            if not key.strip():
                msg = "Header names must not be blank"
                raise ValueError(msg)
        return v

    @classmethod
    def from_options(
        cls,
        options: "FetchConfig | Mapping[str, Any] | None" = None,
    ) -> "FetchConfig":
        """Merge caller options over the built-in defaults.

        Headers merge key by key, so supplying ``Authorization`` keeps the
        default ``User-Agent``.

        Args:
            options: A ready configuration, a mapping of option names
                (snake case or the camel-case aliases), or None.

        Returns:
            The merged configuration.
        """
        if isinstance(options, FetchConfig):
            return options

        values = _normalize_options(options or {})
        values["headers"] = {**_default_headers(), **(values.get("headers") or {})}
        return cls(**values)

    def merged_with(self, options: Mapping[str, Any]) -> "FetchConfig":
        """Return a new configuration with ``options`` layered over this one."""
        overrides = _normalize_options(options)
        values = {**self.model_dump(), **overrides}
        values["headers"] = {**self.headers, **(overrides.get("headers") or {})}
        return FetchConfig(**values)

    def etag_for_page(self, page_index: int) -> str | None:
        """Get the conditional-request tag for a page, if any."""
        if 0 <= page_index < len(self.etags):
            return self.etags[page_index]
        return None

    def headers_for_page(self, page_index: int) -> dict[str, str]:
        """Build request headers for one page.

        Args:
            page_index: Zero-based page number across the pagination run.

        Returns:
            Configured headers plus ``If-None-Match`` when an etag exists
            for the page.
        """
        headers = dict(self.headers)
        etag = self.etag_for_page(page_index)
        if etag is not None:
            headers[HEADER_IF_NONE_MATCH] = etag
        return headers
