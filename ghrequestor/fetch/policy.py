"""Retry and proactive rate-limit decisions.

Both policies are stateless values built from a ``FetchConfig``. The
session owns the activity record and the actual waiting; the policies only
decide.
"""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from ghrequestor.fetch.config import FetchConfig
from ghrequestor.fetch.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    MIN_RATE_LIMIT_DELAY_MS,
)
from ghrequestor.fetch.models import DelayEntry, DelayKind, FailureClass, PageResponse


class RetryPolicy(BaseModel):
    """Decides whether an attempt is retried and how long to wait first.

    Transport errors, 5xx and 403 responses are retryable. A 403 means
    GitHub applied its secondary rate limit, so the longer forbidden delay
    is used. Every other status is returned as-is since retrying will not
    help. Delays are constant, there is no backoff.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1)] = 5
    retry_delay_ms: Annotated[int, Field(ge=0)] = 500
    forbidden_delay_ms: Annotated[int, Field(ge=0)] = 3 * 60 * 1000

    @classmethod
    def from_config(cls, config: FetchConfig) -> "RetryPolicy":
        """Build the policy from session configuration."""
        return cls(
            max_attempts=config.max_attempts,
            retry_delay_ms=config.retry_delay_ms,
            forbidden_delay_ms=config.forbidden_delay_ms,
        )

    def should_retry(
        self,
        error: Exception | None,
        response: PageResponse | None,
    ) -> bool:
        """Determine if the outcome of an attempt is worth another attempt.

        Args:
            error: Transport error, if no response was obtained.
            response: Response of the attempt, if any.

        Returns:
            True if the request should be retried.
        """
        if error is not None or response is None:
            return True
        status = response.status_code
        return (
            status >= HTTP_STATUS_SERVER_ERROR_MIN or status == HTTP_STATUS_FORBIDDEN
        )

    def delay_for(
        self,
        error: Exception | None,  # noqa: ARG002
        response: PageResponse | None,
    ) -> DelayEntry:
        """Select the wait before the next attempt.

        Args:
            error: Transport error, if no response was obtained.
            response: Response of the attempt, if any.

        Returns:
            Tagged delay entry to record and wait for.
        """
        if response is not None and response.status_code == HTTP_STATUS_FORBIDDEN:
            return DelayEntry(
                kind=DelayKind.FORBIDDEN, duration_ms=self.forbidden_delay_ms
            )
        return DelayEntry(kind=DelayKind.RETRY, duration_ms=self.retry_delay_ms)

    def attempts_remain(self, attempt: int) -> bool:
        """Check whether another attempt may follow attempt number ``attempt``."""
        return attempt < self.max_attempts

    @staticmethod
    def classify(
        error: Exception | None,
        response: PageResponse | None,
    ) -> FailureClass | None:
        """Classify an unsuccessful attempt.

        Returns:
            The failure class, or None for a 2xx response.
        """
        if error is not None or response is None:
            return FailureClass.TRANSPORT
        status = response.status_code
        if status >= HTTP_STATUS_SERVER_ERROR_MIN:
            return FailureClass.SERVER_OVERLOAD
        if status == HTTP_STATUS_FORBIDDEN:
            return FailureClass.SECONDARY_LOCKOUT
        if status >= HTTP_STATUS_BAD_REQUEST:
            return FailureClass.CLIENT_ERROR
        if status == HTTP_STATUS_NOT_MODIFIED:
            return FailureClass.NOT_MODIFIED
        if status >= HTTP_STATUS_OK_MAX:
            return FailureClass.REDIRECT
        return None


class RateLimitGovernor(BaseModel):
    """Computes a proactive sleep when the remaining quota runs low.

    Fires on successful responses to avoid a lockout on the next call.
    Unlike the 403 handling in ``RetryPolicy`` it never reacts to a failure.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    token_lower_bound: Annotated[int, Field(ge=0)] = 500
    enabled: bool = True

    @classmethod
    def from_config(cls, config: FetchConfig) -> "RateLimitGovernor":
        """Build the governor from session configuration."""
        return cls(
            token_lower_bound=config.token_lower_bound,
            enabled=config.delay_on_throttle,
        )

    def throttle_delay(self, response: PageResponse, now_ms: int) -> int | None:
        """Compute how long to sleep before handing the response back.

        Args:
            response: Successful response carrying quota headers.
            now_ms: Current time in epoch milliseconds.

        Returns:
            Milliseconds to sleep (at least 2000), or None when quota is
            sufficient or throttling is disabled.
        """
        if not self.enabled:
            return None
        # Missing or unparseable quota counts as exhausted
        remaining = response.rate_limit_remaining or 0
        if remaining >= self.token_lower_bound:
            return None

        reset = response.rate_limit_reset or 0
        return max(reset * 1000 - now_ms, MIN_RATE_LIMIT_DELAY_MS)
