"""Single-resource fetch session with retries and proactive throttling."""

import time
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from ghrequestor.fetch.activity import ActivityRecorder, PageActivity
from ghrequestor.fetch.config import FetchConfig
from ghrequestor.fetch.errors import (
    FetchFailedError,
    SessionReusedError,
    TransportError,
    UnexpectedStatusError,
)
from ghrequestor.fetch.links import ensure_max_per_page
from ghrequestor.fetch.metrics import FetchMetrics
from ghrequestor.fetch.models import (
    Activity,
    DelayKind,
    FetchResult,
    PageResponse,
)
from ghrequestor.fetch.policy import RateLimitGovernor, RetryPolicy
from ghrequestor.fetch.redact import redact_headers, redact_url
from ghrequestor.fetch.state_machine import PageStateMachine
from ghrequestor.fetch.transport import HttpxTransport, Transport


logger = structlog.get_logger()


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class FetchSession:
    """Orchestrates logical GETs through the transport.

    Wires the retry policy and the rate-limit governor around each
    attempt and records one activity entry per page. A session serves
    exactly one top-level request (a single fetch or one pagination run)
    and must not be reused.
    """

    def __init__(  # noqa: PLR0913
        self,
        config: FetchConfig | Mapping[str, Any] | None = None,
        transport: Transport | None = None,
        *,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], int] | None = None,
        log: structlog.stdlib.BoundLogger | None = None,
        recorder: ActivityRecorder | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            config: Session configuration or raw options to merge over the
                defaults.
            transport: Transport to send requests through.
            sleep: Blocking sleep taking seconds (default ``time.sleep``).
            clock: Returns the current time in epoch milliseconds.
            log: Logger for lifecycle events.
            recorder: Activity recorder; a fresh one by default.
        """
        self._config = FetchConfig.from_options(config)
        self._transport = transport or HttpxTransport()
        self._retry_policy = RetryPolicy.from_config(self._config)
        self._governor = RateLimitGovernor.from_config(self._config)
        self._sleep = sleep or time.sleep
        self._clock = clock or epoch_ms
        self._recorder = recorder or ActivityRecorder()
        self._metrics = FetchMetrics.get_instance()
        self._log = (log or logger).bind(component="fetch")
        self._started = False

    @property
    def config(self) -> FetchConfig:
        """Get the session configuration."""
        return self._config

    @property
    def activity(self) -> tuple[Activity, ...]:
        """Snapshot of the activity recorded so far."""
        return self._recorder.snapshot()

    def begin(self) -> None:
        """Mark the session as started.

        Raises:
            SessionReusedError: If the session already served a request.
        """
        if self._started:
            msg = "A fetch session serves one request; create a new one"
            raise SessionReusedError(msg, activity=self.activity)
        self._started = True
        self._log.debug(
            "session_started",
            max_attempts=self._config.max_attempts,
            headers=redact_headers(self._config.headers),
            test_mode=self._config.test_mode,
        )

    def fetch(self, url: str, *, require_success: bool = False) -> FetchResult:
        """Fetch a single resource.

        Responses with a status of 300 or more that are not retried are
        returned, not raised, unless ``require_success`` is set.

        Args:
            url: URL to fetch.
            require_success: Raise for any non-2xx final response.

        Returns:
            The response paired with the session activity.

        Raises:
            FetchFailedError: If no response was obtained or retries ran out.
            UnexpectedStatusError: If ``require_success`` and the response
                is not 2xx.
        """
        self.begin()
        result = self.fetch_page(url, page_index=0)
        if require_success and not result.response.is_success:
            response = result.response
            msg = f"Unexpected status {response.status_code} for {redact_url(url)}"
            raise UnexpectedStatusError(
                msg,
                response=response,
                activity=result.activity,
                failure_class=RetryPolicy.classify(None, response),
            )
        return result

    def fetch_page(self, url: str, page_index: int = 0) -> FetchResult:
        """Run the attempt loop for one page.

        Args:
            url: Page URL; a page-size hint is added when missing.
            page_index: Zero-based page number, selects the etag to send.

        Returns:
            The final response with the activity accumulated so far.

        Raises:
            FetchFailedError: If no response was obtained or retries ran out.
        """
        target = ensure_max_per_page(url, self._config.per_page)
        headers = self._config.headers_for_page(page_index)
        record = self._recorder.begin_page()
        log = self._log.bind(url=redact_url(target), page=page_index)
        machine = PageStateMachine(target, page_index, log)
        start_time_ns = time.perf_counter_ns()
        received_response = False

        log.info(
            "fetch_started",
            conditional=self._config.etag_for_page(page_index) is not None,
        )

        while True:
            machine.to_sending()
            attempt = machine.attempt
            error: TransportError | None = None
            response: PageResponse | None = None
            try:
                response = self._transport.send(
                    target, headers, self._config.timeout_seconds
                )
            except TransportError as e:
                error = e

            if response is not None:
                received_response = True
                self._metrics.record_response(response.status_code)
            else:
                self._metrics.record_transport_error()
            if received_response:
                record.attempts = attempt

            log.debug(
                "attempt_completed",
                attempt=attempt,
                status_code=response.status_code if response else None,
                error=str(error) if error else None,
            )

            if response is not None and response.is_success:
                self._throttle(response, record, log)
                machine.to_success()
                return self._complete(response, start_time_ns, log)

            retryable = self._retry_policy.should_retry(error, response)
            if retryable and self._retry_policy.attempts_remain(attempt):
                delay = self._retry_policy.delay_for(error, response)
                record.add_delay(delay)
                self._metrics.record_retry(delay)
                machine.to_retry_wait(forbidden=delay.kind == DelayKind.FORBIDDEN)
                log.info(
                    "retry_scheduled",
                    attempt=attempt,
                    delay_kind=delay.kind.value,
                    delay_ms=delay.duration_ms,
                    status_code=response.status_code if response else None,
                )
                self._wait(delay.duration_ms)
                continue

            if retryable or response is None:
                machine.to_failed()
                raise self._failure(error, response, attempt, log)

            # Not retryable: the response is the result
            machine.to_settled()
            return self._complete(response, start_time_ns, log)

    def _throttle(
        self,
        response: PageResponse,
        record: PageActivity,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Sleep ahead of quota exhaustion when the governor asks for it."""
        delay_ms = self._governor.throttle_delay(response, self._clock())
        if delay_ms is None:
            return
        record.rate_limit_delay = delay_ms
        self._metrics.record_throttle(delay_ms)
        log.info(
            "rate_limit_throttle",
            remaining=response.rate_limit_remaining,
            reset=response.rate_limit_reset,
            delay_ms=delay_ms,
            skipped=self._config.test_mode,
        )
        self._wait(delay_ms)

    def _wait(self, delay_ms: int) -> None:
        # test mode keeps the decision but skips the suspension
        if self._config.test_mode or delay_ms <= 0:
            return
        self._sleep(delay_ms / 1000.0)

    def _complete(
        self,
        response: PageResponse,
        start_time_ns: int,
        log: structlog.stdlib.BoundLogger,
    ) -> FetchResult:
        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_page(duration_ms)
        current = self._recorder.current
        log.info(
            "fetch_complete",
            status_code=response.status_code,
            attempts=current.attempts if current else None,
            duration_ms=round(duration_ms, 2),
        )
        return FetchResult(response=response, activity=self.activity)

    def _failure(
        self,
        error: TransportError | None,
        response: PageResponse | None,
        attempt: int,
        log: structlog.stdlib.BoundLogger,
    ) -> FetchFailedError:
        failure_class = RetryPolicy.classify(error, response)
        if failure_class is not None:
            self._metrics.record_failure(failure_class)

        if error is not None:
            message = error.message
        else:
            status = response.status_code if response else 0
            reason = response.reason if response else ""
            message = f"HTTP {status} {reason}".strip()

        log.warning(
            "fetch_failed",
            attempts=attempt,
            failure_class=failure_class.value if failure_class else None,
            error=message,
        )
        failure = FetchFailedError(
            message,
            response=response,
            activity=self.activity,
            failure_class=failure_class,
        )
        failure.__cause__ = error
        return failure
