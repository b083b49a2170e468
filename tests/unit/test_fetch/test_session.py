"""Unit tests for FetchSession retries, throttling and activity."""

from collections.abc import Generator

import pytest

from ghrequestor.fetch.config import FetchConfig
from ghrequestor.fetch.errors import (
    FetchFailedError,
    SessionReusedError,
    TransportError,
    UnexpectedStatusError,
)
from ghrequestor.fetch.metrics import FetchMetrics
from ghrequestor.fetch.models import (
    DelayEntry,
    DelayKind,
    FailureClass,
    PageResponse,
)
from ghrequestor.fetch.session import FetchSession
from tests.helpers.time import FIXED_NOW_SECONDS, fixed_clock
from tests.helpers.transport import (
    TEST_OPTIONS,
    URL_HOST,
    ScriptedTransport,
    make_response,
    network_error,
)


RETRY = DelayEntry(kind=DelayKind.RETRY, duration_ms=10)
FORBIDDEN = DelayEntry(kind=DelayKind.FORBIDDEN, duration_ms=15)


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None]:
    """Give every test fresh process-wide metrics."""
    FetchMetrics.reset()
    yield
    FetchMetrics.reset()


def make_session(
    transport: ScriptedTransport,
    sleeps: list[float] | None = None,
    **overrides: object,
) -> FetchSession:
    """Create a session with test options and a fixed clock."""
    config = FetchConfig.from_options({**TEST_OPTIONS, **overrides})
    sleep = sleeps.append if sleeps is not None else None
    return FetchSession(config, transport, sleep=sleep, clock=fixed_clock)


class TestSingleFetch:
    """Tests for successful single-resource fetches."""

    @pytest.mark.unit
    def test_single_page_resource(self) -> None:
        """Test fetching a resource on the first attempt."""
        transport = ScriptedTransport([make_response({"id": "cool object"})])

        result = make_session(transport).fetch(f"{URL_HOST}/singlePageResource")

        assert result.body == {"id": "cool object"}
        assert result.status_code == 200
        assert len(result.activity) == 1
        assert result.activity[0].attempts == 1
        assert result.activity[0].delays == ()
        assert result.activity[0].rate_limit_delay is None

    @pytest.mark.unit
    def test_page_size_hint_added(self) -> None:
        """Test that the request URL carries per_page."""
        transport = ScriptedTransport([make_response({})])

        make_session(transport).fetch(f"{URL_HOST}/single")

        assert transport.urls == [f"{URL_HOST}/single?per_page=100"]

    @pytest.mark.unit
    def test_configured_headers_and_timeout_sent(self) -> None:
        """Test that configured headers and timeout reach the transport."""
        transport = ScriptedTransport([make_response({})])

        make_session(
            transport,
            headers={"Authorization": "token abc"},
            timeout_seconds=5.0,
        ).fetch(URL_HOST)

        request = transport.requests[0]
        assert request.headers == {
            "User-Agent": "ghrequestor",
            "Authorization": "token abc",
        }
        assert request.timeout == 5.0

    @pytest.mark.unit
    def test_session_activity_matches_result(self) -> None:
        """Test that the session exposes the activity it returned."""
        transport = ScriptedTransport([make_response({})])
        session = make_session(transport)

        result = session.fetch(URL_HOST)

        assert session.activity == result.activity


class TestRetries:
    """Tests for the retry loop."""

    @pytest.mark.unit
    @pytest.mark.parametrize("max_attempts", [1, 3, 5])
    def test_server_errors_exhaust_attempts(self, max_attempts: int) -> None:
        """Test that persistent 5xx responses fail after max_attempts."""
        transport = ScriptedTransport(
            [
                make_response("bummer", status_code=500, reason="Server Error")
                for _ in range(max_attempts)
            ]
        )

        with pytest.raises(FetchFailedError) as exc_info:
            make_session(transport, max_attempts=max_attempts).fetch(
                f"{URL_HOST}/serverError"
            )

        error = exc_info.value
        assert error.message == "HTTP 500 Server Error"
        assert error.response is not None
        assert error.response.body == "bummer"
        assert error.status_code == 500
        assert error.failure_class == FailureClass.SERVER_OVERLOAD
        assert error.activity[0].attempts == max_attempts
        assert error.activity[0].delays == (RETRY,) * (max_attempts - 1)
        assert transport.remaining == 0

    @pytest.mark.unit
    def test_server_error_then_success(self) -> None:
        """Test that a 5xx is retried until it succeeds."""
        transport = ScriptedTransport(
            [
                make_response("bummer", status_code=500),
                make_response({"id": 1}),
                make_response({"id": 2}),
            ]
        )

        result = make_session(transport).fetch(f"{URL_HOST}/retry500succeed")

        assert result.body == {"id": 1}
        assert result.activity[0].attempts == 2
        assert result.activity[0].delays == (RETRY,)
        assert transport.remaining == 1

    @pytest.mark.unit
    def test_network_errors_exhaust_attempts(self) -> None:
        """Test that attempts stay absent when no response ever arrived."""
        transport = ScriptedTransport([network_error("bummer") for _ in range(5)])

        with pytest.raises(FetchFailedError) as exc_info:
            make_session(transport).fetch(f"{URL_HOST}/networkError")

        error = exc_info.value
        assert error.message == "bummer"
        assert error.response is None
        assert isinstance(error.__cause__, TransportError)
        assert error.failure_class == FailureClass.TRANSPORT
        assert error.activity[0].attempts is None
        assert error.activity[0].delays == (RETRY,) * 4

    @pytest.mark.unit
    def test_network_errors_then_success(self) -> None:
        """Test that network errors are retried until a response arrives."""
        transport = ScriptedTransport(
            [
                network_error("bummer 1"),
                network_error("bummer 2"),
                make_response({"id": 1}),
                make_response({"id": 2}),
            ]
        )

        result = make_session(transport).fetch(f"{URL_HOST}/retryNetworkErrorSucceed")

        assert result.body == {"id": 1}
        assert result.activity[0].attempts == 3
        assert result.activity[0].delays == (RETRY, RETRY)

    @pytest.mark.unit
    def test_network_error_after_response_keeps_attempts(self) -> None:
        """Test that a late network failure still reports the attempt count."""
        transport = ScriptedTransport(
            [make_response("bummer", status_code=502), network_error("reset")]
        )

        with pytest.raises(FetchFailedError) as exc_info:
            make_session(transport, max_attempts=2).fetch(URL_HOST)

        assert exc_info.value.message == "reset"
        assert exc_info.value.activity[0].attempts == 2

    @pytest.mark.unit
    def test_forbidden_then_success(self) -> None:
        """Test that a 403 waits the forbidden delay before retrying."""
        transport = ScriptedTransport(
            [
                make_response("forbidden 1", status_code=403),
                make_response({"id": 1}),
                make_response({"id": 2}),
            ]
        )

        result = make_session(transport).fetch(f"{URL_HOST}/forbidden")

        assert result.body == {"id": 1}
        assert result.activity[0].attempts == 2
        assert result.activity[0].delays == (FORBIDDEN,)

    @pytest.mark.unit
    def test_forbidden_exhausted(self) -> None:
        """Test that a persistent 403 is classified as a lockout."""
        transport = ScriptedTransport(
            [make_response("no", status_code=403, reason="Forbidden")] * 2
        )

        with pytest.raises(FetchFailedError) as exc_info:
            make_session(transport, max_attempts=2).fetch(URL_HOST)

        assert exc_info.value.failure_class == FailureClass.SECONDARY_LOCKOUT
        assert exc_info.value.activity[0].delays == (FORBIDDEN,)

    @pytest.mark.unit
    def test_mixed_failures_record_delays_in_order(self) -> None:
        """Test that each delay is tagged by the failure that caused it."""
        transport = ScriptedTransport(
            [
                make_response("bummer", status_code=500),
                network_error(),
                make_response("forbidden", status_code=403),
                make_response({"id": 1}),
            ]
        )

        result = make_session(transport).fetch(URL_HOST)

        assert result.activity[0].attempts == 4
        assert result.activity[0].delays == (RETRY, RETRY, FORBIDDEN)


class TestNonRetryableStatus:
    """Tests for responses returned without retrying."""

    @pytest.mark.unit
    def test_client_error_is_settled_result(self) -> None:
        """Test that a 401 is returned, not raised, after one attempt."""
        transport = ScriptedTransport([make_response(None, status_code=401)])

        result = make_session(transport).fetch(URL_HOST)

        assert result.status_code == 401
        assert result.activity[0].attempts == 1
        assert result.activity[0].delays == ()
        assert len(transport.requests) == 1

    @pytest.mark.unit
    def test_require_success_raises(self) -> None:
        """Test that require_success turns a 401 into an error."""
        transport = ScriptedTransport([make_response(None, status_code=401)])

        with pytest.raises(UnexpectedStatusError) as exc_info:
            make_session(transport).fetch(URL_HOST, require_success=True)

        error = exc_info.value
        assert error.status_code == 401
        assert error.failure_class == FailureClass.CLIENT_ERROR
        assert error.activity[0].attempts == 1

    @pytest.mark.unit
    def test_not_modified_with_etag(self) -> None:
        """Test that a configured etag is sent and a 304 is returned."""
        transport = ScriptedTransport([make_response(None, status_code=304)])

        result = make_session(transport, etags=['"abc"']).fetch(URL_HOST)

        assert transport.requests[0].headers["If-None-Match"] == '"abc"'
        assert result.status_code == 304
        assert result.activity[0].attempts == 1


class TestRateLimitThrottle:
    """Tests for proactive throttling inside the session."""

    @pytest.mark.unit
    def test_low_quota_records_delay(self) -> None:
        """Test that low quota is recorded but not slept on in test mode."""
        sleeps: list[float] = []
        transport = ScriptedTransport(
            [make_response({"cool": "object"}, remaining=20, reset=FIXED_NOW_SECONDS + 60)]
        )

        result = make_session(transport, sleeps).fetch(URL_HOST)

        assert result.body == {"cool": "object"}
        assert result.activity[0].attempts == 1
        assert result.activity[0].delays == ()
        assert result.activity[0].rate_limit_delay == 60000
        assert sleeps == []

    @pytest.mark.unit
    def test_live_mode_sleeps(self) -> None:
        """Test that live mode actually waits for retries and throttling."""
        sleeps: list[float] = []
        transport = ScriptedTransport(
            [
                make_response("bummer", status_code=500),
                make_response({}, remaining=20, reset=FIXED_NOW_SECONDS + 3),
            ]
        )

        make_session(transport, sleeps, test_mode=False).fetch(URL_HOST)

        assert sleeps == [0.01, 3.0]

    @pytest.mark.unit
    def test_missing_quota_headers_throttle(self) -> None:
        """Test that a response without quota headers waits the minimum delay."""
        transport = ScriptedTransport(
            [PageResponse(url=URL_HOST, status_code=200, body={"id": 1})]
        )

        result = make_session(transport).fetch(URL_HOST)

        assert result.activity[0].rate_limit_delay == 2000

    @pytest.mark.unit
    def test_throttle_disabled(self) -> None:
        """Test that delay_on_throttle=False records no rate-limit delay."""
        transport = ScriptedTransport(
            [make_response({}, remaining=0, reset=FIXED_NOW_SECONDS + 60)]
        )

        result = make_session(transport, delay_on_throttle=False).fetch(URL_HOST)

        assert result.activity[0].rate_limit_delay is None

    @pytest.mark.unit
    def test_zero_delay_never_sleeps(self) -> None:
        """Test that a zero retry delay skips the sleep call."""
        sleeps: list[float] = []
        transport = ScriptedTransport(
            [make_response("bummer", status_code=500), make_response({})]
        )

        make_session(transport, sleeps, test_mode=False, retry_delay_ms=0).fetch(
            URL_HOST
        )

        assert sleeps == []


class TestSessionLifecycle:
    """Tests for single-use sessions and metrics."""

    @pytest.mark.unit
    def test_session_cannot_be_reused(self) -> None:
        """Test that a second top-level request is rejected."""
        transport = ScriptedTransport([make_response({}), make_response({})])
        session = make_session(transport)
        session.fetch(URL_HOST)

        with pytest.raises(SessionReusedError) as exc_info:
            session.fetch(URL_HOST)

        assert len(exc_info.value.activity) == 1
        assert transport.remaining == 1

    @pytest.mark.unit
    def test_metrics_recorded(self) -> None:
        """Test that responses, retries and pages are counted."""
        transport = ScriptedTransport(
            [
                network_error(),
                make_response("bummer", status_code=500),
                make_response({}),
            ]
        )

        make_session(transport).fetch(URL_HOST)

        metrics = FetchMetrics.get_instance()
        assert metrics.http_requests_total == {500: 1, 200: 1}
        assert metrics.http_transport_errors_total == 1
        assert metrics.http_retry_total == 2
        assert metrics.http_retry_delay_ms_total == 20
        assert metrics.pages_fetched_total == 1

    @pytest.mark.unit
    def test_failure_metrics_recorded(self) -> None:
        """Test that terminal failures are counted by class."""
        transport = ScriptedTransport([network_error()])

        with pytest.raises(FetchFailedError):
            make_session(transport, max_attempts=1).fetch(URL_HOST)

        metrics = FetchMetrics.get_instance()
        assert metrics.http_failures_total == {"TRANSPORT": 1}
        assert metrics.pages_fetched_total == 0
