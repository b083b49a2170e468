"""Metrics collection for the fetch layer."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar

from ghrequestor.fetch.models import DelayEntry, DelayKind, FailureClass


@dataclass
class FetchMetrics:
    """Process-wide counters for fetch sessions.

    Singleton; safe to update from the flattener's worker threads.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_transport_errors_total: int = 0
    http_retry_total: int = 0
    http_forbidden_retry_total: int = 0
    http_retry_delay_ms_total: int = 0
    rate_limit_throttles_total: int = 0
    rate_limit_delay_ms_total: int = 0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    pages_fetched_total: int = 0
    http_duration_ms_total: float = 0.0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_response(self, status_code: int) -> None:
        """Record a response received from the transport."""
        with self._lock:
            self.http_requests_total[status_code] = (
                self.http_requests_total.get(status_code, 0) + 1
            )

    def record_transport_error(self) -> None:
        """Record an attempt that produced no response."""
        with self._lock:
            self.http_transport_errors_total += 1

    def record_retry(self, delay: DelayEntry) -> None:
        """Record a scheduled retry and its delay."""
        with self._lock:
            self.http_retry_total += 1
            self.http_retry_delay_ms_total += delay.duration_ms
            if delay.kind == DelayKind.FORBIDDEN:
                self.http_forbidden_retry_total += 1

    def record_throttle(self, delay_ms: int) -> None:
        """Record a proactive rate-limit delay."""
        with self._lock:
            self.rate_limit_throttles_total += 1
            self.rate_limit_delay_ms_total += delay_ms

    def record_failure(self, failure_class: FailureClass) -> None:
        """Record a terminal page failure."""
        key = failure_class.value
        with self._lock:
            self.http_failures_total[key] = self.http_failures_total.get(key, 0) + 1

    def record_page(self, duration_ms: float) -> None:
        """Record a finished page fetch and its duration."""
        with self._lock:
            self.pages_fetched_total += 1
            self.http_duration_ms_total += duration_ms

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "http_requests_total": dict(self.http_requests_total),
                "http_transport_errors_total": self.http_transport_errors_total,
                "http_retry_total": self.http_retry_total,
                "http_forbidden_retry_total": self.http_forbidden_retry_total,
                "http_retry_delay_ms_total": self.http_retry_delay_ms_total,
                "rate_limit_throttles_total": self.rate_limit_throttles_total,
                "rate_limit_delay_ms_total": self.rate_limit_delay_ms_total,
                "http_failures_total": dict(self.http_failures_total),
                "pages_fetched_total": self.pages_fetched_total,
                "http_duration_ms_total": self.http_duration_ms_total,
            }

    @property
    def avg_duration_ms(self) -> float:
        """Average page fetch duration in milliseconds."""
        if self.pages_fetched_total == 0:
            return 0.0
        return self.http_duration_ms_total / self.pages_fetched_total
