"""Resilient fetch layer for paginated, rate-limited HTTP APIs.

This module provides:
- Retries for transport errors, 5xx and 403 responses with recorded delays
- Proactive sleeping when the remaining rate-limit quota runs low
- Pagination over ``link`` header ``next`` relations
- Conditional requests from per-page etags
- Flattening of page bodies, resolving 304 pages through a supplier
"""

from ghrequestor.fetch.activity import ActivityRecorder, PageActivity
from ghrequestor.fetch.config import FetchConfig
from ghrequestor.fetch.errors import (
    FetchFailedError,
    FlattenError,
    MalformedLinkHeaderError,
    MissingSupplierError,
    RequestorError,
    SessionReusedError,
    TransportError,
    UnexpectedPageStatusError,
    UnexpectedStatusError,
)
from ghrequestor.fetch.flatten import (
    Supplier,
    flatten_pages,
    flatten_sequence,
    resolve_page,
)
from ghrequestor.fetch.links import ensure_max_per_page, parse_link_header
from ghrequestor.fetch.metrics import FetchMetrics
from ghrequestor.fetch.models import (
    Activity,
    DelayEntry,
    DelayKind,
    FailureClass,
    FetchResult,
    ItemsResult,
    PageResponse,
    PageSequence,
)
from ghrequestor.fetch.paginator import PageDecision, Paginator
from ghrequestor.fetch.policy import RateLimitGovernor, RetryPolicy
from ghrequestor.fetch.session import FetchSession
from ghrequestor.fetch.state_machine import (
    PageState,
    PageStateMachine,
    PageStateTransitionError,
)
from ghrequestor.fetch.transport import HttpxTransport, Transport


__all__ = [
    # Session and pagination
    "FetchSession",
    "Paginator",
    "PageDecision",
    # Policies
    "RetryPolicy",
    "RateLimitGovernor",
    # State machine
    "PageState",
    "PageStateMachine",
    "PageStateTransitionError",
    # Activity
    "ActivityRecorder",
    "PageActivity",
    # Config
    "FetchConfig",
    # Models
    "Activity",
    "DelayEntry",
    "DelayKind",
    "FailureClass",
    "FetchResult",
    "ItemsResult",
    "PageResponse",
    "PageSequence",
    # Errors
    "RequestorError",
    "FetchFailedError",
    "UnexpectedStatusError",
    "SessionReusedError",
    "MalformedLinkHeaderError",
    "FlattenError",
    "MissingSupplierError",
    "UnexpectedPageStatusError",
    "TransportError",
    # Transport
    "Transport",
    "HttpxTransport",
    # Links
    "ensure_max_per_page",
    "parse_link_header",
    # Flattening
    "Supplier",
    "flatten_pages",
    "flatten_sequence",
    "resolve_page",
    # Metrics
    "FetchMetrics",
]
