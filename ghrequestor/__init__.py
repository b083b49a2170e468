"""Reliable fetching from paginated, rate-limited HTTP APIs such as GitHub's."""

from ghrequestor.fetch import (
    Activity,
    FetchConfig,
    FetchFailedError,
    FetchResult,
    FetchSession,
    FlattenError,
    HttpxTransport,
    ItemsResult,
    MalformedLinkHeaderError,
    MissingSupplierError,
    PageResponse,
    PageSequence,
    Paginator,
    RequestorError,
    UnexpectedPageStatusError,
    UnexpectedStatusError,
)
from ghrequestor.requestor import (
    Requestor,
    get,
    get_all,
    get_all_responses,
    get_instance,
)


__version__ = "0.1.0"

__all__ = [
    "get",
    "get_all",
    "get_all_responses",
    "get_instance",
    "Requestor",
    "FetchSession",
    "Paginator",
    "FetchConfig",
    "HttpxTransport",
    "Activity",
    "FetchResult",
    "ItemsResult",
    "PageResponse",
    "PageSequence",
    "RequestorError",
    "FetchFailedError",
    "UnexpectedStatusError",
    "MalformedLinkHeaderError",
    "FlattenError",
    "MissingSupplierError",
    "UnexpectedPageStatusError",
]
