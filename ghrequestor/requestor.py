"""Public entry points.

Each call builds a fresh ``FetchSession`` and delegates to it. Without a
callback the result is returned and failures are raised. With a callback,
``callback(error, result)`` receives the outcome and the call returns None.
"""

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from ghrequestor.fetch.config import FetchConfig
from ghrequestor.fetch.errors import RequestorError
from ghrequestor.fetch.flatten import Supplier
from ghrequestor.fetch.models import FetchResult, ItemsResult, PageSequence
from ghrequestor.fetch.paginator import Paginator
from ghrequestor.fetch.session import FetchSession
from ghrequestor.fetch.transport import Transport


T = TypeVar("T")

Options = FetchConfig | Mapping[str, Any] | None
Callback = Callable[[RequestorError | None, Any], None]


def _deliver(operation: Callable[[], T], callback: Callback | None) -> T | None:
    if callback is None:
        return operation()
    try:
        result = operation()
    except RequestorError as e:
        callback(e, None)
        return None
    callback(None, result)
    return None


def get(
    url: str,
    options: Options = None,
    callback: Callback | None = None,
    *,
    transport: Transport | None = None,
    require_success: bool = False,
) -> FetchResult | None:
    """Fetch a single resource.

    Responses with status >= 300 are results, not errors, unless
    ``require_success`` is set.

    Args:
        url: URL to fetch.
        options: Configuration or options to merge over the defaults.
        callback: Receives ``(error, result)`` instead of return/raise.
        transport: Transport override.
        require_success: Treat any non-2xx final response as an error.

    Returns:
        The fetch result, or None when a callback was given.
    """
    session = FetchSession(options, transport)
    return _deliver(
        lambda: session.fetch(url, require_success=require_success), callback
    )


def get_all(
    url: str,
    options: Options = None,
    callback: Callback | None = None,
    *,
    supplier: Supplier | None = None,
    transport: Transport | None = None,
) -> ItemsResult | None:
    """Fetch all pages and return their items as one flat list.

    Args:
        url: URL of the first page.
        options: Configuration or options to merge over the defaults.
        callback: Receives ``(error, result)`` instead of return/raise.
        supplier: Resolves 304 pages to previously cached items.
        transport: Transport override.

    Returns:
        Items with the activity of every page, or None when a callback was
        given.
    """
    paginator = Paginator(FetchSession(options, transport))
    return _deliver(lambda: paginator.paginate_items(url, supplier), callback)


def get_all_responses(
    url: str,
    options: Options = None,
    callback: Callback | None = None,
    *,
    transport: Transport | None = None,
) -> PageSequence | None:
    """Fetch all pages and return the raw page responses.

    Args:
        url: URL of the first page.
        options: Configuration or options to merge over the defaults.
        callback: Receives ``(error, result)`` instead of return/raise.
        transport: Transport override.

    Returns:
        Page responses with the activity of every page, or None when a
        callback was given.
    """
    paginator = Paginator(FetchSession(options, transport))
    return _deliver(lambda: paginator.run(url), callback)


class Requestor:
    """Pre-bound configuration for repeated calls.

    Every call still runs in its own session, so activity never leaks
    between calls. Per-call options are layered over the bound ones.
    """

    def __init__(
        self,
        options: Options = None,
        transport: Transport | None = None,
        supplier: Supplier | None = None,
    ) -> None:
        """Initialize the requestor.

        Args:
            options: Default configuration for every call.
            transport: Transport shared by every call.
            supplier: Default 304 supplier for ``get_all``.
        """
        self._config = FetchConfig.from_options(options)
        self._transport = transport
        self._supplier = supplier

    @property
    def config(self) -> FetchConfig:
        """Get the bound configuration."""
        return self._config

    def _options(self, options: Options) -> FetchConfig:
        if options is None:
            return self._config
        if isinstance(options, FetchConfig):
            return options
        return self._config.merged_with(options)

    def get(
        self,
        url: str,
        options: Options = None,
        callback: Callback | None = None,
        *,
        require_success: bool = False,
    ) -> FetchResult | None:
        """Fetch a single resource with the bound configuration."""
        return get(
            url,
            self._options(options),
            callback,
            transport=self._transport,
            require_success=require_success,
        )

    def get_all(
        self,
        url: str,
        options: Options = None,
        callback: Callback | None = None,
        *,
        supplier: Supplier | None = None,
    ) -> ItemsResult | None:
        """Fetch all pages as flat items with the bound configuration."""
        return get_all(
            url,
            self._options(options),
            callback,
            supplier=supplier or self._supplier,
            transport=self._transport,
        )

    def get_all_responses(
        self,
        url: str,
        options: Options = None,
        callback: Callback | None = None,
    ) -> PageSequence | None:
        """Fetch all pages as raw responses with the bound configuration."""
        return get_all_responses(
            url, self._options(options), callback, transport=self._transport
        )


def get_instance(
    options: Options = None,
    transport: Transport | None = None,
    supplier: Supplier | None = None,
) -> Requestor:
    """Create a requestor with pre-bound configuration."""
    return Requestor(options, transport=transport, supplier=supplier)
