"""Sequential pagination over ``link: rel="next"`` chains."""

from collections.abc import Iterator
from enum import Enum

import structlog

from ghrequestor.fetch.errors import MalformedLinkHeaderError
from ghrequestor.fetch.flatten import Supplier, flatten_sequence
from ghrequestor.fetch.links import ensure_max_per_page
from ghrequestor.fetch.models import ItemsResult, PageResponse, PageSequence
from ghrequestor.fetch.redact import redact_url
from ghrequestor.fetch.session import FetchSession


logger = structlog.get_logger()


class PageDecision(str, Enum):
    """What the paginator does after a page settles."""

    CONTINUE = "CONTINUE"
    COMPLETE = "COMPLETE"
    STOP = "STOP"


def decide(response: PageResponse) -> PageDecision:
    """Decide how pagination proceeds after a page.

    2xx and 304 pages continue while a ``next`` link exists. Any other
    status stops pagination after keeping the page.

    Raises:
        MalformedLinkHeaderError: If the ``link`` header cannot be parsed.
    """
    if not (response.is_success or response.is_not_modified):
        return PageDecision.STOP
    if response.next_url:
        return PageDecision.CONTINUE
    return PageDecision.COMPLETE


class Paginator:
    """Drives one fetch session across a chain of pages.

    Pages are fetched strictly one after another. Each page gets its own
    activity record in the session, in fetch order.
    """

    def __init__(self, session: FetchSession) -> None:
        """Initialize the paginator.

        Args:
            session: Unused session that will serve the whole run.
        """
        self._session = session
        self._log = logger.bind(component="paginator")
        self._stopped_by: PageResponse | None = None

    def iter_pages(self, url: str) -> Iterator[PageResponse]:
        """Yield page responses as they are fetched.

        Stops after the first page that has no ``next`` link, or after the
        first page whose status is neither 2xx nor 304 (that page is
        yielded).

        Args:
            url: URL of the first page.

        Yields:
            Page responses in fetch order.

        Raises:
            FetchFailedError: On transport failure or exhausted retries.
                No further pages are requested.
            MalformedLinkHeaderError: If a ``link`` header is invalid;
                carries the activity of every page fetched so far.
            SessionReusedError: If the session was already used.
        """
        self._session.begin()
        target: str | None = ensure_max_per_page(url, self._session.config.per_page)
        page_index = 0

        while target is not None:
            result = self._session.fetch_page(target, page_index=page_index)
            response = result.response
            yield response

            try:
                decision = decide(response)
            except MalformedLinkHeaderError as e:
                raise MalformedLinkHeaderError(
                    e.message,
                    e.header,
                    response=response,
                    activity=self._session.activity,
                ) from e

            if decision == PageDecision.CONTINUE:
                target = response.next_url
                page_index += 1
                self._log.debug(
                    "pagination_advance",
                    page=page_index,
                    url=redact_url(target or ""),
                )
                continue

            if decision == PageDecision.STOP:
                self._stopped_by = response
                self._log.info(
                    "pagination_stopped",
                    page=page_index,
                    status_code=response.status_code,
                )
            else:
                self._log.info("pagination_complete", pages=page_index + 1)
            target = None

    def run(self, url: str) -> PageSequence:
        """Fetch every page reachable from ``url``.

        Args:
            url: URL of the first page.

        Returns:
            Raw page responses with the session activity. When pagination
            stopped on a non-2xx/304 page, ``completed`` is False and the
            page is kept as the last entry.

        Raises:
            FetchFailedError: On transport failure or exhausted retries;
                carries the activity of every page fetched so far.
        """
        pages = tuple(self.iter_pages(url))
        return PageSequence(
            pages=pages,
            activity=self._session.activity,
            completed=self._stopped_by is None,
            stopped_by=self._stopped_by,
        )

    def paginate_items(
        self,
        url: str,
        supplier: Supplier | None = None,
    ) -> ItemsResult:
        """Fetch every page and flatten their bodies into one item list.

        Args:
            url: URL of the first page.
            supplier: Resolves 304 pages to previously cached items.

        Returns:
            Items in page order with the session activity.

        Raises:
            FetchFailedError: On transport failure or exhausted retries.
            FlattenError: If a page cannot be flattened.
        """
        return flatten_sequence(self.run(url), supplier)
