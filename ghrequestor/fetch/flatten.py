"""Reduce page responses to one flat item list."""

from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import structlog

from ghrequestor.fetch.constants import FLATTEN_MAX_WORKERS
from ghrequestor.fetch.errors import MissingSupplierError, UnexpectedPageStatusError
from ghrequestor.fetch.models import Activity, ItemsResult, PageResponse, PageSequence
from ghrequestor.fetch.redact import redact_url


logger = structlog.get_logger()

# Maps the URL of a 304 page to the items cached for it. May return a
# Future when the lookup itself is asynchronous.
Supplier = Callable[[str], "Sequence[Any] | Future[Sequence[Any]]"]


def _body_items(body: Any) -> list[Any]:
    if body is None:
        return []
    if isinstance(body, list | tuple):
        return list(body)
    return [body]


def resolve_page(
    page: PageResponse,
    supplier: Supplier | None = None,
    activity: tuple[Activity, ...] = (),
) -> list[Any]:
    """Resolve the items of a single page.

    Args:
        page: Page response.
        supplier: Resolves 304 pages to previously cached items.
        activity: Activity to attach to errors.

    Returns:
        Items of the page in their original order.

    Raises:
        MissingSupplierError: If the page is a 304 and no supplier was given.
        UnexpectedPageStatusError: If the page is neither 2xx nor 304.
    """
    if page.is_success:
        return _body_items(page.body)

    if page.is_not_modified:
        if supplier is None:
            msg = (
                f"Page {redact_url(page.url)} returned 304 Not Modified but no "
                "supplier was given to resolve cached items"
            )
            raise MissingSupplierError(msg, response=page, activity=activity)
        supplied = supplier(page.url)
        if isinstance(supplied, Future):
            supplied = supplied.result()
        return list(supplied or [])

    msg = (
        f"Cannot flatten page {redact_url(page.url)}: "
        f"unexpected status {page.status_code}"
    )
    raise UnexpectedPageStatusError(msg, response=page, activity=activity)


def flatten_pages(
    pages: Sequence[PageResponse],
    supplier: Supplier | None = None,
    *,
    activity: tuple[Activity, ...] = (),
    max_workers: int = FLATTEN_MAX_WORKERS,
) -> list[Any]:
    """Flatten page responses into one item list.

    Pages are resolved concurrently with bounded fan-out; the output keeps
    page order and the order of items within each page.

    Args:
        pages: Page responses in fetch order.
        supplier: Resolves 304 pages to previously cached items.
        activity: Activity to attach to errors.
        max_workers: Maximum pages resolved at once.

    Returns:
        Flat list of items.

    Raises:
        FlattenError: If any page cannot be resolved.
    """
    if not pages:
        return []

    workers = max(1, min(max_workers, len(pages)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        resolved = list(
            executor.map(lambda page: resolve_page(page, supplier, activity), pages)
        )

    items = [item for page_items in resolved for item in page_items]
    logger.debug(
        "pages_flattened",
        component="flatten",
        pages=len(pages),
        items=len(items),
        not_modified=sum(1 for page in pages if page.is_not_modified),
    )
    return items


def flatten_sequence(
    sequence: PageSequence,
    supplier: Supplier | None = None,
) -> ItemsResult:
    """Flatten a pagination result, carrying its activity forward."""
    items = flatten_pages(sequence.pages, supplier, activity=sequence.activity)
    return ItemsResult(items=items, activity=sequence.activity)
