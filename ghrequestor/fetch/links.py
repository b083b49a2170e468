"""Page-size normalization and ``link`` header parsing."""

import re
from urllib.parse import parse_qs, urlsplit

from ghrequestor.fetch.constants import MAX_PER_PAGE, PER_PAGE_PARAM
from ghrequestor.fetch.errors import MalformedLinkHeaderError


# Entries are separated by commas, but URLs may contain commas themselves
_ENTRY_SPLIT = re.compile(r",\s*(?=<)")
_URL_PART = re.compile(r"^<(?P<url>[^>]*)>$")
_REL_PARAM = re.compile(r'^rel\s*=\s*"?(?P<rel>[^"]*)"?$', re.IGNORECASE)


def ensure_max_per_page(url: str, per_page: int = MAX_PER_PAGE) -> str:
    """Ensure the URL carries a page-size hint.

    An existing ``per_page`` parameter is left untouched; otherwise
    ``per_page`` is appended to the query string.

    Args:
        url: Target URL.
        per_page: Page size to request when none is present.

    Returns:
        URL with a ``per_page`` query parameter.
    """
    query = urlsplit(url).query
    if PER_PAGE_PARAM in parse_qs(query, keep_blank_values=True):
        return url

    base, _, fragment = url.partition("#")
    separator = "&" if query else "?"
    if base.endswith(("?", "&")):
        separator = ""
    normalized = f"{base}{separator}{PER_PAGE_PARAM}={per_page}"
    return f"{normalized}#{fragment}" if fragment else normalized


def parse_link_header(header: str) -> dict[str, str]:
    """Decode a ``link`` header into a relation -> URL mapping.

    Entries look like ``<https://api.github.com/x?page=2>; rel="next"``.

    Args:
        header: Raw header value.

    Returns:
        Mapping of relation name (``next``, ``prev``, ``first``, ``last``,
        ...) to URL.

    Raises:
        MalformedLinkHeaderError: If the header is empty or an entry cannot
            be parsed.
    """
    if not header or not header.strip():
        msg = "Link header must not be empty"
        raise MalformedLinkHeaderError(msg, header=header)

    links: dict[str, str] = {}
    for entry in _ENTRY_SPLIT.split(header.strip()):
        parts = [part.strip() for part in entry.split(";")]
        if len(parts) < 2:  # noqa: PLR2004
            msg = f"Link entry could not be split on ';': {entry!r}"
            raise MalformedLinkHeaderError(msg, header=header)

        url_match = _URL_PART.match(parts[0])
        if not url_match:
            msg = f"Link entry has no <url> part: {entry!r}"
            raise MalformedLinkHeaderError(msg, header=header)

        rel = None
        for param in parts[1:]:
            rel_match = _REL_PARAM.match(param)
            if rel_match:
                rel = rel_match.group("rel").strip()
                break
        if not rel:
            msg = f"Link entry has no rel parameter: {entry!r}"
            raise MalformedLinkHeaderError(msg, header=header)

        # A single entry may name several relations: rel="next last"
        for name in rel.split():
            links[name] = url_match.group("url").strip()

    return links
