"""Redaction of credentials before request details reach the logs."""

import re


# GitHub accepts tokens in any of these
SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "proxy-authorization",
        "x-github-token",
    }
)

REDACTED_VALUE = "[REDACTED]"

_URL_CREDENTIALS = re.compile(r"(https?://)[^/@:\s]+:[^/\s]+@")
_TOKEN_PARAMS = re.compile(r"([?&](?:access_token|client_secret)=)[^&#]*", re.I)


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Copy headers with sensitive values masked."""
    return {
        key: REDACTED_VALUE if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def redact_url(url: str) -> str:
    """Mask basic-auth credentials and token query parameters in a URL.

    Args:
        url: URL that may embed credentials.

    Returns:
        URL safe to log.
    """
    url = _URL_CREDENTIALS.sub(rf"\1{REDACTED_VALUE}@", url)
    return _TOKEN_PARAMS.sub(rf"\1{REDACTED_VALUE}", url)
