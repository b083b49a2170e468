"""Transport collaborator: one HTTP GET per call."""

from typing import Any, Protocol

import httpx
import structlog

from ghrequestor.fetch.errors import TransportError
from ghrequestor.fetch.models import PageResponse


logger = structlog.get_logger()


class Transport(Protocol):
    """Protocol for sending a single GET request.

    Allows dependency injection of fake transports for testing.
    """

    def send(
        self,
        url: str,
        headers: dict[str, str],
        timeout: float,
    ) -> PageResponse:
        """Perform one HTTP exchange.

        Args:
            url: URL to fetch.
            headers: Request headers.
            timeout: Timeout in seconds.

        Returns:
            The response, whatever its status code.

        Raises:
            TransportError: If no response was obtained.
        """
        ...


def decode_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON, falling back to text.

    Args:
        response: HTTP response.

    Returns:
        Decoded JSON value, the text body, or None for an empty body.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpxTransport:
    """Transport backed by httpx.

    Uses the injected client when given (the caller owns its lifecycle),
    otherwise opens a short-lived client per request.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        follow_redirects: bool = True,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Optional preconfigured httpx client.
            follow_redirects: Whether to follow 3xx responses.
        """
        self._client = client
        self._follow_redirects = follow_redirects

    def send(
        self,
        url: str,
        headers: dict[str, str],
        timeout: float,
    ) -> PageResponse:
        """Send a GET request and wrap the response.

        Args:
            url: URL to fetch.
            headers: Request headers.
            timeout: Timeout in seconds.

        Returns:
            PageResponse keyed to the requested URL.

        Raises:
            TransportError: On timeouts, connection-level failures and other
                request errors such as redirect loops.
        """
        try:
            if self._client is not None:
                response = self._client.get(
                    url,
                    headers=headers,
                    timeout=timeout,
                    follow_redirects=self._follow_redirects,
                )
            else:
                with httpx.Client(
                    timeout=timeout,
                    follow_redirects=self._follow_redirects,
                ) as client:
                    response = client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            msg = f"Request timed out: {e}"
            raise TransportError(msg, url=url) from e
        except httpx.TransportError as e:
            msg = f"Connection failed: {e}"
            raise TransportError(msg, url=url) from e
        except httpx.RequestError as e:
            msg = f"Request failed: {e}"
            raise TransportError(msg, url=url) from e

        logger.debug(
            "transport_response",
            component="transport",
            status_code=response.status_code,
            bytes=len(response.content),
        )

        return PageResponse(
            url=url,
            status_code=response.status_code,
            reason=response.reason_phrase,
            headers=dict(response.headers),
            body=decode_body(response),
        )
