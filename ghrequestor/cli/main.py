"""CLI commands for fetching GitHub-style API resources."""

import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NoReturn, TypeVar

import click
import structlog

from ghrequestor.fetch.config import FetchConfig
from ghrequestor.fetch.constants import HEADER_AUTHORIZATION, HEADER_USER_AGENT
from ghrequestor.fetch.errors import RequestorError
from ghrequestor.fetch.models import Activity, PageResponse
from ghrequestor.fetch.paginator import Paginator
from ghrequestor.fetch.redact import redact_url
from ghrequestor.fetch.session import FetchSession
from ghrequestor.observability.logging import configure_logging
from ghrequestor.settings import get_settings


logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class RequestOptions:
    """Options shared by every fetch command."""

    max_attempts: int
    retry_delay_ms: int
    forbidden_delay_ms: int
    token_lower_bound: int
    throttle: bool
    etags: tuple[str, ...]
    headers: tuple[str, ...]
    show_activity: bool
    json_logs: bool
    verbose: bool


def parse_header(value: str) -> tuple[str, str]:
    """Split a ``Name: value`` header argument.

    Raises:
        click.BadParameter: If the argument has no colon or no name.
    """
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        msg = f"Expected 'Name: value', got {value!r}"
        raise click.BadParameter(msg, param_hint="--header")
    return name.strip(), header_value.strip()


def build_config(options: RequestOptions) -> FetchConfig:
    """Build the fetch configuration from CLI options and the environment."""
    settings = get_settings()
    headers = {HEADER_USER_AGENT: settings.user_agent}
    headers.update(dict(parse_header(value) for value in options.headers))
    if not any(name.lower() == HEADER_AUTHORIZATION.lower() for name in headers):
        headers.update(settings.auth_headers())

    # "-" stands for a page without a stored etag
    etags = tuple(None if etag == "-" else etag for etag in options.etags)
    return FetchConfig.from_options(
        {
            "max_attempts": options.max_attempts,
            "retry_delay_ms": options.retry_delay_ms,
            "forbidden_delay_ms": options.forbidden_delay_ms,
            "token_lower_bound": options.token_lower_bound,
            "delay_on_throttle": options.throttle,
            "etags": etags,
            "headers": headers,
        }
    )


def _activity_json(activity: tuple[Activity, ...]) -> list[dict[str, Any]]:
    return [record.to_dict() for record in activity]


def _response_json(response: PageResponse) -> dict[str, Any]:
    return {
        "url": response.url,
        "status_code": response.status_code,
        "etag": response.etag,
        "body": response.body,
    }


def _emit(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def _setup_logging(options: RequestOptions) -> None:
    level = logging.DEBUG if options.verbose else get_settings().log_level
    configure_logging(level=level, output=sys.stderr, json_format=options.json_logs)


def _fail(error: RequestorError) -> NoReturn:
    click.echo(f"Error: {error.message}", err=True)
    click.echo(json.dumps(error.to_dict(), indent=2, default=str), err=True)
    sys.exit(1)


def request_options(func: F) -> F:
    """Attach the shared fetch options to a command."""
    decorators = [
        click.option(
            "--max-attempts",
            type=click.IntRange(min=1),
            default=5,
            show_default=True,
            help="Attempts per page before giving up.",
        ),
        click.option(
            "--retry-delay-ms",
            type=click.IntRange(min=0),
            default=500,
            show_default=True,
            help="Delay before retrying a transport error or 5xx.",
        ),
        click.option(
            "--forbidden-delay-ms",
            type=click.IntRange(min=0),
            default=3 * 60 * 1000,
            show_default=True,
            help="Delay before retrying a 403 secondary rate limit.",
        ),
        click.option(
            "--token-lower-bound",
            type=click.IntRange(min=0),
            default=500,
            show_default=True,
            help="Sleep until the quota reset once fewer requests remain.",
        ),
        click.option(
            "--throttle/--no-throttle",
            default=True,
            help="Sleep proactively when the quota runs low (default: on).",
        ),
        click.option(
            "--etag",
            "etags",
            multiple=True,
            help="If-None-Match value per page, in page order ('-' for none).",
        ),
        click.option(
            "--header",
            "-H",
            "headers",
            multiple=True,
            help="Extra request header as 'Name: value'.",
        ),
        click.option(
            "--activity/--no-activity",
            "show_activity",
            default=True,
            help="Include the per-page activity records in the output.",
        ),
        click.option(
            "--json-logs/--no-json-logs",
            default=True,
            help="Use JSON format for logs (default: true).",
        ),
        click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Fetch resources from paginated, rate-limited APIs such as GitHub's."""


@cli.command("get")
@click.argument("url")
@click.option(
    "--require-success",
    is_flag=True,
    help="Exit with an error for any non-2xx response.",
)
@request_options
def get_command(url: str, require_success: bool, **kwargs: Any) -> None:
    """Fetch a single resource and print it as JSON."""
    options = RequestOptions(**kwargs)
    _setup_logging(options)
    config = build_config(options)
    logger.info("cli_request", command="get", url=redact_url(url))

    try:
        result = FetchSession(config).fetch(url, require_success=require_success)
    except RequestorError as e:
        _fail(e)

    payload: dict[str, Any] = _response_json(result.response)
    if options.show_activity:
        payload["activity"] = _activity_json(result.activity)
    _emit(payload)


@cli.command("get-all")
@click.argument("url")
@click.option(
    "--raw",
    is_flag=True,
    help="Print every page response instead of the flattened items.",
)
@request_options
def get_all_command(url: str, raw: bool, **kwargs: Any) -> None:
    """Fetch every page of a resource and print it as JSON."""
    options = RequestOptions(**kwargs)
    _setup_logging(options)
    config = build_config(options)
    logger.info("cli_request", command="get-all", url=redact_url(url), raw=raw)
    payload: dict[str, Any]

    try:
        if raw:
            pages = Paginator(FetchSession(config)).run(url)
            payload = {
                "completed": pages.completed,
                "pages": [_response_json(page) for page in pages.pages],
            }
            activity = pages.activity
        else:
            items = Paginator(FetchSession(config)).paginate_items(url)
            payload = {"items": items.items}
            activity = items.activity
    except RequestorError as e:
        _fail(e)

    if options.show_activity:
        payload["activity"] = _activity_json(activity)
    _emit(payload)


def main() -> None:
    """Entry point for the ``ghrequestor`` console script."""
    cli()


if __name__ == "__main__":
    main()
