"""Observability module for structured logging."""

from ghrequestor.observability.logging import configure_logging


__all__ = [
    "configure_logging",
]
