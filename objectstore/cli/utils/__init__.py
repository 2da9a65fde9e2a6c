"""CLI utilities for running async operations and formatting output."""

from objectstore.cli.utils.async_runner import coro
from objectstore.cli.utils.formatters import (
    error,
    format_bytes,
    header,
    info,
    success,
    warning,
)

__all__ = [
    "coro",
    "error",
    "format_bytes",
    "header",
    "info",
    "success",
    "warning",
]
