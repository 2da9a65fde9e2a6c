"""Logging setup for the object store facade."""

from .config import configure_logging, setup_logging, shutdown, transport_debug_logging
from .formatters import JSONFormatter

__all__ = ["JSONFormatter", "configure_logging", "setup_logging", "shutdown", "transport_debug_logging"]
