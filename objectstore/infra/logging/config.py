"""Logging configuration setup.

Uses dictConfig for the root logger and a QueueHandler + QueueListener pair
so that handler I/O never blocks the event loop.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
import threading
from contextlib import contextmanager
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from .formatters import JSONFormatter

if TYPE_CHECKING:
    from collections.abc import Iterator

    from objectstore.core.settings.logs import LoggingSettings

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_LOGGING_INITIALIZED = False
# logger name -> (active transport_debug_logging blocks, level before the first)
_debug_overrides: dict[str, tuple[int, int]] = {}
_debug_override_lock = threading.Lock()
logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that turn chatty at DEBUG; kept at WARNING unless a probe asks for more
NOISY_LOGGERS = ("botocore", "aiobotocore", "aioboto3", "urllib3", "azure", "google.auth")


def shutdown() -> None:
    """Stop the QueueListener, flushing pending records."""
    global _log_queue, _listener

    if _listener is not None:
        _listener.stop()
        _listener = None
    _log_queue = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from objectstore.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = {**settings_obj.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    service_name: str = "objectstore",
    json_logs: bool = False,
    console_enabled: bool = True,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    capture_warnings: bool = True,
    **kwargs: Any,
) -> None:
    """Configure logging with dictConfig and the QueueHandler pattern.

    All handlers hang off a QueueListener; the root logger gets a single
    QueueHandler and application loggers propagate up to it.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        service_name: Static ``service`` field added to JSON records.
        json_logs: Emit JSON Lines instead of human-readable text.
        console_enabled: Enable the stderr handler.
        file_path: Path to a rotating log file. None disables file logging.
        file_max_bytes: Maximum log file size before rotation.
        file_backup_count: Number of rotated log files to keep.
        capture_warnings: Forward Python warnings to logging system.
        **kwargs: Ignored extra settings.
    """
    global _log_queue, _listener
    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))

    if capture_warnings:
        logging.captureWarnings(True)

    shutdown()

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "root": {"level": log_level.upper(), "handlers": []},
            "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        }
    )

    def _formatter() -> logging.Formatter:
        if json_logs:
            return JSONFormatter(static={"service": service_name})
        return logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = []
    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(_formatter())
        handlers.append(console_handler)
    if path:
        file_handler = RotatingFileHandler(
            path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_formatter())
        handlers.append(file_handler)

    _log_queue = Queue()
    if handlers:
        _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        atexit.register(shutdown)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, QueueHandler):
            root.removeHandler(handler)
    root.addHandler(QueueHandler(_log_queue))


@contextmanager
def transport_debug_logging(loggers: tuple[str, ...] = NOISY_LOGGERS) -> Iterator[None]:
    """Temporarily lower the transport SDK loggers to DEBUG.

    Request/response traces from botocore and friends become visible for
    the duration of the block. Overrides are reference counted per logger,
    so overlapping blocks (concurrent probes) restore the original level
    only when the last one exits.
    """
    with _debug_override_lock:
        for name in loggers:
            count, saved = _debug_overrides.get(name, (0, logging.getLogger(name).level))
            _debug_overrides[name] = (count + 1, saved)
            logging.getLogger(name).setLevel(logging.DEBUG)
    try:
        yield
    finally:
        with _debug_override_lock:
            for name in loggers:
                count, saved = _debug_overrides[name]
                if count > 1:
                    _debug_overrides[name] = (count - 1, saved)
                else:
                    del _debug_overrides[name]
                    logging.getLogger(name).setLevel(saved)
