"""
Logging configuration for tagstream.

structlog events are routed through the standard library so every record
ends up in the same handlers:
- a rich console handler on stderr (stdout is reserved for ``--json``)
- an optional rotating log file, plain or JSON lines
- optional Sentry reporting for errors
"""

import logging
import logging.handlers
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, List

import structlog
from rich.console import Console
from rich.logging import RichHandler
import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration


console = Console(file=sys.stderr)

DEFAULT_LOG_DIR = Path.home() / ".tagstream" / "logs"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, carrying any structured extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }

        for key, value in vars(record).items():
            if key in _RECORD_ATTRIBUTES or key.startswith("_"):
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = repr(value)
            entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


def _shared_processors() -> List[Any]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _console_handler(level: int) -> logging.Handler:
    handler = RichHandler(
        console=console,
        level=level,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_suppress=["asyncio", "aiohttp"],
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(app_name: str, log_dir: Path, as_json: bool) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_dir / f"{app_name}.log",
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        JSONFormatter() if as_json
        else logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    return handler


def _init_sentry(dsn: str) -> None:
    # Breadcrumbs from INFO, events from ERROR (transport and config failures)
    sentry_sdk.init(
        dsn=dsn,
        integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
        traces_sample_rate=0.0,
    )


def setup_logging(
    app_name: str = "tagstream",
    log_level: str = "WARNING",
    log_dir: Optional[Path] = None,
    enable_file: bool = False,
    enable_json: bool = False,
    enable_sentry: bool = False,
    sentry_dsn: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Configure structlog and the root logger.

    Safe to call more than once; handlers from an earlier call are replaced.

    Args:
        app_name: Logger name and log file stem
        log_level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the log file (defaults to ~/.tagstream/logs)
        enable_file: Also write a rotating log file at DEBUG level
        enable_json: Render events as JSON instead of key=value text
        enable_sentry: Report errors to Sentry when a DSN is given
        sentry_dsn: Sentry DSN

    Returns:
        The app logger and the effective settings
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    renderer = (
        structlog.processors.JSONRenderer()
        if enable_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=_shared_processors() + [renderer],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handlers = [_console_handler(level)]
    if enable_file:
        log_dir = log_dir or DEFAULT_LOG_DIR
        handlers.append(_file_handler(app_name, log_dir, enable_json))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    # The file handler wants DEBUG even when the console is quieter
    root.setLevel(logging.DEBUG if enable_file else level)

    if enable_sentry and sentry_dsn:
        _init_sentry(sentry_dsn)

    logger = structlog.get_logger(app_name)
    logger.debug(
        "logging_configured",
        level=log_level.upper(),
        log_file=str(log_dir / f"{app_name}.log") if enable_file else None,
        sentry=bool(enable_sentry and sentry_dsn),
    )

    return {
        "logger": logger,
        "log_dir": log_dir if enable_file else None,
        "console": console,
    }


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance by name."""
    return structlog.get_logger(name)


__all__ = [
    'setup_logging',
    'get_logger',
    'JSONFormatter',
    'console',
]
