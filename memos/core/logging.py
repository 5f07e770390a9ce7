"""
Centralized Logging Configuration.

Every memos module logs through structlog via ``get_logger``. Output goes to
stderr (so command output on stdout stays clean) and/or a rotating JSONL
file, as configured in config/settings/logging.yaml.

JSON records carry:
    timestamp   - ISO 8601 UTC timestamp
    level       - debug, info, warning, error, critical
    logger      - Module path (e.g., memos.services.document_store)
    event       - Log message
    func_name   - Emitting function
    lineno      - Emitting line
    source      - Component that produced the record (see VALID_SOURCES)

Anything else is passed as keyword context, either directly or under
``extra``.

Usage:
    from memos.core.logging import get_logger, log_with_source, setup_logging

    setup_logging()                                    # from logging.yaml
    setup_logging(level="DEBUG", format_type="console")

    logger = get_logger(__name__)
    logger.info("Snapshot saved", source="persistence", extra={"bytes": 512})
    log_with_source(logger, "sync", "info", "Drain finished", applied=3)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from memos.core.config import find_project_root, load_yaml_config

VALID_SOURCES = frozenset({
    "cli",
    "store",
    "persistence",
    "sync",
    "reminders",
    "tasks",
    "internal",
})
"""Components that tag their records. Callers pass the source explicitly."""

DEFAULT_SOURCE = "internal"

_QUIET_LOGGERS = ("httpx", "httpcore")

_logging_config: dict[str, Any] | None = None


def _load_logging_config() -> dict[str, Any]:
    global _logging_config
    if _logging_config is None:
        _logging_config = load_yaml_config("logging.yaml")
    return _logging_config


def _default_source(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Records from libraries and untagged calls are attributed to ``internal``."""
    event_dict.setdefault("source", DEFAULT_SOURCE)
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
        _default_source,
    ]


def _file_handler(file_config: dict[str, Any], formatter: logging.Formatter) -> RotatingFileHandler:
    log_path = Path(file_config["path"])
    if not log_path.is_absolute():
        log_path = find_project_root() / log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=str(log_path),
        maxBytes=file_config["max_bytes"],
        backupCount=file_config["backup_count"],
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    enable_console: bool | None = None,
    enable_file_logging: bool | None = None,
) -> None:
    """
    Configure structlog and the root logger's handlers.

    Arguments left as None fall back to logging.yaml. Calling this again
    replaces the previous handlers, so the CLI can reconfigure per command.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        format_type: 'json' or 'console' (console handler only; the file is always JSON)
        enable_console: Log to stderr
        enable_file_logging: Log to the rotating JSONL file
    """
    config = _load_logging_config()
    handlers_config = config["handlers"]

    if level is None:
        level = config["level"]
    if format_type is None:
        format_type = config["format"]
    if enable_console is None:
        enable_console = handlers_config["console"]["enabled"]
    if enable_file_logging is None:
        enable_file_logging = handlers_config["file"]["enabled"]

    processors = _shared_processors()
    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        if format_type == "console":
            console_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=True),
                foreign_pre_chain=processors,
            ))
        else:
            console_handler.setFormatter(json_formatter)
        root_logger.addHandler(console_handler)

    if enable_file_logging:
        root_logger.addHandler(_file_handler(handlers_config["file"], json_formatter))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    """Get a structlog logger, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def log_with_source(logger: Any, source: str, level: str, message: str, **kwargs: Any) -> None:
    """
    Log a message with an explicit source.

    Args:
        logger: The logger instance
        source: One of VALID_SOURCES
        level: debug, info, warning, error or critical (any case)
        message: Log message
        **kwargs: Additional context fields

    Raises:
        AttributeError: If level is not a valid log level

    Example:
        log_with_source(logger, "reminders", "info", "Reminder due", note_id="memo-1")
    """
    log_method = getattr(logger, level.lower())
    log_method(message, source=source, **kwargs)
