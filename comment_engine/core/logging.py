"""Structlog configuration with console and rotating file output.

Log events are rendered for the console (colored key/value or JSON, by
setting) and always written as JSON to a rotating application log plus an
error-only log. Request context from contextvars is merged into every event.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor


if TYPE_CHECKING:
    from comment_engine.config.settings import Settings

from comment_engine.core.context import get_context


# Keys whose values never reach the log output in clear text
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "secret",
        "token",
        "authorization",
        "credentials",
        "ip",
        "ip_address",
        "client_ip",
    }
)

# Show first 2 and last 2 chars above this length
_MIN_MASK_LENGTH = 4

NOISY_LOGGERS = ("uvicorn.access", "uvicorn.error", "cassandra", "httpx", "httpcore")


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add request context (request_id, user_id, target) to log events."""
    for key, value in get_context().items():
        event_dict.setdefault(key, value)
    return event_dict


def _mask(key: str, value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _mask(k, v) for k, v in value.items()}
    if not isinstance(value, str):
        return value
    lowered = key.lower()
    if not any(
        lowered == sensitive or lowered.endswith(f"_{sensitive}")
        for sensitive in SENSITIVE_KEYS
    ):
        return value
    if len(value) > _MIN_MASK_LENGTH:
        return value[:2] + "*" * (len(value) - _MIN_MASK_LENGTH) + value[-2:]
    return "***"


def filter_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask credentials and client addresses in log events."""
    return {k: _mask(k, v) for k, v in event_dict.items()}


def shared_processors(settings: "Settings") -> list[Processor]:
    """Processor chain shared by structlog and foreign (stdlib) log records."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        filter_sensitive_data,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.log_include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )
    return processors


def _rotating_json_handler(
    path: Path,
    settings: "Settings",
    level: str,
    pre_chain: list[Processor],
) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(path),
        maxBytes=settings.log_file_max_bytes,
        backupCount=settings.log_file_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(getattr(logging, level))
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=pre_chain,
        )
    )
    return handler


def configure_structlog(
    settings: "Settings",
    log_dir: Path | str | None = None,
    *,
    file_output: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        settings: Application settings.
        log_dir: Directory for log files. Defaults to ``settings.log_dir``.
        file_output: Attach the rotating JSON file handlers.
    """
    log_level = settings.log_level.upper()
    log_path = Path(log_dir if log_dir is not None else settings.log_dir)
    pre_chain = shared_processors(settings)

    if settings.log_format == "json":
        console_renderer: Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level))
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=console_renderer,
            foreign_pre_chain=pre_chain,
        )
    )
    root_logger.addHandler(console_handler)

    if file_output:
        root_logger.addHandler(
            _rotating_json_handler(
                log_path / f"{settings.app_name}.log", settings, log_level, pre_chain
            )
        )
        root_logger.addHandler(
            _rotating_json_handler(
                log_path / f"{settings.app_name}.error.log",
                settings,
                "ERROR",
                pre_chain,
            )
        )

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
