# logging.py

import logging
import os
from logging.handlers import RotatingFileHandler

import structlog
from structlog.contextvars import merge_contextvars

from Loresmith.config import Settings

# Third-party loggers that should render through our JSON handlers
_ADOPTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy", "asyncio")


def _level(name: str | None, default: int) -> int | None:
    """Map a level name to a stdlib level; None means the handler is off."""
    if (name or "").upper() == "NONE":
        return None
    return getattr(logging, (name or "").upper(), default)


def _json_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            # request_id / user_id bound by the HTTP layer
            merge_contextvars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=[
            structlog.processors.add_log_level,
            merge_contextvars,
        ],
    )


def setup_logging(settings: Settings | None = None) -> None:
    """Initialize structlog on top of stdlib logging.

    Every record, ours or third-party, is rendered as one JSON line. Console
    and rotating-file handlers take their own levels from ``logging_console``
    and ``logging_file``; ``NONE`` turns a handler off. Without settings only
    the console handler is installed, at INFO.
    """
    root_level = _level(settings.logging_level if settings else "INFO", logging.INFO)
    if root_level is None:
        root_level = logging.CRITICAL
    formatter = _json_formatter()
    handlers: list[logging.Handler] = []

    console_level = _level(settings.logging_console if settings else "INFO", root_level)
    if console_level is not None:
        console = logging.StreamHandler()
        console.setLevel(console_level)
        console.setFormatter(formatter)
        handlers.append(console)

    file_level = _level(settings.logging_file, root_level) if settings else None
    if settings is not None and file_level is not None:
        path = settings.logging_file_path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        rotating = RotatingFileHandler(
            path,
            maxBytes=settings.logging_max_bytes,
            backupCount=settings.logging_backup_count,
        )
        rotating.setLevel(file_level)
        rotating.setFormatter(formatter)
        handlers.append(rotating)

    logging.captureWarnings(True)
    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    for name in _ADOPTED_LOGGERS:
        adopted = logging.getLogger(name)
        adopted.handlers = []
        adopted.propagate = True

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def redact_settings(settings: Settings) -> dict:
    """Settings as a dict that is safe to log.

    Credentials in ``database_url`` and any ``*_token``/``*_secret``/``*_key``
    field are replaced with "[REDACTED]".
    """
    data = settings.model_dump()
    for key in data:
        if key.endswith(("_token", "_secret", "_key")):
            data[key] = "[REDACTED]"
    url = data.get("database_url") or ""
    if "@" in url and "://" in url:
        scheme, rest = url.split("://", 1)
        data["database_url"] = f"{scheme}://[REDACTED]@{rest.rsplit('@', 1)[1]}"
    return data
